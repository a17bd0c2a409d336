"""Dynamic loader for bundled schema-definition modules.

The bundle is staged as a uniquely named file, imported under a unique module
name, and its `collections` mapping is read. Whatever happens, the staged file
and every `sys.modules` entry created for it are removed before returning.
"""

import asyncio
import importlib.machinery
import importlib.util
import sys
import uuid
from collections.abc import AsyncIterator, Iterable, Iterator, Mapping
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from types import ModuleType
from typing import Any

from loguru import logger
from pydantic import BaseModel, PydanticUserError
from pydantic.dataclasses import is_pydantic_dataclass, rebuild_dataclass

from content_admin.file_utils import FileWriteError, remove_file, write_temp_file
from content_admin.schema.errors import ConfigShapeError, LoadError
from content_admin.schema.models import COLLECTION_TYPES, CollectionDeclaration

STAGED_PREFIX = "schema-"
MODULE_PREFIX = "_content_admin_schema_"

MISSING_COLLECTIONS_MESSAGE = (
    'The schema-definition module does not define "collections". Make sure you have:\n'
    "  collections = {...}"
)


class StagedModuleLoader(importlib.machinery.SourceFileLoader):
    """Source loader that never writes bytecode next to the staged file."""

    def set_data(self, path, data, *, _mode=0o666):
        pass


@contextmanager
def host_import_paths(paths: Iterable[Path]) -> Iterator[None]:
    """Temporarily put the host project's import roots at the front of sys.path."""
    added = []
    for path in paths:
        entry = str(path)
        if entry not in sys.path and entry not in added:
            added.append(entry)
    sys.path[:0] = added
    try:
        yield
    finally:
        for entry in added:
            if entry in sys.path:
                sys.path.remove(entry)


def forget_modules(module_name: str) -> None:
    """Drop a staged module and its inlined sub-modules from sys.modules."""
    prefix = module_name + "."
    for name in [n for n in sys.modules if n == module_name or n.startswith(prefix)]:
        del sys.modules[name]


def execute_staged_module(
    staged: Path,
    module_name: str,
    import_paths: Iterable[Path] = (),
    source: Path | None = None,
) -> ModuleType:
    """Import a staged file as module_name.

    Raises:
        LoadError: If executing the module raises, including SystemExit.
    """
    loader = StagedModuleLoader(module_name, str(staged))
    spec = importlib.util.spec_from_file_location(module_name, staged, loader=loader)
    if spec is None:
        raise LoadError(f"Could not create an import spec for {staged}", source)

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    with host_import_paths(import_paths):
        try:
            loader.exec_module(module)
        except (Exception, SystemExit) as e:
            origin = f" in {source}" if source else ""
            raise LoadError(
                f"Error while loading schema definitions{origin}: {type(e).__name__}: {e}",
                source,
            ) from e
    return module


def _entry_field(entry: Any, key: str) -> Any:
    if isinstance(entry, Mapping):
        return entry.get(key)
    return getattr(entry, key, None)


def collection_declarations(collections: Mapping) -> dict[str, CollectionDeclaration]:
    """Turn the module's `collections` mapping into declarations.

    Entries without a schema are skipped. Order follows the mapping.

    Raises:
        ConfigShapeError: For non-string names or unknown collection types.
    """
    declarations: dict[str, CollectionDeclaration] = {}
    for name, entry in collections.items():
        if not isinstance(name, str):
            raise ConfigShapeError(f"Collection names must be strings, got {name!r}")

        raw_schema = _entry_field(entry, "schema")
        if raw_schema is None:
            logger.warning(f'Collection "{name}" has no schema, skipping')
            continue

        collection_type = _entry_field(entry, "type") or "content"
        if collection_type not in COLLECTION_TYPES:
            raise ConfigShapeError(
                f'Collection "{name}" has unknown type {collection_type!r}; '
                'expected "content" or "data"'
            )

        declarations[name] = CollectionDeclaration(
            name=name, type=collection_type, raw_schema=raw_schema
        )
    return declarations


def _pending_models(module: ModuleType) -> Iterator[type]:
    """Models and pydantic dataclasses defined in module that are not built yet."""
    for value in list(vars(module).values()):
        if not isinstance(value, type) or value.__module__ != module.__name__:
            continue
        is_model = issubclass(value, BaseModel) and value is not BaseModel
        if (is_model or is_pydantic_dataclass(value)) and not getattr(
            value, "__pydantic_complete__", True
        ):
            yield value


def resolve_forward_refs(module_name: str) -> None:
    """Finish building models whose annotations referenced names defined later.

    Must run while the staged module is still registered in sys.modules.
    Models that still cannot be built are logged and left for conversion to
    fall back on.
    """
    prefix = module_name + "."
    modules = [m for n, m in list(sys.modules.items()) if n == module_name or n.startswith(prefix)]
    for module in modules:
        namespace = vars(module)
        for cls in _pending_models(module):
            try:
                if is_pydantic_dataclass(cls):
                    rebuild_dataclass(cls, _types_namespace=namespace)
                else:
                    cls.model_rebuild(_types_namespace=namespace)
                logger.debug(f"Resolved forward references of {cls.__name__}")
            except (PydanticUserError, NameError, TypeError) as e:
                logger.warning(f"Could not resolve forward references of {cls.__name__}: {e}")


@asynccontextmanager
async def staged_collections(
    bundle: str,
    *,
    stage_dir: Path,
    import_paths: Iterable[Path] = (),
    source: Path | None = None,
) -> AsyncIterator[dict[str, CollectionDeclaration]]:
    """Stage and import a bundled module, yielding its collection declarations.

    The module stays registered in sys.modules until the block exits, so
    annotations that refer to it can still be resolved inside the block.

    Raises:
        LoadError: If staging fails or user code raises.
        ConfigShapeError: If `collections` is missing or malformed.
    """
    module_name = f"{MODULE_PREFIX}{uuid.uuid4().hex}"
    try:
        staged = await write_temp_file(stage_dir, bundle, prefix=STAGED_PREFIX, suffix=".py")
    except FileWriteError as e:
        raise LoadError(f"Could not stage bundled schema module: {e}", source) from e

    logger.debug(f"Staged bundled schema module at {staged}")
    try:
        module = await asyncio.to_thread(
            execute_staged_module, staged, module_name, list(import_paths), source
        )

        collections = getattr(module, "collections", None)
        if collections is None:
            raise ConfigShapeError(MISSING_COLLECTIONS_MESSAGE)
        if not isinstance(collections, Mapping):
            raise ConfigShapeError(
                '"collections" must map collection names to collection configs, '
                f"got {type(collections).__name__}"
            )
        declarations = collection_declarations(collections)
        resolve_forward_refs(module_name)
        yield declarations
    finally:
        forget_modules(module_name)
        await remove_file(staged)
        logger.debug(f"Removed staged schema module {staged.name}")


async def load_collections(
    bundle: str,
    *,
    stage_dir: Path,
    import_paths: Iterable[Path] = (),
    source: Path | None = None,
) -> dict[str, CollectionDeclaration]:
    """Stage, import and read the collections of a bundled module.

    Forward references are resolved before the module is dropped, so the
    returned models can be converted afterwards.

    Args:
        bundle: Bundled module source.
        stage_dir: Directory for the staged file, inside the host project.
        import_paths: Host project roots made importable while the module runs.
        source: Original schema-definition path, used in error messages.

    Returns:
        Declarations keyed by collection name, in declaration order.

    Raises:
        LoadError: If staging fails or user code raises.
        ConfigShapeError: If `collections` is missing or malformed.
    """
    async with staged_collections(
        bundle, stage_dir=stage_dir, import_paths=import_paths, source=source
    ) as declarations:
        return declarations
