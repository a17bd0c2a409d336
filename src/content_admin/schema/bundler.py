"""Bundler for schema-definition modules.

Turns the user's schema-definition file, plus every local module it imports,
into a single Python module text that can be staged and imported on its own:

  - local modules (files under the search paths) are inlined into a module table
  - the host framework's virtual content module is replaced by the shim
  - the validation library and any other installed or standard-library module
    is left as a normal import, so it binds to the running environment's copy

Import statements that target inlined modules are rewritten in place into calls
on a small runtime emitted at the top of the bundle. Rewritten statements keep
their lines, so tracebacks raised by user code still point at the user's file
and line.
"""

import ast
import importlib.util
import sys
from collections import deque
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from content_admin.schema.errors import BundleError
from content_admin.schema.shim import (
    DEFAULT_VALIDATION_MODULE,
    DEFAULT_VIRTUAL_MODULE,
    shim_source,
)

ENTRY_FALLBACK_NAME = "__entry__"

_RUNTIME = '''\
__bundle_cache__ = {}


def __bundle_require__(name):
    module = __bundle_cache__.get(name)
    if module is not None:
        return module
    filename, is_package, source = __bundle_modules__[name]
    parent, _, child = name.rpartition(".")
    if parent in __bundle_modules__:
        __bundle_require__(parent)
    qualified = __name__ + "." + name
    module = __bundle_types__.ModuleType(qualified)
    module.__file__ = filename
    if is_package:
        module.__path__ = []
    module.__bundle_require__ = __bundle_require__
    module.__bundle_import_from__ = __bundle_import_from__
    module.__bundle_import_star__ = __bundle_import_star__
    __bundle_cache__[name] = module
    __bundle_sys__.modules[qualified] = module
    exec(compile(source, filename, "exec", dont_inherit=True), module.__dict__)
    if parent in __bundle_modules__:
        setattr(__bundle_cache__[parent], child, module)
    return module


def __bundle_import_from__(name, attr):
    module = __bundle_require__(name)
    try:
        return getattr(module, attr)
    except AttributeError:
        submodule = name + "." + attr
        if submodule in __bundle_modules__:
            return __bundle_require__(submodule)
        raise ImportError(f"cannot import name {attr!r} from {name!r}") from None


def __bundle_import_star__(name, namespace):
    module = __bundle_require__(name)
    public = getattr(module, "__all__", None)
    if public is None:
        public = [key for key in vars(module) if not key.startswith("_")]
    for key in public:
        namespace[key] = getattr(module, key)
'''


@dataclass
class BundledSource:
    """A module that will be inlined into the bundle."""

    name: str  # Dotted name inside the bundle
    filename: str  # Reported in tracebacks
    is_package: bool
    root: Path | None  # Search root the module was found under; None for the shim
    path: Path | None = None
    source: str = ""


class SchemaBundler:
    """Bundles one schema-definition entry point and its local imports."""

    def __init__(
        self,
        entry: Path,
        *,
        virtual_module: str = DEFAULT_VIRTUAL_MODULE,
        validation_module: str = DEFAULT_VALIDATION_MODULE,
        external: tuple[str, ...] | list[str] = (),
        search_paths: list[Path] | None = None,
    ):
        self.entry = Path(entry)
        self.virtual_module = virtual_module
        self.validation_module = validation_module
        self.external = frozenset({validation_module, *external})
        roots = [Path(p) for p in search_paths] if search_paths else []
        if self.entry.parent not in roots:
            roots.insert(0, self.entry.parent)
        self.search_paths = roots

        self._modules: dict[str, BundledSource] = {}
        self._pending: deque[BundledSource] = deque()

    def bundle(self) -> str:
        """Bundle the entry point.

        Returns:
            Module source text for the whole bundle.

        Raises:
            BundleError: If the entry or any local module cannot be read or parsed,
                or an import cannot be resolved.
        """
        if not self.entry.is_file():
            raise BundleError("Schema-definition file not found", self.entry)

        entry_name = self.entry.stem if self.entry.stem.isidentifier() else ENTRY_FALLBACK_NAME
        self._add(
            BundledSource(
                name=entry_name,
                filename=str(self.entry),
                is_package=False,
                root=self.entry.parent,
                path=self.entry,
            )
        )

        while self._pending:
            module = self._pending.popleft()
            module.source = self._rewrite(module, self._read(module.path))

        logger.debug(f"Bundled {len(self._modules)} module(s) for {self.entry}")
        return self._render(entry_name)

    # --- Module discovery ---

    def _add(self, module: BundledSource) -> None:
        if module.name in self._modules:
            return
        self._modules[module.name] = module
        if module.path is not None:
            self._pending.append(module)

    def _add_shim(self) -> None:
        if self.virtual_module in self._modules:
            return
        self._modules[self.virtual_module] = BundledSource(
            name=self.virtual_module,
            filename=f"<{self.virtual_module}>",
            is_package=False,
            root=None,
            source=shim_source(self.virtual_module, self.validation_module),
        )

    def _find_local(self, name: str, roots: list[Path]) -> BundledSource | None:
        """Locate a local module as name.py or name/__init__.py under the roots."""
        parts = name.split(".")
        for root in roots:
            base = root.joinpath(*parts)
            init = base / "__init__.py"
            if init.is_file():
                return BundledSource(name, str(init), True, root, init)
            module_file = base.parent / f"{parts[-1]}.py"
            if module_file.is_file():
                return BundledSource(name, str(module_file), False, root, module_file)
        return None

    def _add_local(self, found: BundledSource) -> None:
        """Register a local module together with its parent packages."""
        parts = found.name.split(".")
        for depth in range(1, len(parts)):
            parent_name = ".".join(parts[:depth])
            if parent_name in self._modules:
                continue
            parent = self._find_local(parent_name, [found.root])
            if parent is None or not parent.is_package:
                # Directory without __init__.py: an empty namespace package
                directory = found.root.joinpath(*parts[:depth])
                parent = BundledSource(parent_name, str(directory), True, found.root)
            self._add(parent)
        self._add(found)

    def _is_installed(self, top_level: str) -> bool:
        if top_level in sys.stdlib_module_names or top_level in sys.builtin_module_names:
            return True
        try:
            return importlib.util.find_spec(top_level) is not None
        except (ImportError, ValueError):
            return False

    def _is_bundled(self, name: str, importer: BundledSource, lineno: int) -> bool:
        """Decide whether an absolute import is inlined (True) or left alone (False)."""
        if name == self.virtual_module:
            self._add_shim()
            return True
        if name in self._modules:
            return True
        top_level = name.partition(".")[0]
        if top_level in self.external:
            return False
        found = self._find_local(name, self.search_paths)
        if found is not None:
            self._add_local(found)
            return True
        if self._is_installed(top_level):
            return False
        raise BundleError(f"Could not resolve import {name!r}", importer.path, lineno)

    def _resolve_relative(self, importer: BundledSource, level: int, lineno: int) -> str:
        """Return the package a relative import of the given level refers to."""
        package = importer.name if importer.is_package else importer.name.rpartition(".")[0]
        parts = package.split(".") if package else []
        if level - 1 > len(parts):
            raise BundleError(
                "Attempted relative import beyond top-level package", importer.path, lineno
            )
        return ".".join(parts[: len(parts) - (level - 1)])

    def _require_local(self, name: str, importer: BundledSource, lineno: int) -> None:
        if name in self._modules:
            return
        found = self._find_local(name, [importer.root])
        if found is None:
            raise BundleError(f"Could not resolve relative import {name!r}", importer.path, lineno)
        self._add_local(found)

    def _maybe_submodule(self, package: str, attr: str, importer: BundledSource) -> bool:
        """Register package.attr if it is a local module; `from pkg import mod`."""
        name = f"{package}.{attr}" if package else attr
        if name in self._modules:
            return True
        if importer.root is None:
            return False
        found = self._find_local(name, [importer.root])
        if found is None:
            return False
        self._add_local(found)
        return True

    # --- Source rewriting ---

    def _read(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8-sig")
        except UnicodeDecodeError as e:
            raise BundleError(f"File is not valid UTF-8: {e.reason}", path) from e
        except OSError as e:
            raise BundleError(f"Could not read file: {e.strerror or e}", path) from e

    def _rewrite(self, module: BundledSource, source: str) -> str:
        try:
            tree = ast.parse(source, filename=str(module.path))
        except SyntaxError as e:
            raise BundleError(f"Syntax error: {e.msg}", module.path, e.lineno) from e

        replacements: list[tuple[int, int, int, int, str]] = []
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                text = self._rewrite_import(node, module)
            elif isinstance(node, ast.ImportFrom):
                text = self._rewrite_import_from(node, module)
            else:
                continue
            if text is not None:
                replacements.append(
                    (node.lineno, node.col_offset, node.end_lineno, node.end_col_offset, text)
                )

        if not replacements:
            return source
        return _apply_replacements(source, replacements)

    def _rewrite_import(self, node: ast.Import, module: BundledSource) -> str | None:
        statements: list[str] = []
        kept: list[str] = []
        for alias in node.names:
            if not self._is_bundled(alias.name, module, node.lineno):
                kept.append(f"{alias.name} as {alias.asname}" if alias.asname else alias.name)
                continue
            if alias.asname:
                statements.append(f"{alias.asname} = __bundle_require__({alias.name!r})")
                continue
            top_level = alias.name.partition(".")[0]
            if top_level != alias.name:
                statements.append(f"__bundle_require__({alias.name!r})")
            statements.append(f"{top_level} = __bundle_require__({top_level!r})")

        if not statements:
            return None
        if kept:
            statements.insert(0, f"import {', '.join(kept)}")
        return "; ".join(statements)

    def _rewrite_import_from(self, node: ast.ImportFrom, module: BundledSource) -> str | None:
        if node.module == "__future__":
            return None

        if node.level == 0:
            target = node.module or ""
            if not self._is_bundled(target, module, node.lineno):
                return None
            return self._bind_names(target, node, module)

        package = self._resolve_relative(module, node.level, node.lineno)
        if node.module:
            target = f"{package}.{node.module}" if package else node.module
            self._require_local(target, module, node.lineno)
            return self._bind_names(target, node, module)

        # from . import name: each name is a submodule or an attribute of the package
        statements: list[str] = []
        for alias in node.names:
            bound = alias.asname or alias.name
            if alias.name != "*" and self._maybe_submodule(package, alias.name, module):
                name = f"{package}.{alias.name}" if package else alias.name
                statements.append(f"{bound} = __bundle_require__({name!r})")
                continue
            if not package:
                raise BundleError(
                    f"Could not resolve relative import {alias.name!r}", module.path, node.lineno
                )
            self._require_local(package, module, node.lineno)
            if alias.name == "*":
                statements.append(f"__bundle_import_star__({package!r}, globals())")
            else:
                statements.append(f"{bound} = __bundle_import_from__({package!r}, {alias.name!r})")
        return "; ".join(statements)

    def _bind_names(self, target: str, node: ast.ImportFrom, module: BundledSource) -> str:
        statements: list[str] = []
        for alias in node.names:
            if alias.name == "*":
                statements.append(f"__bundle_import_star__({target!r}, globals())")
                continue
            if target != self.virtual_module:
                self._maybe_submodule(target, alias.name, module)
            bound = alias.asname or alias.name
            statements.append(f"{bound} = __bundle_import_from__({target!r}, {alias.name!r})")
        return "; ".join(statements)

    # --- Output ---

    def _render(self, entry_name: str) -> str:
        lines = [
            f"# Bundled by content-admin from {self.entry}",
            "import sys as __bundle_sys__",
            "import types as __bundle_types__",
            "",
            "__bundle_modules__ = {",
        ]
        for module in self._modules.values():
            lines.append(f"    {module.name!r}: ({module.filename!r}, {module.is_package!r}, {module.source!r}),")
        lines.append("}")
        lines.append(_RUNTIME)
        lines.append(f"__bundle_entry__ = __bundle_require__({entry_name!r})")
        lines.append(
            "globals().update({key: value for key, value in vars(__bundle_entry__).items() "
            "if not key.startswith('__')})"
        )
        return "\n".join(lines) + "\n"


def _apply_replacements(source: str, replacements: list[tuple[int, int, int, int, str]]) -> str:
    """Replace statement spans without changing the number of lines.

    AST column offsets are UTF-8 byte offsets, so the work is done on bytes.
    A multi-line statement becomes one line followed by blank lines, unless the
    last line carries another statement after it (`...; x = 1`), which then
    stays on the replacement line.
    """
    data = source.encode("utf-8")
    line_starts = [0]
    for line in data.splitlines(keepends=True):
        line_starts.append(line_starts[-1] + len(line))

    for lineno, col, end_lineno, end_col, text in sorted(replacements, reverse=True):
        start = line_starts[lineno - 1] + col
        end = line_starts[end_lineno - 1] + end_col
        line_end = line_starts[end_lineno] if end_lineno < len(line_starts) else len(data)
        rest = data[end:line_end].decode("utf-8").strip()
        padding = "" if rest and not rest.startswith("#") else "\n" * (end_lineno - lineno)
        data = data[:start] + (text + padding).encode("utf-8") + data[end:]

    return data.decode("utf-8")


def bundle_schema_module(
    entry: Path,
    *,
    virtual_module: str = DEFAULT_VIRTUAL_MODULE,
    validation_module: str = DEFAULT_VALIDATION_MODULE,
    external: tuple[str, ...] | list[str] = (),
    search_paths: list[Path] | None = None,
) -> str:
    """Bundle a schema-definition module into a single module text.

    Args:
        entry: Absolute path of the schema-definition file.
        virtual_module: Import name replaced by the shim.
        validation_module: Validation library, always left as a real import.
        external: Extra top-level names that are never inlined.
        search_paths: Roots for local modules; the entry directory is always first.

    Returns:
        Source text of the bundled module.

    Raises:
        BundleError: If bundling fails.
    """
    bundler = SchemaBundler(
        entry,
        virtual_module=virtual_module,
        validation_module=validation_module,
        external=external,
        search_paths=search_paths,
    )
    return bundler.bundle()
