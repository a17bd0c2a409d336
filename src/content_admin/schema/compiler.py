"""Schema compilation pipeline: locate, bundle, load and walk.

One `compile()` turns the host project's schema-definition file into a
`CollectionSchema` per declared collection. Bundling and module execution are
blocking and run in worker threads.
"""

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from content_admin.file_utils import find_first_existing
from content_admin.schema.bundler import bundle_schema_module
from content_admin.schema.errors import SchemaSourceNotFoundError
from content_admin.schema.loader import staged_collections
from content_admin.schema.models import CollectionSchema
from content_admin.schema.walker import walk_schema

if TYPE_CHECKING:
    from content_admin.config import ContentAdminConfig


class SchemaCompiler:
    """Compiles the schema definitions of one host project."""

    def __init__(self, config: "ContentAdminConfig"):
        self.config = config

    def resolve_source(self) -> Path:
        """Return the first existing schema-definition candidate.

        Raises:
            SchemaSourceNotFoundError: If no candidate exists.
        """
        candidates = self.config.schema_candidate_paths
        source = find_first_existing(candidates)
        if source is None:
            raise SchemaSourceNotFoundError(candidates)
        return source

    def search_paths(self, source: Path) -> list[Path]:
        roots = [source.parent, *self.config.import_paths]
        unique: list[Path] = []
        for root in roots:
            if root.is_dir() and root not in unique:
                unique.append(root)
        return unique

    async def compile(self) -> dict[str, CollectionSchema]:
        """Run the whole pipeline.

        Returns:
            Compiled schemas keyed by collection name, in declaration order.

        Raises:
            SchemaSourceNotFoundError: If no schema-definition file exists.
            BundleError: If the file or its local imports cannot be bundled.
            LoadError: If user code raises while loading.
            ConfigShapeError: If `collections` is missing or malformed.
        """
        source = self.resolve_source()
        logger.info(f"Found content config: {source}")

        settings = self.config.schemas
        bundle = await asyncio.to_thread(
            bundle_schema_module,
            source,
            virtual_module=settings.virtual_module,
            validation_module=settings.validation_module,
            external=settings.external_modules,
            search_paths=self.search_paths(source),
        )

        schemas: dict[str, CollectionSchema] = {}
        # Declarations must be walked while their module is registered
        async with staged_collections(
            bundle,
            stage_dir=self.config.stage_path,
            import_paths=self.config.import_paths,
            source=source,
        ) as declarations:
            for name, declaration in declarations.items():
                schema, unions = walk_schema(declaration.raw_schema)
                schemas[name] = CollectionSchema(
                    name=name,
                    type=declaration.type,
                    schema=schema,
                    discriminated_unions=unions,
                )
                logger.info(f"Parsed schema for {name} ({len(unions)} discriminated unions)")

        logger.info(f"Compiled {len(schemas)} collection schema(s)")
        return schemas
