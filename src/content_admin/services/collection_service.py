"""Service for reading content collections and their schemas.

Collections are the subdirectories of the content directory. Schema data comes
from the schema cache; when it cannot be loaded, every method falls back to
what the file system shows, so the admin UI keeps working with a broken schema
definition.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from content_admin.config import ContentAdminConfig
from content_admin.schema.cache import SchemaCache, SchemaMap, get_schema_cache
from content_admin.schema.enrichment import enrich_schema_with_block_types
from content_admin.schema.errors import SchemaEngineError
from content_admin.schema.models import (
    CollectionSchema,
    CollectionType,
    DiscriminatedUnion,
    JsonSchemaDoc,
    empty_object_schema,
)

ENTRY_SUFFIXES = (".md", ".mdx", ".json")
MARKDOWN_SUFFIXES = (".md", ".mdx")


@dataclass
class CollectionInfo:
    """A collection with its entries and schema."""

    name: str
    type: CollectionType
    entries: list[str]
    schema: JsonSchemaDoc
    discriminated_unions: list[DiscriminatedUnion] = field(default_factory=list)

    @property
    def entry_count(self) -> int:
        return len(self.entries)


class CollectionService:
    """Collection listing and schema lookup for one project."""

    def __init__(self, config: ContentAdminConfig, cache: SchemaCache | None = None):
        self.config = config
        self.cache = cache or get_schema_cache()

    @property
    def content_dir(self) -> Path:
        return self.config.content_path

    async def _load_schemas(self) -> SchemaMap | None:
        try:
            return await self.cache.load()
        except SchemaEngineError as e:
            logger.warning(f"Could not load schemas: {e}")
            return None

    def get_collection_names(self) -> list[str]:
        """Names of all collections, sorted."""
        try:
            return sorted(p.name for p in self.content_dir.iterdir() if p.is_dir())
        except OSError as e:
            logger.error(f"Error reading collections from {self.content_dir}: {e}")
            return []

    def get_collection_entries(
        self, name: str, locales: Sequence[str] | None = None
    ) -> list[str]:
        """Entry slugs of a collection.

        Args:
            name: Collection name
            locales: Configured locales. With more than one locale, a locale
                suffix is stripped (home.en.md -> home) and duplicates removed.

        Returns:
            Slugs in file-name order; empty when the collection does not exist
        """
        collection_dir = self.content_dir / name
        if not collection_dir.is_dir():
            return []

        try:
            files = sorted(
                p for p in collection_dir.iterdir() if p.is_file() and p.suffix in ENTRY_SUFFIXES
            )
        except OSError as e:
            logger.error(f"Error reading collection {name}: {e}")
            return []

        slugs = [p.stem for p in files]
        if not locales or len(locales) < 2:
            return slugs

        pattern = re.compile(
            r"\.(" + "|".join(re.escape(locale) for locale in locales) + r")$",
            re.IGNORECASE,
        )
        return list(dict.fromkeys(pattern.sub("", slug) for slug in slugs))

    def _detect_type(self, name: str) -> CollectionType:
        collection_dir = self.content_dir / name
        try:
            has_markdown = any(p.suffix in MARKDOWN_SUFFIXES for p in collection_dir.iterdir())
        except OSError:
            return "content"
        return "content" if has_markdown else "data"

    async def get_collection_type(self, name: str) -> CollectionType:
        """Collection type from the schema, else guessed from its files."""
        schemas = await self._load_schemas()
        if schemas and name in schemas:
            return schemas[name].type
        return self._detect_type(name)

    async def get_collection_schema(self, name: str) -> CollectionSchema:
        """Compiled schema of a collection.

        Falls back to an empty object schema when the collection has no schema
        or schemas cannot be loaded.
        """
        schemas = await self._load_schemas()
        if schemas is None:
            return CollectionSchema(name=name, type="content", schema=empty_object_schema())

        compiled = schemas.get(name)
        if compiled is None:
            logger.warning(f'No schema found for collection "{name}"')
            return CollectionSchema(
                name=name, type=self._detect_type(name), schema=empty_object_schema()
            )
        return compiled

    async def get_form_schema(self, name: str) -> JsonSchemaDoc:
        """Schema of a collection with block types attached for the form editor."""
        compiled = await self.get_collection_schema(name)
        return enrich_schema_with_block_types(compiled.schema, compiled.discriminated_unions)

    async def get_collection(self, name: str, locales: Sequence[str] | None = None) -> CollectionInfo:
        """One collection with entries and its form schema."""
        compiled = await self.get_collection_schema(name)
        return CollectionInfo(
            name=name,
            type=compiled.type,
            entries=self.get_collection_entries(name, locales),
            schema=enrich_schema_with_block_types(compiled.schema, compiled.discriminated_unions),
            discriminated_unions=compiled.discriminated_unions,
        )

    async def get_all_collections(
        self, locales: Sequence[str] | None = None
    ) -> list[CollectionInfo]:
        """Every collection in the content directory with its raw schema."""
        schemas = await self._load_schemas()
        if schemas is None:
            logger.warning("Using basic collection info without schemas")
            schemas = {}

        collections = []
        for name in self.get_collection_names():
            compiled = schemas.get(name)
            collections.append(
                CollectionInfo(
                    name=name,
                    type=compiled.type if compiled else self._detect_type(name),
                    entries=self.get_collection_entries(name, locales),
                    schema=compiled.schema if compiled else empty_object_schema(),
                    discriminated_unions=compiled.discriminated_unions if compiled else [],
                )
            )
        return collections

    async def has_block_editor(self, name: str) -> bool:
        """Whether a collection's schema has any discriminated union."""
        schemas = await self._load_schemas()
        if not schemas or name not in schemas:
            return False
        return bool(schemas[name].discriminated_unions)
