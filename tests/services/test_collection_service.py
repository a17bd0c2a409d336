"""Tests for CollectionService."""

import pytest

from content_admin.schema.cache import SchemaCache
from content_admin.schema.enrichment import BLOCK_TYPES_KEY
from content_admin.schema.errors import LoadError
from content_admin.services.collection_service import CollectionService


@pytest.fixture
def content_dir(project_root):
    content = project_root / "src" / "content"
    for name in ("home.md", "about.mdx", "notes.txt"):
        (content / "pages" / name).write_text("---\ntitle: x\n---\n")
    (content / "authors" / "ada.json").write_text("{}")
    (content / "settings").mkdir()
    (content / "settings" / "site.json").write_text("{}")
    return content


@pytest.fixture
def service(config, content_dir):
    return CollectionService(config, SchemaCache.for_config(config))


class FailingPipeline:
    async def __call__(self):
        raise LoadError("broken config")


@pytest.fixture
def broken_service(config, content_dir):
    return CollectionService(config, SchemaCache(FailingPipeline()))


class TestEntries:
    def test_collection_names_are_directories(self, service):
        assert service.get_collection_names() == ["authors", "pages", "settings"]

    def test_entries_are_content_file_stems(self, service):
        assert service.get_collection_entries("pages") == ["about", "home"]
        assert service.get_collection_entries("authors") == ["ada"]

    def test_missing_collection_has_no_entries(self, service):
        assert service.get_collection_entries("nope") == []

    def test_locale_suffixes_deduplicated(self, service, content_dir):
        for name in ("home.en.md", "home.fr.md", "contact.EN.md"):
            (content_dir / "pages" / name).write_text("")

        entries = service.get_collection_entries("pages", locales=["en", "fr"])

        assert entries == ["about", "contact", "home"]

    def test_single_locale_keeps_suffixes(self, service, content_dir):
        (content_dir / "pages" / "home.en.md").write_text("")

        assert "home.en" in service.get_collection_entries("pages", locales=["en"])

    def test_missing_content_directory(self, tmp_path):
        from content_admin.config import ContentAdminConfig

        config = ContentAdminConfig(project_root=tmp_path)
        service = CollectionService(config, SchemaCache.for_config(config))

        assert service.get_collection_names() == []


class TestSchemas:
    @pytest.mark.asyncio
    async def test_collection_type_from_schema_and_files(self, service):
        assert await service.get_collection_type("authors") == "data"
        assert await service.get_collection_type("pages") == "content"
        # No schema declared: guessed from files
        assert await service.get_collection_type("settings") == "data"

    @pytest.mark.asyncio
    async def test_collection_schema(self, service):
        compiled = await service.get_collection_schema("pages")

        assert compiled.type == "content"
        assert len(compiled.discriminated_unions) == 1

    @pytest.mark.asyncio
    async def test_undeclared_collection_gets_fallback(self, service, log_messages):
        compiled = await service.get_collection_schema("settings")

        assert compiled.schema == {"type": "object", "properties": {}}
        assert compiled.type == "data"
        assert any('No schema found for collection "settings"' in m for m in log_messages)

    @pytest.mark.asyncio
    async def test_form_schema_has_block_types(self, service):
        schema = await service.get_form_schema("pages")

        assert list(schema["properties"]["blocks"][BLOCK_TYPES_KEY]) == ["heroBlock", "richText", "cta"]

    @pytest.mark.asyncio
    async def test_form_schema_edits_leave_cache_untouched(self, service):
        form = await service.get_form_schema("authors")
        form["properties"]["extra"] = {"type": "string"}
        info = await service.get_collection("authors")
        info.schema["properties"]["name"]["title"] = "changed"

        cached = await service.get_collection_schema("authors")
        assert "extra" not in cached.schema["properties"]
        assert cached.schema["properties"]["name"].get("title") != "changed"

    @pytest.mark.asyncio
    async def test_get_collection(self, service):
        info = await service.get_collection("pages")

        assert info.entries == ["about", "home"]
        assert info.entry_count == 2
        assert BLOCK_TYPES_KEY in info.schema["properties"]["blocks"]

    @pytest.mark.asyncio
    async def test_all_collections(self, service):
        collections = {c.name: c for c in await service.get_all_collections()}

        assert list(collections) == ["authors", "pages", "settings"]
        assert collections["pages"].discriminated_unions
        assert collections["settings"].type == "data"
        assert collections["settings"].schema == {"type": "object", "properties": {}}
        # Listing returns raw schemas
        assert BLOCK_TYPES_KEY not in collections["pages"].schema["properties"]["blocks"]

    @pytest.mark.asyncio
    async def test_has_block_editor(self, service):
        assert await service.has_block_editor("pages") is True
        assert await service.has_block_editor("authors") is False
        assert await service.has_block_editor("settings") is False


class TestSchemaFailures:
    @pytest.mark.asyncio
    async def test_fallbacks_when_schemas_fail(self, broken_service, log_messages):
        compiled = await broken_service.get_collection_schema("pages")
        assert compiled.type == "content"
        assert compiled.schema == {"type": "object", "properties": {}}

        assert await broken_service.get_collection_type("authors") == "data"
        assert await broken_service.has_block_editor("pages") is False

        collections = await broken_service.get_all_collections()
        assert [c.name for c in collections] == ["authors", "pages", "settings"]
        assert all(c.discriminated_unions == [] for c in collections)

        assert any("Could not load schemas: broken config" in m for m in log_messages)
