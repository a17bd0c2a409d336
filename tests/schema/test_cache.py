"""Tests for content_admin.schema.cache -- single-flight loading and invalidation."""

import asyncio

import pytest

from content_admin.schema import cache as cache_module
from content_admin.schema.cache import (
    CacheState,
    SchemaCache,
    clear_schema_cache,
    get_schema_cache,
    load_schemas,
    set_schema_cache,
    stop_watching_schema_config,
    watch_schema_config,
)
from content_admin.schema.errors import ConfigShapeError, LoadError
from content_admin.schema.models import CollectionSchema


class CountingPipeline:
    """Pipeline stand-in that counts runs and can be held open."""

    def __init__(self, error: Exception | None = None):
        self.calls = 0
        self.error = error
        self.release = asyncio.Event()
        self.release.set()

    async def __call__(self):
        self.calls += 1
        run = self.calls
        await self.release.wait()
        await asyncio.sleep(0.01)
        if self.error is not None:
            raise self.error
        return {"pages": CollectionSchema(name="pages", type="content", schema={"run": run})}


@pytest.fixture
def pipeline():
    return CountingPipeline()


@pytest.fixture
def cache(pipeline):
    return SchemaCache(pipeline)


class TestLoad:
    @pytest.mark.asyncio
    async def test_second_load_uses_cache(self, cache, pipeline):
        assert cache.state is CacheState.EMPTY

        first = await cache.load()
        second = await cache.load()

        assert first is second
        assert pipeline.calls == 1
        assert cache.state is CacheState.READY

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_run(self, cache, pipeline):
        results = await asyncio.gather(*(cache.load() for _ in range(20)))

        assert pipeline.calls == 1
        assert all(result is results[0] for result in results)

    @pytest.mark.asyncio
    async def test_state_is_loading_while_running(self, cache, pipeline):
        pipeline.release.clear()

        task = asyncio.create_task(cache.load())
        await asyncio.sleep(0)
        assert cache.state is CacheState.LOADING

        pipeline.release.set()
        await task
        assert cache.state is CacheState.READY

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter_and_resets(self):
        pipeline = CountingPipeline(error=LoadError("boom"))
        cache = SchemaCache(pipeline)

        results = await asyncio.gather(*(cache.load() for _ in range(5)), return_exceptions=True)

        assert pipeline.calls == 1
        assert all(isinstance(r, LoadError) for r in results)
        assert cache.state is CacheState.EMPTY

        pipeline.error = None
        schemas = await cache.load()
        assert pipeline.calls == 2
        assert "pages" in schemas

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_shared_load(self, cache, pipeline):
        pipeline.release.clear()
        first = asyncio.create_task(cache.load())
        second = asyncio.create_task(cache.load())
        await asyncio.sleep(0)

        first.cancel()
        pipeline.release.set()

        schemas = await second
        assert "pages" in schemas
        assert first.cancelled()
        assert cache.state is CacheState.READY
        assert pipeline.calls == 1


class TestInvalidate:
    @pytest.mark.asyncio
    async def test_invalidate_forces_reload(self, cache, pipeline):
        first = await cache.load()
        cache.invalidate()

        assert cache.state is CacheState.EMPTY
        second = await cache.load()

        assert pipeline.calls == 2
        assert second is not first
        assert second["pages"].schema == {"run": 2}

    @pytest.mark.asyncio
    async def test_invalidate_during_load_discards_result(self, cache, pipeline):
        pipeline.release.clear()
        stale = asyncio.create_task(cache.load())
        await asyncio.sleep(0)

        cache.invalidate()
        assert cache.state is CacheState.EMPTY

        pipeline.release.set()
        stale_result = await stale

        # Waiters of the stale run still get its result, but it is not stored
        assert stale_result["pages"].schema == {"run": 1}
        assert cache.state is CacheState.EMPTY

        fresh = await cache.load()
        assert fresh["pages"].schema == {"run": 2}
        assert cache.state is CacheState.READY

    @pytest.mark.asyncio
    async def test_stale_load_does_not_clobber_newer_load(self, cache, pipeline):
        pipeline.release.clear()
        stale = asyncio.create_task(cache.load())
        await asyncio.sleep(0)
        cache.invalidate()
        fresh = asyncio.create_task(cache.load())
        await asyncio.sleep(0)

        assert cache.state is CacheState.LOADING
        pipeline.release.set()
        await asyncio.gather(stale, fresh)

        assert (await cache.load())["pages"].schema == {"run": 2}
        assert pipeline.calls == 2


class TestDefaultCache:
    @pytest.mark.asyncio
    async def test_module_functions_use_default_cache(self, cache, pipeline):
        set_schema_cache(cache)

        await load_schemas()
        await load_schemas()
        assert pipeline.calls == 1

        clear_schema_cache()
        assert cache.state is CacheState.EMPTY
        await load_schemas()
        assert pipeline.calls == 2

    def test_default_cache_built_from_environment(self, project_root, monkeypatch):
        monkeypatch.setenv("CONTENT_ADMIN_PROJECT_ROOT", str(project_root))

        default = get_schema_cache()

        assert get_schema_cache() is default
        assert default.config.project_root.resolve() == project_root.resolve()

    @pytest.mark.asyncio
    async def test_default_cache_compiles_project(self, config):
        set_schema_cache(SchemaCache.for_config(config))

        schemas = await load_schemas()

        assert list(schemas) == ["pages", "authors"]

    @pytest.mark.asyncio
    async def test_missing_collections_export_leaves_cache_empty(
        self, project_root, config, write_module
    ):
        write_module(project_root / "src" / "content" / "config.py", "schemas = {}\n")
        set_schema_cache(SchemaCache.for_config(config))
        cache = get_schema_cache()

        with pytest.raises(ConfigShapeError, match="collections"):
            await load_schemas()

        assert cache.state is CacheState.EMPTY
        assert list(config.stage_path.iterdir()) == []

        # The next load runs the pipeline again and fails the same way
        with pytest.raises(ConfigShapeError):
            await cache.load()
        assert cache.state is CacheState.EMPTY

    @pytest.mark.asyncio
    async def test_watch_disabled_by_configuration(self, project_root, monkeypatch):
        monkeypatch.setenv("CONTENT_ADMIN_PROJECT_ROOT", str(project_root))
        monkeypatch.setenv("CONTENT_ADMIN_WATCHER__ENABLED", "false")

        assert watch_schema_config() is None

    @pytest.mark.asyncio
    async def test_watch_is_idempotent(self, config):
        set_schema_cache(SchemaCache.for_config(config))

        watcher = watch_schema_config()
        try:
            assert watcher is not None
            assert watcher.running
            assert watch_schema_config() is watcher
        finally:
            await asyncio.wait_for(stop_watching_schema_config(), timeout=10)

        assert not watcher.running
        assert cache_module._default_watcher is None
