"""Process-wide cache of compiled collection schemas.

The first `load()` runs the compilation pipeline; concurrent callers share that
run, and later callers get the stored result until `invalidate()` is called.
"""

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, TypeAlias

from loguru import logger

from content_admin.schema.compiler import SchemaCompiler
from content_admin.schema.models import CollectionSchema
from content_admin.schema.watcher import SchemaWatcher

if TYPE_CHECKING:
    from content_admin.config import ContentAdminConfig

SchemaMap: TypeAlias = dict[str, CollectionSchema]
SchemaPipeline: TypeAlias = Callable[[], Awaitable[SchemaMap]]


class CacheState(Enum):
    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"


class SchemaCache:
    """Single-flight cache around a schema pipeline.

    State transitions all happen on the event loop thread:

        EMPTY --load()--> LOADING --success--> READY
                          LOADING --failure--> EMPTY
        any   --invalidate()--> EMPTY

    A load that is still running when invalidate() is called finishes for the
    callers already waiting on it, but its result is not stored.
    """

    def __init__(self, pipeline: SchemaPipeline, config: "ContentAdminConfig | None" = None):
        """Initialize the cache.

        Args:
            pipeline: Coroutine function producing the schema map.
            config: Configuration the pipeline was built from, if any. Used to
                set up a watcher for this cache.
        """
        self._pipeline = pipeline
        self.config = config
        self._schemas: SchemaMap | None = None
        self._task: asyncio.Task | None = None
        self._generation = 0

    @classmethod
    def for_config(cls, config: "ContentAdminConfig") -> "SchemaCache":
        """Create a cache that compiles the project described by config."""
        return cls(SchemaCompiler(config).compile, config=config)

    @property
    def state(self) -> CacheState:
        if self._schemas is not None:
            return CacheState.READY
        if self._task is not None:
            return CacheState.LOADING
        return CacheState.EMPTY

    async def load(self) -> SchemaMap:
        """Return the compiled schemas, running the pipeline if needed.

        Raises:
            SchemaEngineError: Whatever the pipeline raised, for every waiter
                of the failed run.
        """
        if self._schemas is not None:
            return self._schemas

        if self._task is None:
            logger.debug("Schema cache empty, starting load")
            self._task = asyncio.create_task(self._run(self._generation))

        # A cancelled caller must not cancel the load other callers share
        return await asyncio.shield(self._task)

    async def _run(self, generation: int) -> SchemaMap:
        try:
            schemas = await self._pipeline()
        except BaseException:
            if generation == self._generation:
                self._task = None
            raise

        if generation == self._generation:
            self._schemas = schemas
            self._task = None
            logger.info(f"Schema cache loaded with {len(schemas)} collection(s)")
        else:
            logger.debug("Discarding schemas from a load that finished after invalidation")
        return schemas

    def invalidate(self) -> None:
        """Drop cached schemas; the next load() recompiles."""
        self._generation += 1
        self._schemas = None
        self._task = None
        logger.info("Schema cache cleared")


# --- Default cache ---

_default_cache: SchemaCache | None = None
_default_watcher: SchemaWatcher | None = None


def get_schema_cache() -> SchemaCache:
    """Return the process-wide cache, creating it from the configuration on first use."""
    global _default_cache
    if _default_cache is None:
        from content_admin.config import ConfigManager

        _default_cache = SchemaCache.for_config(ConfigManager().load_config())
    return _default_cache


def set_schema_cache(cache: SchemaCache | None) -> None:
    """Replace the process-wide cache. None resets it to lazy creation."""
    global _default_cache
    _default_cache = cache


async def load_schemas() -> SchemaMap:
    """Load compiled schemas through the process-wide cache."""
    return await get_schema_cache().load()


def clear_schema_cache() -> None:
    """Invalidate the process-wide cache."""
    get_schema_cache().invalidate()


def watch_schema_config() -> SchemaWatcher | None:
    """Start watching the schema-definition files of the process-wide cache.

    Must be called with a running event loop. Calling it again while the
    watcher runs has no effect.

    Returns:
        The running watcher, or None when watching is disabled.
    """
    global _default_watcher
    if _default_watcher is not None and _default_watcher.running:
        return _default_watcher

    cache = get_schema_cache()
    config = cache.config
    if config is None:
        from content_admin.config import ConfigManager

        config = ConfigManager().load_config()

    if not config.watcher.enabled:
        logger.info("Schema watching disabled by configuration")
        return None

    _default_watcher = SchemaWatcher.for_config(cache, config)
    _default_watcher.start()
    return _default_watcher


async def stop_watching_schema_config() -> None:
    """Stop the watcher started by watch_schema_config()."""
    global _default_watcher
    if _default_watcher is not None:
        await _default_watcher.stop()
        _default_watcher = None
