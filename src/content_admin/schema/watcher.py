"""Watches schema-definition files and reloads the schema cache on change."""

import asyncio
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger
from watchfiles import Change, awatch

if TYPE_CHECKING:
    from content_admin.config import ContentAdminConfig
    from content_admin.schema.cache import SchemaCache


class SchemaWatcher:
    """Invalidates and reloads a SchemaCache when schema sources change.

    The directories holding the schema-definition candidates are watched
    recursively, so local modules next to the definition file count too.
    """

    def __init__(
        self,
        cache: "SchemaCache",
        paths: Iterable[Path],
        debounce_ms: int = 500,
        ignore: Iterable[Path] = (),
    ):
        """Initialize the watcher.

        Args:
            cache: Cache to invalidate and reload.
            paths: Schema-definition candidate files; their directories are watched.
            debounce_ms: How long a batch of changes is collected before it is handled.
            ignore: Directories whose changes are ignored (the staging directory).
        """
        self.cache = cache
        self.paths = [Path(p) for p in paths]
        self.debounce_ms = debounce_ms
        self.ignore = [Path(p).resolve() for p in ignore]
        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None

    @classmethod
    def for_config(cls, cache: "SchemaCache", config: "ContentAdminConfig") -> "SchemaWatcher":
        return cls(
            cache,
            config.schema_candidate_paths,
            debounce_ms=config.watch_debounce_ms,
            ignore=[config.stage_path],
        )

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def directories(self) -> list[Path]:
        """Existing directories that hold schema-definition candidates."""
        result: list[Path] = []
        for path in self.paths:
            directory = path.parent.resolve()
            if directory.is_dir() and directory not in result:
                result.append(directory)
        return result

    def is_relevant(self, change: Change, path: str) -> bool:
        """Whether a single change should trigger a reload."""
        if change == Change.deleted:
            return False
        file_path = Path(path).resolve()
        if file_path.suffix != ".py":
            return False
        if any(ignored == file_path or ignored in file_path.parents for ignored in self.ignore):
            return False
        return any(directory in file_path.parents for directory in self.directories)

    def start(self) -> None:
        """Start watching in a background task. Does nothing if already running."""
        if self.running:
            return
        directories = self.directories
        if not directories:
            logger.warning("No schema-definition directories exist, not watching")
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(directories, self._stop_event))

    async def _run(self, directories: list[Path], stop_event: asyncio.Event) -> None:
        logger.info(f"Watching schema definitions in {', '.join(str(d) for d in directories)}")
        try:
            async for changes in awatch(
                *directories,
                debounce=self.debounce_ms,
                stop_event=stop_event,
                watch_filter=self.is_relevant,
                recursive=True,
            ):
                await self.handle_changes(changes)
        except Exception as e:
            logger.error(f"Schema watcher stopped unexpectedly: {e}")
        finally:
            logger.info("Schema watcher stopped")

    async def handle_changes(self, changes: set[tuple[Change, str]]) -> bool:
        """Handle one batch of file changes.

        Args:
            changes: (change, path) pairs as yielded by watchfiles.

        Returns:
            True if the batch triggered a reload.
        """
        relevant = sorted({path for change, path in changes if self.is_relevant(change, path)})
        if not relevant:
            return False

        logger.info(f"Schema definition changed ({', '.join(relevant)}), reloading")
        self.cache.invalidate()
        try:
            schemas = await self.cache.load()
        except Exception as e:
            logger.warning(f"Schema reload failed: {e}")
        else:
            logger.info(f"Schemas reloaded: {len(schemas)} collection(s)")
        return True

    async def stop(self) -> None:
        """Stop watching and wait for the background task to end."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._stop_event = None
