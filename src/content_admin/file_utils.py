"""File utility functions."""

import uuid
from collections.abc import Iterable
from pathlib import Path

import aiofiles
import aiofiles.os
from loguru import logger


class FileError(Exception):
    """Base class for file-related errors."""


class FileWriteError(FileError):
    """Error writing to a file."""


def find_first_existing(paths: Iterable[Path]) -> Path | None:
    """Return the first path that is an existing file.

    Args:
        paths: Candidate paths, in priority order

    Returns:
        The first existing file, or None
    """
    for path in paths:
        if path.is_file():
            return path
    return None


async def write_temp_file(
    directory: str | Path, content: str, prefix: str = "tmp-", suffix: str = ""
) -> Path:
    """Write content to a new uniquely named file in directory.

    Uses aiofiles for non-blocking I/O.

    Args:
        directory: Directory to create the file in (created if missing)
        content: Content to write
        prefix: File name prefix
        suffix: File name suffix, e.g. ".py"

    Returns:
        Path of the written file

    Raises:
        FileWriteError: If the file cannot be written
    """
    directory = Path(directory)
    try:
        await aiofiles.os.makedirs(directory, exist_ok=True)
    except OSError as e:
        raise FileWriteError(f"Could not create file in {directory}: {e}") from e

    temp_path = directory / f"{prefix}{uuid.uuid4().hex}{suffix}"
    try:
        # Exclusive mode: never overwrite an existing file
        async with aiofiles.open(temp_path, mode="x", encoding="utf-8") as f:
            await f.write(content)
    except OSError as e:
        await remove_file(temp_path)
        raise FileWriteError(f"Could not write {temp_path}: {e}") from e

    logger.debug(f"Wrote {len(content)} characters to {temp_path}")
    return temp_path


async def remove_file(path: str | Path) -> bool:
    """Delete a file if it exists.

    Args:
        path: File to delete

    Returns:
        True if the file is gone afterwards
    """
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning(f"Could not remove {path}: {e}")
        return False
    return True
