"""
bbl/utils/ephemeral_file.py

Async context manager for secrets that child processes need as files (the
jumpbox private key, the GCP service account key). The file lives in a private
temp directory that is removed on every exit path.
"""

import os
import tempfile
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import aiofiles


def _default_parent_dir() -> str:
    # Prefer memory-backed storage when the platform has it.
    return "/dev/shm" if os.path.isdir("/dev/shm") else tempfile.gettempdir()


@asynccontextmanager
async def ephemeral_file(
    file_name: str,
    content: str,
    *,
    prefix: str = "bbl-",
    parent_dir: Optional[str] = None,
) -> AsyncGenerator[str, None]:
    """
    Write `content` to a 0600 file in a fresh 0700 directory and yield its path.

    Args:
        file_name: Name of the file inside the ephemeral directory.
        content: Text to write.
        prefix: Prefix for the ephemeral directory name.
        parent_dir: Where to create the directory. Defaults to /dev/shm when
            present, otherwise the system temp dir.

    Yields:
        str: The absolute path of the written file.
    """
    ephemeral_dir = tempfile.mkdtemp(dir=parent_dir or _default_parent_dir(), prefix=prefix)
    path = os.path.join(ephemeral_dir, file_name)
    try:
        async with aiofiles.open(path, "w") as f:
            await f.write(content)
        os.chmod(path, 0o600)
        yield path
    finally:
        if os.path.isdir(ephemeral_dir):
            for item in os.listdir(ephemeral_dir):
                item_path = os.path.join(ephemeral_dir, item)
                if os.path.isfile(item_path) or os.path.islink(item_path):
                    os.remove(item_path)
            os.rmdir(ephemeral_dir)


__all__ = ["ephemeral_file"]
