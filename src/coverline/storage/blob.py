"""Blob storage for uploaded PDFs."""

import asyncio
from pathlib import Path
from typing import Protocol


class Storage(Protocol):
    """Anything that can hand back the bytes stored at a path."""

    async def download(self, path: str) -> bytes: ...


class LocalFileStorage:
    """Storage backed by a local directory.

    Relative paths resolve against `root`; absolute paths are read as-is.
    """

    def __init__(self, root: Path | str = "."):
        self.root = Path(root)

    def resolve(self, path: str) -> Path:
        candidate = Path(path)
        return candidate if candidate.is_absolute() else self.root / candidate

    async def download(self, path: str) -> bytes:
        target = self.resolve(path)
        if not target.is_file():
            raise FileNotFoundError(f"No stored file at {target}")
        return await asyncio.to_thread(target.read_bytes)
