"""Durable, content-addressed cache of generated variants.

Files are named ``{source stem}.{hash}.{format}`` and the presence of a file is
the whole index. Existence-check-then-write is not atomic across processes:
two builds sharing a cache directory may both write the same file.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from .errors import CacheIOError
from .identity import asset_hash

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutputAsset:
    file_name: str
    name: str
    source: bytes
    needs_code_reference: bool = True
    type: str = "asset"


def cache_filename(source_path: str | Path, identity: str, source_hash: str, fmt: str) -> str:
    base = Path(source_path).stem
    return f"{base}.{asset_hash(identity + source_hash)}.{fmt}"


class DiskCache:
    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)

    def path_for(self, name: str) -> Path:
        return self.cache_dir / name

    async def exists(self, name: str) -> bool:
        return await asyncio.to_thread(self.path_for(name).is_file)

    async def ensure(self, name: str, producer: Callable[[], bytes]) -> bytes:
        """Return the cached bytes for ``name``, producing and writing them first if absent."""
        path = self.path_for(name)
        if await self.exists(name):
            logger.debug(f"cache hit: {name}")
        else:
            logger.debug(f"cache miss: {name}")
            data = await asyncio.to_thread(producer)
            try:
                await asyncio.to_thread(self._write, path, data)
            except OSError as e:
                raise CacheIOError("write", path, str(e)) from e
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise CacheIOError("read", path, str(e)) from e

    async def list_files(self) -> list[str]:
        return await asyncio.to_thread(self._list)

    async def purge(self, keep: Iterable[str]) -> list[str]:
        """Delete every cached file whose name is not in ``keep``.

        Failures are logged per file and never raised.
        """
        used = set(keep)
        try:
            names = await self.list_files()
        except OSError as e:
            logger.warning(str(CacheIOError("list", self.cache_dir, str(e))))
            return []

        deleted: list[str] = []
        for name in sorted(n for n in names if n not in used):
            path = self.path_for(name)
            try:
                await asyncio.to_thread(path.unlink, missing_ok=True)
            except OSError as e:
                logger.warning(str(CacheIOError("delete", path, str(e))))
                continue
            logger.info(f"purged unused cache file {name}")
            deleted.append(name)
        return deleted

    def _list(self) -> list[str]:
        if not self.cache_dir.is_dir():
            return []
        return sorted(p.name for p in self.cache_dir.iterdir() if p.is_file())

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
