"""Two-tier cache for enhanced images.

Memory holds complete EnhancedImage values keyed by a content hash. Every
insert is mirrored to disk as ``<key>.jpg`` plus ``<key>.json`` (metadata
only) so a fresh process can read earlier results back. The JSON file is
written last and acts as the commit marker for the pair.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import os
import tempfile
import threading
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from pydantic import ValidationError

from image_enhancer.models.enhancement import EnhancedImage, EnhancementConfig, ImageMetadata
from image_enhancer.services.exceptions import EnhancementCancelledError
from image_enhancer.setup_logging import get_logger

logger = get_logger(__name__)


def _json_hash(data: Any) -> str:
    """Compute a stable hash for config/source payloads."""

    def _default(obj: Any) -> Any:
        if hasattr(obj, "model_dump"):
            return obj.model_dump(mode="json")
        if isinstance(obj, (set, frozenset)):
            return sorted(list(obj))
        raise TypeError(f"Object of type {type(obj)} is not JSON serializable")

    payload = json.dumps(data, sort_keys=True, default=_default)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheStats:
    hits: int
    disk_hits: int
    misses: int
    entries: int
    shared_waits: int


class ImageCache:
    """Memory + disk cache with single-flight computation per key."""

    def __init__(self, directory: str, max_entries: Optional[int] = None):
        self.directory = Path(directory)
        self.max_entries = max_entries
        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, EnhancedImage]" = OrderedDict()
        self._inflight: Dict[str, asyncio.Task] = {}
        self._pending_writes: Set[asyncio.Task] = set()
        self._hits = 0
        self._disk_hits = 0
        self._misses = 0
        self._shared_waits = 0

    @staticmethod
    def key(source_identifier: str, config: EnhancementConfig) -> str:
        """Fingerprint of a source identifier and the full option set."""
        return _json_hash({"source": source_identifier, "config": config})

    # --- paths -----------------------------------------------------------

    def _image_path(self, key: str) -> Path:
        return self.directory / f"{key}.jpg"

    def _metadata_path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    # --- memory tier -----------------------------------------------------

    def _remember(self, key: str, value: EnhancedImage) -> None:
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug(f"Evicted {evicted[:12]} from memory cache")

    def _lookup_memory(self, key: str) -> Optional[EnhancedImage]:
        with self._lock:
            value = self._entries.get(key)
            if value is not None:
                self._entries.move_to_end(key)
                self._hits += 1
            return value

    # --- disk tier -------------------------------------------------------

    def _read_disk(self, key: str) -> Optional[EnhancedImage]:
        metadata_path = self._metadata_path(key)
        image_path = self._image_path(key)
        if not metadata_path.exists() or not image_path.exists():
            return None

        try:
            metadata = ImageMetadata.model_validate_json(metadata_path.read_text(encoding="utf-8"))
            buffer = image_path.read_bytes()
        except (OSError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable cache entry {key[:12]}: {e}")
            return None

        if metadata.size != len(buffer):
            logger.warning(
                f"Ignoring incomplete cache entry {key[:12]}: "
                f"expected {metadata.size} bytes, found {len(buffer)}"
            )
            return None

        return EnhancedImage(buffer=buffer, metadata=metadata, cache_key=key)

    @staticmethod
    def _atomic_write(path: Path, data: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _write_disk(self, key: str, value: EnhancedImage) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._atomic_write(self._image_path(key), value.buffer)
            metadata_json = value.metadata.model_dump_json(by_alias=True, indent=2)
            self._atomic_write(self._metadata_path(key), metadata_json.encode("utf-8"))
            logger.debug(f"Persisted cache entry {key[:12]} ({len(value.buffer) // 1024}KB)")
        except OSError as e:
            logger.warning(f"Failed to persist cache entry {key[:12]}: {e}")

    # --- public API ------------------------------------------------------

    async def get(self, key: str) -> Optional[EnhancedImage]:
        """Memory first, then the disk mirror. Disk hits are promoted."""
        value = self._lookup_memory(key)
        if value is not None:
            logger.debug(f"✓ Cache HIT (memory) {key[:12]}")
            return value

        value = await asyncio.to_thread(self._read_disk, key)
        if value is not None:
            self._remember(key, value)
            with self._lock:
                self._disk_hits += 1
            logger.debug(f"✓ Cache HIT (disk) {key[:12]}")
            return value

        with self._lock:
            self._misses += 1
        logger.debug(f"✗ Cache MISS {key[:12]}")
        return None

    def put(self, key: str, value: EnhancedImage) -> None:
        """Insert into memory and mirror to disk in the background."""
        self._remember(key, value)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._write_disk(key, value)
            return

        task = loop.create_task(asyncio.to_thread(self._write_disk, key, value))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def get_or_compute(
        self,
        key: str,
        factory: Callable[[], Awaitable[EnhancedImage]],
    ) -> EnhancedImage:
        """Return the cached value or run ``factory`` once for all concurrent callers.

        The first caller for a key owns the computation. Later callers await
        the same task. Only successful results are stored. If the owner is
        cancelled the shared task is cancelled too and every waiter receives
        EnhancementCancelledError.
        """
        task = self._inflight.get(key)
        if task is not None:
            with self._lock:
                self._shared_waits += 1
            logger.debug(f"Joining in-flight computation for {key[:12]}")
            return await asyncio.shield(task)

        task = asyncio.create_task(self._compute(key, factory))
        self._inflight[key] = task
        task.add_done_callback(lambda t: self._finish(key, t))

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            task.cancel()
            raise

    async def _compute(
        self,
        key: str,
        factory: Callable[[], Awaitable[EnhancedImage]],
    ) -> EnhancedImage:
        try:
            cached = await self.get(key)
            if cached is not None:
                return cached
            value = await factory()
        except asyncio.CancelledError:
            raise EnhancementCancelledError() from None
        self.put(key, value)
        return value

    def _finish(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the outcome retrieved when the owner is gone and nobody waits
        if not task.cancelled():
            task.exception()

    async def flush(self) -> None:
        """Wait for all scheduled disk writes."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    def clear(self) -> None:
        """Drop every memory entry. Disk files are kept."""
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                disk_hits=self._disk_hits,
                misses=self._misses,
                entries=len(self._entries),
                shared_waits=self._shared_waits,
            )
