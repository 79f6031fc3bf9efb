from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, Protocol

from .errors import QuotaExceededError
from .executors import run_sync
from .models import CustomFontRecord, FontKey, StoreStats, font_key, normalize_family
from .retry import RetryPolicy
from .utils import atomic_write, atomic_write_bytes

MIB = 1024 * 1024
DEFAULT_MAX_BYTES = 50 * MIB

logger = logging.getLogger(__name__)


class FontStorage(Protocol):
    async def load_all(self) -> list[CustomFontRecord]:  # pragma: no cover - interface
        ...

    async def put(self, record: CustomFontRecord) -> None:  # pragma: no cover - interface
        ...

    async def remove(self, font_id: str) -> None:  # pragma: no cover - interface
        ...

    async def clear(self) -> None:  # pragma: no cover - interface
        ...


class MemoryFontStorage:
    """Process-local storage; contents vanish with the process."""

    def __init__(self) -> None:
        self._records: dict[str, CustomFontRecord] = {}

    async def load_all(self) -> list[CustomFontRecord]:
        return list(self._records.values())

    async def put(self, record: CustomFontRecord) -> None:
        self._records[record.id] = record

    async def remove(self, font_id: str) -> None:
        self._records.pop(font_id, None)

    async def clear(self) -> None:
        self._records.clear()


class DirectoryFontStorage:
    """Durable storage: content-addressed font binaries plus a JSON index.

    A binary is written under the hash of its bytes before the index points
    at it, and files no longer referenced by the index are removed after the
    index write. A failed index write leaves the previous record intact.
    """

    def __init__(self, root: Path) -> None:
        self._root = root
        self._fonts_dir = root / "fonts"
        self._index_file = root / "index.json"

    @property
    def root(self) -> Path:
        return self._root

    def _blob_name(self, data: bytes) -> str:
        return f"{hashlib.sha256(data).hexdigest()[:32]}.font"

    def _read_index(self) -> dict[str, dict[str, object]]:
        if not self._index_file.exists():
            return {}
        data = json.loads(self._index_file.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            return {}
        return {str(key): dict(value) for key, value in data.items() if isinstance(value, dict)}

    def _write_index(self, index: dict[str, dict[str, object]]) -> None:
        atomic_write(self._index_file, json.dumps(index, indent=2, sort_keys=True))

    def _discard_unreferenced(self, names: set[str], index: dict[str, dict[str, object]]) -> None:
        referenced = {str(meta.get("file")) for meta in index.values()}
        for name in names - referenced:
            (self._fonts_dir / name).unlink(missing_ok=True)

    def _load_all(self) -> list[CustomFontRecord]:
        records: list[CustomFontRecord] = []
        for font_id, meta in self._read_index().items():
            path = self._fonts_dir / str(meta.get("file", ""))
            if not path.is_file():
                logger.warning("Custom font %s is indexed but its file is missing", font_id)
                continue
            records.append(
                CustomFontRecord(
                    id=font_id,
                    family=str(meta.get("family", "")),
                    weight=int(meta.get("weight", 400)),
                    style="italic" if meta.get("style") == "italic" else "normal",
                    data=path.read_bytes(),
                )
            )
        return records

    def _put(self, record: CustomFontRecord) -> None:
        index = self._read_index()
        name = self._blob_name(record.data)
        path = self._fonts_dir / name
        created = not path.exists()
        if created:
            atomic_write_bytes(path, record.data)
        previous = index.get(record.id)
        meta = record.metadata()
        meta.pop("id")
        meta["file"] = name
        updated = dict(index)
        updated[record.id] = meta
        try:
            self._write_index(updated)
        except Exception:
            if created:
                self._discard_unreferenced({name}, index)
            raise
        if previous is not None:
            self._discard_unreferenced({str(previous.get("file"))}, updated)

    def _remove(self, font_id: str) -> None:
        index = self._read_index()
        meta = index.pop(font_id, None)
        if meta is None:
            return
        self._write_index(index)
        self._discard_unreferenced({str(meta.get("file"))}, index)

    def _clear(self) -> None:
        self._write_index({})
        if self._fonts_dir.exists():
            for path in self._fonts_dir.glob("*.font"):
                path.unlink(missing_ok=True)

    async def load_all(self) -> list[CustomFontRecord]:
        return await run_sync(self._load_all)

    async def put(self, record: CustomFontRecord) -> None:
        await run_sync(self._put, record)

    async def remove(self, font_id: str) -> None:
        await run_sync(self._remove, font_id)

    async def clear(self) -> None:
        await run_sync(self._clear)


class CustomFontStore:
    """Quota-enforcing store for user-supplied fonts.

    Mutations are serialized; the in-memory index is swapped in a single
    assignment after the backend write succeeds, so readers only ever see
    complete states.
    """

    def __init__(
        self,
        storage: FontStorage | None = None,
        *,
        max_bytes: int = DEFAULT_MAX_BYTES,
        max_fonts: int | None = None,
        retry: RetryPolicy | None = None,
    ) -> None:
        self._storage = storage or MemoryFontStorage()
        self._retry = retry
        self._max_bytes = max_bytes
        self._max_fonts = max_fonts or None
        self._records: dict[str, CustomFontRecord] | None = None
        self._lock = asyncio.Lock()

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    async def _write(self, operation: Callable[[], Awaitable[None]]) -> None:
        if self._retry is None:
            await operation()
            return
        await self._retry.execute(operation)

    async def _loaded(self) -> dict[str, CustomFontRecord]:
        if self._records is not None:
            return self._records
        async with self._lock:
            if self._records is None:
                records = await self._storage.load_all()
                self._records = {record.id: record for record in records}
        return self._records

    async def get_all(self) -> list[CustomFontRecord]:
        return list((await self._loaded()).values())

    async def get_by_id(self, font_id: str) -> CustomFontRecord | None:
        return (await self._loaded()).get(font_id)

    async def find(self, family: str, weight: int, style: str) -> CustomFontRecord | None:
        key = font_key(family, weight, style)
        for record in (await self._loaded()).values():
            if record.key == key:
                return record
        return None

    async def families(self) -> dict[str, str]:
        """Map casefolded family names to their stored spelling."""

        names: dict[str, str] = {}
        for record in (await self._loaded()).values():
            family = normalize_family(record.family)
            names.setdefault(family.casefold(), family)
        return names

    async def lookup(self) -> dict[FontKey, bytes]:
        return {record.key: record.data for record in (await self._loaded()).values()}

    async def save(self, record: CustomFontRecord) -> None:
        await self._loaded()
        async with self._lock:
            current = self._records or {}
            existing = current.get(record.id)
            used = sum(item.size_bytes for item in current.values())
            if existing is not None:
                used -= existing.size_bytes
            total = used + record.size_bytes
            if total > self._max_bytes:
                raise QuotaExceededError(
                    f"Total storage would exceed {self._max_bytes / MIB:.0f}MB "
                    f"(current: {used / MIB:.1f}MB, font: {record.size_bytes / MIB:.1f}MB)"
                )
            if self._max_fonts is not None and existing is None and len(current) >= self._max_fonts:
                raise QuotaExceededError(f"Maximum {self._max_fonts} custom fonts allowed")
            await self._write(lambda: self._storage.put(record))
            updated = dict(current)
            updated[record.id] = record
            self._records = updated
        logger.debug("Saved custom font %s (%s, %d bytes)", record.id, record.family, record.size_bytes)

    async def delete_by_id(self, font_id: str) -> bool:
        await self._loaded()
        async with self._lock:
            current = self._records or {}
            if font_id not in current:
                return False
            await self._write(lambda: self._storage.remove(font_id))
            updated = dict(current)
            del updated[font_id]
            self._records = updated
        logger.debug("Deleted custom font %s", font_id)
        return True

    async def delete_all(self) -> None:
        await self._loaded()
        async with self._lock:
            await self._write(self._storage.clear)
            self._records = {}
        logger.debug("Cleared all custom fonts")

    async def get_stats(self) -> StoreStats:
        records = await self._loaded()
        return StoreStats(
            count=len(records),
            total_bytes=sum(record.size_bytes for record in records.values()),
            max_bytes=self._max_bytes,
        )


__all__ = [
    "CustomFontStore",
    "DEFAULT_MAX_BYTES",
    "DirectoryFontStorage",
    "FontStorage",
    "MemoryFontStorage",
]
