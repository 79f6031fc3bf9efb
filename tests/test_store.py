import asyncio
from pathlib import Path

import pytest

from font_pipeline.errors import QuotaExceededError, RetryExhaustedError
from font_pipeline.models import CustomFontRecord
from font_pipeline.retry import RetryConfig, RetryPolicy
from font_pipeline.store import CustomFontStore, DirectoryFontStorage, MemoryFontStorage

TTF = b"\x00\x01\x00\x00"


def make_record(font_id: str, size: int, family: str = "Brand Sans", weight: int = 400) -> CustomFontRecord:
    return CustomFontRecord(id=font_id, family=family, weight=weight, style="normal", data=TTF + b"\x00" * (size - 4))


class FlakyStorage(MemoryFontStorage):
    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.attempts = 0

    async def put(self, record: CustomFontRecord) -> None:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise OSError("disk busy")
        await super().put(record)


async def no_sleep(_: float) -> None:
    return None


def test_save_and_lookup() -> None:
    async def scenario() -> None:
        store = CustomFontStore(max_bytes=1000)
        await store.save(make_record("brand-regular", 100))
        await store.save(make_record("brand-bold", 200, weight=700))
        assert (await store.get_by_id("brand-bold")).weight == 700
        assert await store.find("brand sans", 700, "normal") is not None
        assert await store.families() == {"brand sans": "Brand Sans"}
        assert len(await store.lookup()) == 2
        stats = await store.get_stats()
        assert stats.count == 2
        assert stats.total_bytes == 300
        assert stats.percent_used == 30.0

    asyncio.run(scenario())


def test_quota_failure_leaves_state_unchanged() -> None:
    async def scenario() -> None:
        store = CustomFontStore(max_bytes=1000)
        await store.save(make_record("a", 600))
        before = await store.get_stats()
        with pytest.raises(QuotaExceededError):
            await store.save(make_record("b", 500))
        after = await store.get_stats()
        assert after.as_dict() == before.as_dict()
        assert await store.get_by_id("b") is None

    asyncio.run(scenario())


def test_overwrite_counts_only_new_size() -> None:
    async def scenario() -> None:
        store = CustomFontStore(max_bytes=1000)
        await store.save(make_record("a", 900))
        await store.save(make_record("a", 950))
        stats = await store.get_stats()
        assert stats.count == 1
        assert stats.total_bytes == 950

    asyncio.run(scenario())


def test_font_count_limit() -> None:
    async def scenario() -> None:
        store = CustomFontStore(max_bytes=10_000, max_fonts=1)
        await store.save(make_record("a", 10))
        with pytest.raises(QuotaExceededError) as exc:
            await store.save(make_record("b", 10))
        assert "Maximum 1" in exc.value.message

    asyncio.run(scenario())


def test_delete_by_id_and_delete_all() -> None:
    async def scenario() -> None:
        store = CustomFontStore()
        await store.save(make_record("a", 10))
        await store.save(make_record("b", 10))
        assert await store.delete_by_id("a") is True
        assert await store.delete_by_id("a") is False
        await store.delete_all()
        assert (await store.get_stats()).count == 0

    asyncio.run(scenario())


def test_directory_storage_survives_restart(tmp_path: Path) -> None:
    async def scenario() -> None:
        first = CustomFontStore(DirectoryFontStorage(tmp_path))
        await first.save(make_record("brand/regular", 64))
        await first.save(make_record("other", 32))
        await first.delete_by_id("other")

        second = CustomFontStore(DirectoryFontStorage(tmp_path))
        records = await second.get_all()
        assert [record.id for record in records] == ["brand/regular"]
        assert records[0].data == make_record("brand/regular", 64).data

    asyncio.run(scenario())
    assert (tmp_path / "index.json").exists()
    assert len(list((tmp_path / "fonts").glob("*.font"))) == 1


def test_backend_writes_are_retried() -> None:
    async def scenario() -> None:
        storage = FlakyStorage(failures=2)
        policy = RetryPolicy(RetryConfig(max_attempts=3, base_delay_ms=1), sleep=no_sleep)
        store = CustomFontStore(storage, retry=policy)
        await store.save(make_record("a", 10))
        assert storage.attempts == 3
        assert (await store.get_stats()).count == 1

    asyncio.run(scenario())


def test_failed_backend_write_keeps_index() -> None:
    async def scenario() -> None:
        storage = FlakyStorage(failures=5)
        policy = RetryPolicy(RetryConfig(max_attempts=2, base_delay_ms=1), sleep=no_sleep)
        store = CustomFontStore(storage, retry=policy)
        with pytest.raises(RetryExhaustedError):
            await store.save(make_record("a", 10))
        assert (await store.get_stats()).count == 0

    asyncio.run(scenario())


def test_failed_index_write_keeps_previous_font(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    old = CustomFontRecord(id="a", family="Old", weight=400, style="normal", data=TTF + b"OLD")
    new = CustomFontRecord(id="a", family="New", weight=700, style="normal", data=TTF + b"NEWDATA")

    def disk_full(*args: object, **kwargs: object) -> None:
        raise OSError("disk full")

    async def scenario() -> None:
        store = CustomFontStore(DirectoryFontStorage(tmp_path))
        await store.save(old)
        with monkeypatch.context() as patch:
            patch.setattr("font_pipeline.store.atomic_write", disk_full)
            with pytest.raises(OSError):
                await store.save(new)
        assert (await store.get_by_id("a")) == old

        reloaded = await CustomFontStore(DirectoryFontStorage(tmp_path)).get_by_id("a")
        assert reloaded is not None
        assert (reloaded.family, reloaded.weight, reloaded.data) == ("Old", 400, old.data)

    asyncio.run(scenario())
    assert len(list((tmp_path / "fonts").glob("*.font"))) == 1


def test_overwrite_replaces_the_stored_binary(tmp_path: Path) -> None:
    async def scenario() -> None:
        store = CustomFontStore(DirectoryFontStorage(tmp_path))
        await store.save(make_record("a", 16))
        await store.save(make_record("a", 48, weight=700))
        reloaded = await CustomFontStore(DirectoryFontStorage(tmp_path)).get_all()
        assert [(record.weight, record.size_bytes) for record in reloaded] == [(700, 48)]

    asyncio.run(scenario())
    assert len(list((tmp_path / "fonts").glob("*.font"))) == 1
