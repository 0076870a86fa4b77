"""Tests for hopcrawler.storage.ledger."""

import json
from unittest.mock import AsyncMock

import pytest

from hopcrawler.storage.ledger import (
    DedupLedger,
    FileLedgerStore,
    LedgerStore,
    RedisLedgerStore,
)


class TestRedisLedgerStore:
    async def test_record_then_exists(self, fake_redis):
        ledger = DedupLedger(RedisLedgerStore(fake_redis, "crawled"))

        assert await ledger.exists("https://ex.com/a") is False
        await ledger.record("https://ex.com/a", crawled_at=1700000000000)
        assert await ledger.exists("https://ex.com/a") is True

    async def test_value_shape_and_namespace(self, fake_redis):
        ledger = DedupLedger(RedisLedgerStore(fake_redis, "crawled"))
        await ledger.record("https://ex.com/a", crawled_at=1700000000000)

        raw = fake_redis.data["crawled:https://ex.com/a"]
        assert json.loads(raw) == {"crawledAt": 1700000000000}

    async def test_get_record(self, fake_redis):
        ledger = DedupLedger(RedisLedgerStore(fake_redis, "crawled"))
        await ledger.record("https://ex.com/a", crawled_at=42)

        record = await ledger.get_record("https://ex.com/a")
        assert record.url == "https://ex.com/a"
        assert record.crawled_at == 42
        assert await ledger.get_record("https://ex.com/missing") is None

    async def test_record_defaults_to_current_time_in_ms(self, fake_redis):
        ledger = DedupLedger(RedisLedgerStore(fake_redis, "crawled"))
        record = await ledger.record("https://ex.com/a")
        assert record.crawled_at > 10 ** 12

    async def test_upsert_overwrites(self, fake_redis):
        ledger = DedupLedger(RedisLedgerStore(fake_redis, "crawled"))
        await ledger.record("https://ex.com/a", crawled_at=1)
        await ledger.record("https://ex.com/a", crawled_at=2)
        assert (await ledger.get_record("https://ex.com/a")).crawled_at == 2


class TestFailOpen:
    async def test_lookup_error_reports_not_crawled(self, fake_redis):
        fake_redis.fail_get = True
        ledger = DedupLedger(RedisLedgerStore(fake_redis, "crawled"))

        assert await ledger.exists("https://ex.com/a") is False
        assert ledger.get_stats()["lookup_errors"] == 1

    async def test_write_error_propagates(self, fake_redis):
        fake_redis.fail_set = True
        ledger = DedupLedger(RedisLedgerStore(fake_redis, "crawled"))

        with pytest.raises(ConnectionError):
            await ledger.record("https://ex.com/a", crawled_at=1)

    async def test_any_store_exception_fails_open(self):
        store = LedgerStore()
        store.get = AsyncMock(side_effect=RuntimeError("corrupt value"))
        assert await DedupLedger(store).exists("https://ex.com/a") is False


class TestFileLedgerStore:
    async def test_round_trip(self, tmp_path):
        store = FileLedgerStore(str(tmp_path), "crawled")
        store.initialize()
        ledger = DedupLedger(store)

        assert await ledger.exists("https://ex.com/a") is False
        await ledger.record("https://ex.com/a", crawled_at=7)
        assert await ledger.exists("https://ex.com/a") is True
        assert (await ledger.get_record("https://ex.com/a")).crawled_at == 7

    async def test_files_sharded_under_namespace(self, tmp_path):
        store = FileLedgerStore(str(tmp_path), "crawled")
        store.initialize()
        await store.put("https://ex.com/a", {"crawledAt": 7})

        files = list((tmp_path / "crawled").rglob("*.json"))
        assert len(files) == 1
        assert files[0].parent.parent == tmp_path / "crawled"

    async def test_namespaces_are_isolated(self, tmp_path):
        first = FileLedgerStore(str(tmp_path), "one")
        second = FileLedgerStore(str(tmp_path), "two")
        await first.put("https://ex.com/a", {"crawledAt": 1})
        assert await second.get("https://ex.com/a") is None
