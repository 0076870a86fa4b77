"""
Crawl ledger: the durable record of URLs that have already been visited.
Supports Redis and file-based storage.
"""

import asyncio
import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

import redis.asyncio as redis

from ..crawler.models import CrawlRecord


class LedgerError(Exception):
    """Raised when a ledger store cannot be read or written."""
    pass


class LedgerStore:
    """Abstract base class for ledger key-value stores."""

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the stored value for key, or None if absent."""
        raise NotImplementedError

    async def put(self, key: str, value: Dict[str, Any]):
        """Store value under key, overwriting any previous value."""
        raise NotImplementedError

    async def close(self):
        """Close storage connections."""
        pass


class RedisLedgerStore(LedgerStore):
    """Ledger entries as JSON strings under '<namespace>:<url>' keys."""

    def __init__(self, redis_client: redis.Redis, namespace: str):
        self.redis_client = redis_client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = await self.redis_client.get(self._key(key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode('utf-8')
        return json.loads(raw)

    async def put(self, key: str, value: Dict[str, Any]):
        await self.redis_client.set(self._key(key), json.dumps(value))


class FileLedgerStore(LedgerStore):
    """File-based ledger for development and small-scale deployments."""

    def __init__(self, directory: str, namespace: str):
        self.directory = Path(directory) / namespace
        self.logger = logging.getLogger(__name__)

    def initialize(self):
        """Create the namespace directory."""
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self.logger.info(f"File ledger initialized at {self.directory}")
        except OSError as e:
            raise LedgerError(f"Failed to initialize file ledger: {e}")

    def _get_file_path(self, key: str) -> Path:
        """Generate file path for a key, sharded by hash prefix."""
        key_hash = hashlib.sha256(key.encode('utf-8')).hexdigest()
        return self.directory / key_hash[:2] / f"{key_hash}.json"

    def _read(self, key: str) -> Optional[Dict[str, Any]]:
        file_path = self._get_file_path(key)
        if not file_path.exists():
            return None
        with open(file_path, 'r', encoding='utf-8') as f:
            return json.load(f)['value']

    def _write(self, key: str, value: Dict[str, Any]):
        file_path = self._get_file_path(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump({'key': key, 'value': value}, f, ensure_ascii=False)

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._read, key)

    async def put(self, key: str, value: Dict[str, Any]):
        await asyncio.to_thread(self._write, key, value)


class DedupLedger:
    """
    Point lookups and writes against the crawl ledger.

    Lookups fail open: if the store is unreachable the URL is treated as not
    yet crawled. Writes are plain upserts with no compare-and-set, so two
    concurrent invocations may both record the same URL.
    """

    def __init__(self, store: LedgerStore):
        self.store = store
        self.logger = logging.getLogger(__name__)
        self.stats = {
            'lookups': 0,
            'hits': 0,
            'lookup_errors': 0,
            'records': 0
        }

    async def exists(self, url: str) -> bool:
        self.stats['lookups'] += 1
        try:
            value = await self.store.get(url)
        except Exception as e:
            self.stats['lookup_errors'] += 1
            self.logger.error(f"Could not check ledger for {url}: {e}")
            return False

        if value is not None:
            self.stats['hits'] += 1
            return True
        return False

    async def get_record(self, url: str) -> Optional[CrawlRecord]:
        """Fetch the stored record; errors propagate."""
        value = await self.store.get(url)
        if value is None:
            return None
        return CrawlRecord.from_dict(url, value)

    async def record(self, url: str, crawled_at: Optional[int] = None) -> CrawlRecord:
        """Upsert the ledger entry for url. Storage errors propagate."""
        if crawled_at is None:
            crawled_at = int(time.time() * 1000)
        record = CrawlRecord(url=url, crawled_at=crawled_at)
        await self.store.put(url, record.to_dict())
        self.stats['records'] += 1
        self.logger.debug(f"Recorded {url} as crawled at {crawled_at}")
        return record

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()

    async def close(self):
        await self.store.close()
