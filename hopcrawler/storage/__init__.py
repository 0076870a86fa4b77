"""
Crawl ledger storage.
"""

from .ledger import DedupLedger, LedgerStore, RedisLedgerStore, FileLedgerStore, LedgerError

__all__ = ['DedupLedger', 'LedgerStore', 'RedisLedgerStore', 'FileLedgerStore', 'LedgerError']
