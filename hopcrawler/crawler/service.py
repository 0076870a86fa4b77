"""
Crawler service that wires the worker to its collaborators and runs the consumer.
"""

import asyncio
import logging
from typing import Optional

import redis.asyncio as redis

from .policy import PolicyFilter
from .fetcher import ContentFetcher
from .extractor import ArticleExtractor
from .links import LinkHarvester
from .models import CrawlEdge
from .worker import CrawlWorker
from ..messaging.consumer import EdgeConsumer
from ..messaging.publisher import BatchingStreamPublisher, EventPublisher, StreamPublisher
from ..storage.ledger import DedupLedger, FileLedgerStore, LedgerStore, RedisLedgerStore
from ..utils.config import Config
from ..utils.monitoring import CrawlerMonitor, initialize_monitoring


class CrawlerService:
    """
    Owns the process-wide client handles (Redis pool, HTTP session) and
    builds one CrawlWorker that all invocations share.
    """

    def __init__(self, config: Config):
        self.config = config
        self.logger = logging.getLogger(__name__)

        self.redis_client: Optional[redis.Redis] = None
        self.fetcher: Optional[ContentFetcher] = None
        self.ledger: Optional[DedupLedger] = None
        self.publisher: Optional[EventPublisher] = None
        self.monitor: Optional[CrawlerMonitor] = None
        self.worker: Optional[CrawlWorker] = None
        self.consumer: Optional[EdgeConsumer] = None

    async def initialize(self):
        """Initialize all crawler components."""
        try:
            self.redis_client = redis.Redis(
                host=self.config.redis.host,
                port=self.config.redis.port,
                db=self.config.redis.db,
                password=self.config.redis.password,
                decode_responses=False
            )
            await self.redis_client.ping()
            self.logger.info("Redis connection established")

            self.monitor = initialize_monitoring(
                self.config.monitoring.metrics_enabled,
                self.config.monitoring.prometheus_port
            )

            self.ledger = DedupLedger(self._build_ledger_store())

            self.fetcher = ContentFetcher(
                user_agent=self.config.crawler.user_agent,
                request_timeout=self.config.crawler.request_timeout,
                max_content_size=self.config.crawler.max_content_size,
                max_connections=self.config.crawler.max_concurrent_invocations * 2
            )
            await self.fetcher.start()

            messaging = self.config.messaging
            self.publisher = EventPublisher(
                link_publisher=BatchingStreamPublisher(
                    self.redis_client,
                    messaging.link_stream,
                    maxlen=messaging.stream_maxlen,
                    max_messages=messaging.link_batch_max_messages,
                    max_latency=messaging.link_batch_max_latency
                ),
                article_publisher=StreamPublisher(
                    self.redis_client,
                    messaging.article_stream,
                    maxlen=messaging.stream_maxlen
                )
            )

            self.worker = CrawlWorker(
                policy=PolicyFilter(
                    self.config.crawler.allow_patterns,
                    self.config.crawler.deny_patterns
                ),
                ledger=self.ledger,
                fetcher=self.fetcher,
                extractor=ArticleExtractor(),
                harvester=LinkHarvester(),
                publisher=self.publisher,
                monitor=self.monitor
            )

            self.consumer = EdgeConsumer(
                self.redis_client,
                self.worker,
                stream=messaging.inbound_stream,
                group=messaging.consumer_group,
                consumer=messaging.consumer_name,
                max_concurrent=self.config.crawler.max_concurrent_invocations,
                read_count=messaging.read_count,
                block_ms=messaging.read_block_ms
            )

            self.logger.info("Crawler service initialized successfully")

        except Exception as e:
            self.logger.error(f"Failed to initialize crawler service: {e}")
            raise

    def _build_ledger_store(self) -> LedgerStore:
        ledger_config = self.config.ledger
        if ledger_config.backend == 'file':
            store = FileLedgerStore(ledger_config.directory, ledger_config.namespace)
            store.initialize()
            return store
        return RedisLedgerStore(self.redis_client, ledger_config.namespace)

    async def run(self, shutdown_event: asyncio.Event):
        """Consume inbound edges until shutdown is requested."""
        await self.consumer.run(shutdown_event)
        self.logger.info(f"Invocation summary: {self.monitor.get_summary()}")

    async def seed(self, from_url: str, to_url: str) -> str:
        """Publish a single edge to the inbound stream."""
        edge = CrawlEdge(from_=from_url, to=to_url)
        publisher = StreamPublisher(self.redis_client, self.config.messaging.inbound_stream)
        message_id = await publisher.publish(edge.to_dict())
        self.logger.info(f"Seeded edge {from_url} -> {to_url} as {message_id}")
        return message_id

    async def close(self):
        """Flush publishers and close all connections."""
        try:
            if self.publisher:
                await self.publisher.close()

            if self.fetcher:
                await self.fetcher.close()

            if self.ledger:
                await self.ledger.close()

            if self.redis_client:
                await self.redis_client.aclose()

            self.logger.info("Crawler service closed")

        except Exception as e:
            self.logger.error(f"Error during cleanup: {e}")
