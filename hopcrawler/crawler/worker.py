"""
Crawl worker: processes one edge of the crawl graph per invocation.
"""

import asyncio
import json
import logging
import time
from enum import Enum
from typing import Callable, List, Optional, Union

from .models import Article, CrawlEdge
from .policy import PolicyFilter
from .fetcher import ContentFetcher
from .extractor import ArticleExtractor
from .links import LinkHarvester
from ..storage.ledger import DedupLedger
from ..messaging.publisher import EventPublisher
from ..utils.logger import get_crawler_logger
from ..utils.monitoring import CrawlerMonitor


class CrawlOutcome(Enum):
    """Where an invocation ended. Every outcome is a successful invocation."""
    MALFORMED = 'malformed'
    NOT_ALLOWED = 'not_allowed'
    BLOCKED = 'blocked'
    ALREADY_CRAWLED = 'already_crawled'
    NOT_FETCHABLE = 'not_fetchable'
    NOT_EXTRACTABLE = 'not_extractable'
    EXTRACTION_FAILED = 'extraction_failed'
    PUBLISHED = 'published'
    PUBLISH_FAILED = 'publish_failed'
    ERROR = 'error'


class CrawlWorker:
    """
    Runs the per-edge pipeline:

        policy -> ledger check -> fetch -> readerable check -> extract
        -> harvest links -> (publish links || record + publish article)

    Any failed gate ends the invocation early. Nothing raises out of
    process(); failures are logged and reported as a CrawlOutcome.
    """

    def __init__(self, policy: PolicyFilter, ledger: DedupLedger,
                 fetcher: ContentFetcher, extractor: ArticleExtractor,
                 harvester: LinkHarvester, publisher: EventPublisher,
                 monitor: Optional[CrawlerMonitor] = None,
                 clock: Callable[[], float] = time.time):
        self.policy = policy
        self.ledger = ledger
        self.fetcher = fetcher
        self.extractor = extractor
        self.harvester = harvester
        self.publisher = publisher
        self.monitor = monitor
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    async def handle_message(self, data: Union[bytes, str]) -> CrawlOutcome:
        """Decode one inbound payload and process it."""
        try:
            edge = CrawlEdge.from_dict(json.loads(data))
        except (ValueError, TypeError) as e:
            self.logger.warning(f"Dropping malformed edge payload: {e}")
            self._record(CrawlOutcome.MALFORMED)
            return CrawlOutcome.MALFORMED

        return await self.process(edge)

    async def process(self, edge: CrawlEdge) -> CrawlOutcome:
        """Process one edge; never raises."""
        try:
            outcome = await self._process(edge)
        except Exception as e:
            self.logger.error(f"Unexpected error processing {edge.to}: {e}", exc_info=True)
            outcome = CrawlOutcome.ERROR

        self._record(outcome)
        return outcome

    async def _process(self, edge: CrawlEdge) -> CrawlOutcome:
        log = get_crawler_logger(__name__, url=edge.to, parent=edge.from_)

        if not self.policy.is_allowed(edge.from_):
            log.info(f"Parent url not allow-listed: {edge.from_}")
            return CrawlOutcome.NOT_ALLOWED

        if self.policy.is_blocked(edge.to):
            log.info(f"Blocked url: {edge.to}")
            return CrawlOutcome.BLOCKED

        if await self.ledger.exists(edge.to):
            log.info(f"Already crawled: {edge.to}")
            return CrawlOutcome.ALREADY_CRAWLED

        start_time = time.time()
        page = await self.fetcher.fetch(edge.to)
        if self.monitor:
            self.monitor.observe_fetch_time(time.time() - start_time)
        if page is None:
            log.info(f"Not fetchable: {edge.to}")
            return CrawlOutcome.NOT_FETCHABLE

        document = self.extractor.parse(page.html)
        if not self.extractor.is_extractable(document):
            log.info(f"Not a readable article: {edge.to}")
            return CrawlOutcome.NOT_EXTRACTABLE

        article = self.extractor.extract(document, url=edge.to)
        if article is None:
            log.info(f"Extraction failed: {edge.to}")
            return CrawlOutcome.EXTRACTION_FAILED

        links = self.harvester.harvest_links(article, base_url=edge.to)
        log.debug(f"Extracted '{article.title}' with {len(links)} links")

        results = await asyncio.gather(
            self._publish_links(links, edge.to, log),
            self._save_article(edge.to, article, links, log),
            return_exceptions=True
        )

        if all(result is True for result in results):
            log.log_url_event(logging.INFO, edge.to, f"Crawled {edge.to}: {len(links)} links")
            return CrawlOutcome.PUBLISHED
        return CrawlOutcome.PUBLISH_FAILED

    async def _publish_links(self, links: List[str], parent_url: str, log) -> bool:
        try:
            await self.publisher.publish_links(links, parent_url)
        except Exception as e:
            log.error(f"Failed to publish links from {parent_url}: {e}")
            if self.monitor:
                self.monitor.record_publish_error('links')
            return False

        if self.monitor:
            self.monitor.record_links_published(len(links))
        return True

    async def _save_article(self, url: str, article: Article, links: List[str], log) -> bool:
        """Record the URL in the ledger, then publish the article event."""
        recorded = True
        try:
            await self.ledger.record(url, int(self.clock() * 1000))
        except Exception as e:
            # The article is still published; a later delivery may crawl it again
            log.error(f"Failed to record {url} in ledger: {e}")
            recorded = False
            if self.monitor:
                self.monitor.record_publish_error('ledger')

        try:
            await self.publisher.publish_article(url, article, links)
        except Exception as e:
            log.error(f"Failed to publish article {url}: {e}")
            if self.monitor:
                self.monitor.record_publish_error('article')
            return False

        if self.monitor:
            self.monitor.record_article_published()
        return recorded

    def _record(self, outcome: CrawlOutcome):
        if self.monitor:
            self.monitor.record_outcome(outcome.value)
