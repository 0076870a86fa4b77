"""
Outbound event publishing over Redis streams.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import redis.asyncio as redis

from ..crawler.models import Article, ArticleEvent, LinkEvent


def _decode_id(message_id: Any) -> str:
    if isinstance(message_id, bytes):
        return message_id.decode('utf-8')
    return str(message_id)


class StreamPublisher:
    """Publishes one JSON message per XADD; the body is stored in field 'data'."""

    def __init__(self, redis_client: redis.Redis, stream: str, maxlen: Optional[int] = None):
        self.redis_client = redis_client
        self.stream = stream
        self.maxlen = maxlen
        self.logger = logging.getLogger(__name__)

    async def publish(self, payload: Dict[str, Any]) -> str:
        """Publish payload and return the stream message id."""
        message_id = await self.redis_client.xadd(
            self.stream,
            {'data': json.dumps(payload)},
            maxlen=self.maxlen,
            approximate=True
        )
        return _decode_id(message_id)

    async def close(self):
        pass


class BatchingStreamPublisher(StreamPublisher):
    """
    Buffers messages and writes them in one pipeline.

    A batch is flushed when it reaches max_messages or when max_latency
    seconds have passed since its first message, whichever comes first.
    Each publish() call waits for its own message id, or for the flush error.
    """

    def __init__(self, redis_client: redis.Redis, stream: str, maxlen: Optional[int] = None,
                 max_messages: int = 100, max_latency: float = 1.0):
        super().__init__(redis_client, stream, maxlen)
        self.max_messages = max_messages
        self.max_latency = max_latency

        self._pending: List[Tuple[str, asyncio.Future]] = []
        self._timer: Optional[asyncio.TimerHandle] = None
        self._flush_tasks: Set[asyncio.Task] = set()

        self.stats = {
            'messages': 0,
            'batches': 0,
            'failed_batches': 0
        }

    async def publish(self, payload: Dict[str, Any]) -> str:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending.append((json.dumps(payload), future))

        if len(self._pending) >= self.max_messages:
            await self._flush()
        elif self._timer is None:
            self._timer = loop.call_later(self.max_latency, self._on_timer)

        return await future

    def _on_timer(self):
        self._timer = None
        task = asyncio.ensure_future(self._flush())
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def _flush(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        batch, self._pending = self._pending, []
        if not batch:
            return

        try:
            pipe = self.redis_client.pipeline(transaction=False)
            for data, _ in batch:
                pipe.xadd(self.stream, {'data': data}, maxlen=self.maxlen, approximate=True)
            results = await pipe.execute()
        except Exception as e:
            self.stats['failed_batches'] += 1
            self.logger.error(f"Failed to publish batch of {len(batch)} to {self.stream}: {e}")
            for _, future in batch:
                if not future.done():
                    future.set_exception(e)
            return

        self.stats['batches'] += 1
        self.stats['messages'] += len(batch)
        for (_, future), message_id in zip(batch, results):
            if not future.done():
                future.set_result(_decode_id(message_id))

    async def close(self):
        """Flush whatever is still buffered."""
        await self._flush()
        if self._flush_tasks:
            await asyncio.gather(*self._flush_tasks, return_exceptions=True)


class EventPublisher:
    """Fans crawl results out to the link and article channels."""

    def __init__(self, link_publisher: StreamPublisher, article_publisher: StreamPublisher):
        self.link_publisher = link_publisher
        self.article_publisher = article_publisher
        self.logger = logging.getLogger(__name__)

    async def publish_links(self, links: Sequence[str], parent_url: str) -> List[str]:
        """Publish one LinkEvent per link. The first failure propagates."""
        if not links:
            return []
        message_ids = await asyncio.gather(*(
            self.link_publisher.publish(LinkEvent(to=link, from_=parent_url).to_dict())
            for link in links
        ))
        self.logger.debug(f"Published {len(message_ids)} links from {parent_url}")
        return list(message_ids)

    async def publish_article(self, url: str, article: Article, links: Sequence[str]) -> str:
        event = ArticleEvent(url=url, article=article, links=list(links))
        message_id = await self.article_publisher.publish(event.to_dict())
        self.logger.debug(f"Published article {url} as {message_id}")
        return message_id

    async def close(self):
        await self.link_publisher.close()
        await self.article_publisher.close()
