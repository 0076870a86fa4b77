"""
Inbound edge consumer: runs one worker invocation per stream message.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set, Tuple

import redis.asyncio as redis
from redis.exceptions import ResponseError


class EdgeConsumer:
    """
    Reads crawl edges from a Redis stream through a consumer group.

    Each message is handled by an independent task, bounded by a semaphore,
    and acknowledged after its invocation returns. Messages left pending by a
    previous run of the same consumer are replayed first.
    """

    def __init__(self, redis_client: redis.Redis, worker, stream: str,
                 group: str, consumer: str, max_concurrent: int = 10,
                 read_count: int = 10, block_ms: int = 5000):
        self.redis_client = redis_client
        self.worker = worker
        self.stream = stream
        self.group = group
        self.consumer = consumer
        self.read_count = read_count
        self.block_ms = block_ms
        self.logger = logging.getLogger(__name__)

        self.semaphore = asyncio.Semaphore(max_concurrent)
        self.tasks: Set[asyncio.Task] = set()
        self.stats = {
            'received': 0,
            'acked': 0,
            'ack_errors': 0
        }

    async def ensure_group(self):
        """Create the consumer group (and stream) if it does not exist yet."""
        try:
            await self.redis_client.xgroup_create(self.stream, self.group, id='0', mkstream=True)
            self.logger.info(f"Created consumer group {self.group} on {self.stream}")
        except ResponseError as e:
            if 'BUSYGROUP' not in str(e):
                raise

    async def run(self, shutdown_event: asyncio.Event):
        """Consume until shutdown_event is set, then drain in-flight invocations."""
        await self.ensure_group()
        self.logger.info(f"Consuming {self.stream} as {self.group}/{self.consumer}")

        backlog_id = '0'
        reading_backlog = True
        try:
            while not shutdown_event.is_set():
                try:
                    messages = await self._read(backlog_id if reading_backlog else '>')
                except Exception as e:
                    self.logger.error(f"Error reading from {self.stream}: {e}")
                    await asyncio.sleep(1)
                    continue

                if reading_backlog:
                    if not messages:
                        reading_backlog = False
                        continue
                    backlog_id = messages[-1][0]

                for message_id, fields in messages:
                    await self._dispatch(message_id, fields)
        finally:
            await self.drain()

    async def _read(self, start_id: str) -> List[Tuple[Any, Dict]]:
        response = await self.redis_client.xreadgroup(
            self.group,
            self.consumer,
            {self.stream: start_id},
            count=self.read_count,
            block=self.block_ms if start_id == '>' else None
        )
        if not response:
            return []
        messages = []
        for _stream, stream_messages in response:
            messages.extend(stream_messages)
        return messages

    async def _dispatch(self, message_id: Any, fields: Dict):
        self.stats['received'] += 1
        await self.semaphore.acquire()
        task = asyncio.create_task(self._invoke(message_id, fields))
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)

    async def _invoke(self, message_id: Any, fields: Optional[Dict]):
        try:
            data = self._get_data(fields)
            outcome = await self.worker.handle_message(data)
            self.logger.debug(f"Message {message_id!r} finished with {outcome.value}")
            await self._ack(message_id)
        finally:
            self.semaphore.release()

    @staticmethod
    def _get_data(fields: Optional[Dict]) -> bytes:
        if not fields:
            return b''
        data = fields.get(b'data', fields.get('data'))
        return data if data is not None else b''

    async def _ack(self, message_id: Any):
        try:
            await self.redis_client.xack(self.stream, self.group, message_id)
            self.stats['acked'] += 1
        except Exception as e:
            self.stats['ack_errors'] += 1
            self.logger.error(f"Failed to ack message {message_id!r}: {e}")

    async def drain(self):
        """Wait for in-flight invocations to finish."""
        if self.tasks:
            self.logger.info(f"Waiting for {len(self.tasks)} in-flight invocations")
            await asyncio.gather(*self.tasks, return_exceptions=True)
