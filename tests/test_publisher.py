"""Tests for hopcrawler.messaging.publisher."""

import asyncio
import json

import pytest

from hopcrawler.crawler.models import Article
from hopcrawler.messaging.publisher import (
    BatchingStreamPublisher,
    EventPublisher,
    StreamPublisher,
)

ARTICLE = Article(
    title="Title",
    excerpt="Excerpt",
    content="<div><p>Body</p></div>",
    text_content="Body",
    byline="Author",
    site_name="Site",
    length=4,
)


class TestStreamPublisher:
    async def test_publishes_json_in_data_field(self, fake_redis):
        publisher = StreamPublisher(fake_redis, "articles")
        message_id = await publisher.publish({"a": 1})

        assert message_id == "1-0"
        assert fake_redis.stream_payloads("articles") == [{"a": 1}]

    async def test_errors_propagate(self, fake_redis):
        fake_redis.fail_xadd = True
        with pytest.raises(ConnectionError):
            await StreamPublisher(fake_redis, "articles").publish({"a": 1})


class TestBatchingStreamPublisher:
    async def test_flushes_when_batch_is_full(self, fake_redis):
        publisher = BatchingStreamPublisher(fake_redis, "links", max_messages=3, max_latency=60)

        ids = await asyncio.gather(*(publisher.publish({"n": i}) for i in range(3)))

        assert len(set(ids)) == 3
        assert fake_redis.pipeline_executions == 1
        assert sorted(p["n"] for p in fake_redis.stream_payloads("links")) == [0, 1, 2]

    async def test_flushes_after_max_latency(self, fake_redis):
        publisher = BatchingStreamPublisher(fake_redis, "links", max_messages=100, max_latency=0.01)

        message_id = await asyncio.wait_for(publisher.publish({"n": 1}), timeout=2)

        assert message_id == "1-0"
        assert fake_redis.pipeline_executions == 1

    async def test_splits_into_multiple_batches(self, fake_redis):
        publisher = BatchingStreamPublisher(fake_redis, "links", max_messages=2, max_latency=0.01)

        await asyncio.wait_for(
            asyncio.gather(*(publisher.publish({"n": i}) for i in range(5))), timeout=2
        )

        assert len(fake_redis.stream_payloads("links")) == 5
        assert fake_redis.pipeline_executions == 3

    async def test_batch_failure_reaches_every_caller(self, fake_redis):
        fake_redis.fail_xadd = True
        publisher = BatchingStreamPublisher(fake_redis, "links", max_messages=2, max_latency=60)

        results = await asyncio.gather(
            publisher.publish({"n": 1}), publisher.publish({"n": 2}), return_exceptions=True
        )

        assert all(isinstance(result, ConnectionError) for result in results)
        assert publisher.stats["failed_batches"] == 1

    async def test_close_flushes_pending(self, fake_redis):
        publisher = BatchingStreamPublisher(fake_redis, "links", max_messages=100, max_latency=60)

        pending = asyncio.ensure_future(publisher.publish({"n": 1}))
        await asyncio.sleep(0)
        await publisher.close()

        assert await pending == "1-0"


class TestEventPublisher:
    @pytest.fixture
    def publisher(self, fake_redis):
        return EventPublisher(
            link_publisher=BatchingStreamPublisher(fake_redis, "links", max_messages=100, max_latency=0.01),
            article_publisher=StreamPublisher(fake_redis, "articles"),
        )

    async def test_one_link_event_per_link(self, publisher, fake_redis):
        links = ["https://ex.com/1", "https://ex.com/2", "https://ex.com/1"]
        await publisher.publish_links(links, "https://ex.com/parent")

        payloads = fake_redis.stream_payloads("links")
        assert sorted(p["to"] for p in payloads) == sorted(links)
        assert all(p["from"] == "https://ex.com/parent" for p in payloads)

    async def test_no_links_publishes_nothing(self, publisher, fake_redis):
        assert await publisher.publish_links([], "https://ex.com/parent") == []
        assert fake_redis.stream_payloads("links") == []

    async def test_article_event_shape(self, publisher, fake_redis):
        await publisher.publish_article("https://ex.com/a", ARTICLE, ["https://ex.com/1"])

        [payload] = fake_redis.stream_payloads("articles")
        assert payload == {
            "url": "https://ex.com/a",
            "article": {
                "title": "Title",
                "excerpt": "Excerpt",
                "content": "<div><p>Body</p></div>",
                "textContent": "Body",
                "byline": "Author",
                "siteName": "Site",
                "length": 4,
            },
            "links": ["https://ex.com/1"],
        }

    async def test_link_failure_propagates(self, publisher, fake_redis):
        fake_redis.fail_xadd = True
        with pytest.raises(ConnectionError):
            await publisher.publish_links(["https://ex.com/1"], "https://ex.com/parent")
