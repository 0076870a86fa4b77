"""Shared fixtures: in-memory Redis stand-in and sample pages."""

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest
from redis.exceptions import ResponseError


class FakePipeline:
    def __init__(self, redis_client: 'FakeRedis'):
        self.redis_client = redis_client
        self.commands: List[tuple] = []

    def xadd(self, name, fields, maxlen=None, approximate=True):
        self.commands.append((name, fields))
        return self

    async def execute(self):
        self.redis_client.pipeline_executions += 1
        if self.redis_client.fail_xadd:
            raise ConnectionError("stream unavailable")
        return [self.redis_client._xadd(name, fields) for name, fields in self.commands]


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the ledger, publishers and consumer."""

    def __init__(self):
        self.data: Dict[str, bytes] = {}
        self.streams: Dict[str, List[tuple]] = {}
        self.groups: Dict[tuple, Dict[str, Any]] = {}
        self.acked: List[tuple] = []
        self.pipeline_executions = 0
        self.fail_get = False
        self.fail_set = False
        self.fail_xadd = False
        self._counter = 0

    async def ping(self):
        return True

    async def aclose(self):
        self.closed = True

    async def get(self, key):
        if self.fail_get:
            raise ConnectionError("ledger unavailable")
        return self.data.get(key)

    async def set(self, key, value):
        if self.fail_set:
            raise ConnectionError("ledger unavailable")
        self.data[key] = value.encode('utf-8') if isinstance(value, str) else value

    def _xadd(self, name, fields):
        self._counter += 1
        message_id = f"{self._counter}-0".encode()
        encoded = {
            k.encode(): (v.encode() if isinstance(v, str) else v)
            for k, v in fields.items()
        }
        self.streams.setdefault(name, []).append((message_id, encoded))
        return message_id

    async def xadd(self, name, fields, maxlen=None, approximate=True):
        if self.fail_xadd:
            raise ConnectionError("stream unavailable")
        return self._xadd(name, fields)

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def xgroup_create(self, name, groupname, id='$', mkstream=False):
        key = (name, groupname)
        if key in self.groups:
            raise ResponseError("BUSYGROUP Consumer Group name already exists")
        self.streams.setdefault(name, [])
        self.groups[key] = {'delivered': 0, 'pending': {}}

    async def xreadgroup(self, groupname, consumername, streams, count=None, block=None, noack=False):
        response = []
        for name, start_id in streams.items():
            group = self.groups[(name, groupname)]
            if start_id == '>':
                entries = self.streams[name][group['delivered']:]
                if count:
                    entries = entries[:count]
                group['delivered'] += len(entries)
                for message_id, fields in entries:
                    group['pending'][message_id] = fields
            else:
                floor = start_id if isinstance(start_id, bytes) else str(start_id).encode()
                entries = [
                    (message_id, fields) for message_id, fields in group['pending'].items()
                    if _id_key(message_id) > _id_key(floor)
                ]
                if count:
                    entries = entries[:count]
            response.append([name.encode(), entries])
        if all(not entries for _, entries in response) and block:
            await asyncio.sleep(block / 1000)
            return []
        return response

    async def xack(self, name, groupname, *ids):
        group = self.groups[(name, groupname)]
        for message_id in ids:
            group['pending'].pop(message_id, None)
            self.acked.append((name, message_id))
        return len(ids)

    def stream_payloads(self, name) -> List[Dict[str, Any]]:
        return [json.loads(fields[b'data']) for _, fields in self.streams.get(name, [])]


def _id_key(message_id: bytes) -> tuple:
    ms, _, seq = message_id.decode().partition('-')
    return int(ms), int(seq or 0)


@pytest.fixture
def fake_redis():
    return FakeRedis()


def article_html(links: Optional[List[str]] = None, title: str = "Understanding Widgets") -> str:
    """A page that reads like an article, with the given links inside its body."""
    links = links if links is not None else [
        "https://allowed.example/related-1?utm_source=feed",
        "https://other.example/reference#notes",
    ]
    anchors = [f'<a href="{href}">reference {i}</a>' for i, href in enumerate(links)]
    paragraph = (
        "Widgets are small mechanical parts that appear in almost every machine we use, "
        "from kitchen appliances to industrial looms, and their design has a long and "
        "surprisingly interesting history that spans several centuries of engineering. "
    )
    body = []
    for i in range(4):
        extra = f" See {anchors[i]} for details." if i < len(anchors) else ""
        body.append(f"<p>{paragraph * 2}{extra}</p>")
    for anchor in anchors[4:]:
        body.append(f"<p>{paragraph}Also {anchor}.</p>")

    return f"""
<!DOCTYPE html>
<html lang="en">
<head>
  <title>{title}</title>
  <meta name="author" content="Jane Writer">
  <meta property="og:site_name" content="Allowed Example">
</head>
<body>
  <nav><ul><li><a href="/">Home</a></li><li><a href="/about">About</a></li></ul></nav>
  <div class="article-body">
    <h1>{title}</h1>
    {''.join(body)}
  </div>
  <footer class="footer">Copyright Allowed Example</footer>
</body>
</html>
"""


NAV_ONLY_HTML = """
<!DOCTYPE html>
<html>
<head><title>Index</title></head>
<body>
  <nav>
    <ul>
      <li><a href="/a">Section A</a></li>
      <li><a href="/b">Section B</a></li>
      <li><a href="/c">Section C</a></li>
    </ul>
  </nav>
</body>
</html>
"""


@pytest.fixture
def readable_html():
    return article_html()


@pytest.fixture
def nav_only_html():
    return NAV_ONLY_HTML
