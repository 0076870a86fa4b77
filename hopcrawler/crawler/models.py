"""
Data types passed between the crawl worker stages and over the wire.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class CrawlEdge:
    """One hop in the crawl graph: a parent page linking to a child page."""
    from_: str
    to: str

    def to_dict(self) -> Dict[str, str]:
        """Convert to the wire shape."""
        return {'from': self.from_, 'to': self.to}

    @classmethod
    def from_dict(cls, data: Any) -> 'CrawlEdge':
        """Create CrawlEdge from a decoded inbound payload."""
        if not isinstance(data, dict):
            raise ValueError(f"Edge payload must be an object, got {type(data).__name__}")

        to = data.get('to')
        if not isinstance(to, str) or not to:
            raise ValueError("Edge payload is missing 'to'")

        # A missing parent is carried through and rejected by the policy gate
        from_ = data.get('from') or ''
        if not isinstance(from_, str):
            raise ValueError("Edge payload 'from' must be a string")

        return cls(from_=from_, to=to)


@dataclass
class RawPage:
    """Fetched page body, discarded after extraction."""
    url: str
    html: str
    content_type: str


@dataclass(frozen=True)
class Article:
    """Reader-mode view of a page."""
    title: str
    excerpt: str
    content: str
    text_content: str
    byline: Optional[str] = None
    site_name: Optional[str] = None
    length: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'excerpt': self.excerpt,
            'content': self.content,
            'textContent': self.text_content,
            'byline': self.byline,
            'siteName': self.site_name,
            'length': self.length,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Article':
        return cls(
            title=data.get('title', ''),
            excerpt=data.get('excerpt', ''),
            content=data.get('content', ''),
            text_content=data.get('textContent', ''),
            byline=data.get('byline'),
            site_name=data.get('siteName'),
            length=data.get('length', 0),
        )


@dataclass
class CrawlRecord:
    """Ledger entry marking a URL as visited."""
    url: str
    crawled_at: int

    def to_dict(self) -> Dict[str, int]:
        """Ledger value; the URL itself is the key."""
        return {'crawledAt': self.crawled_at}

    @classmethod
    def from_dict(cls, url: str, data: Dict[str, Any]) -> 'CrawlRecord':
        return cls(url=url, crawled_at=int(data['crawledAt']))


@dataclass
class LinkEvent:
    """A newly discovered edge, fed back to the inbound channel."""
    to: str
    from_: str

    def to_dict(self) -> Dict[str, str]:
        return {'to': self.to, 'from': self.from_}


@dataclass
class ArticleEvent:
    """Terminal output of a successful crawl."""
    url: str
    article: Article
    links: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'article': self.article.to_dict(),
            'links': list(self.links),
        }
