"""
Crawl worker core components.
"""

from .models import CrawlEdge, RawPage, Article, CrawlRecord, LinkEvent, ArticleEvent
from .policy import PolicyFilter
from .fetcher import ContentFetcher
from .extractor import ArticleExtractor
from .links import LinkHarvester

__all__ = [
    'CrawlEdge', 'RawPage', 'Article', 'CrawlRecord', 'LinkEvent', 'ArticleEvent',
    'PolicyFilter', 'ContentFetcher', 'ArticleExtractor', 'LinkHarvester'
]
