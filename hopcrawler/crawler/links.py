"""
Outbound link discovery for extracted articles.
"""

import logging
from typing import List, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup

from .models import Article


class LinkHarvester:
    """
    Collects the links of an article's content.

    Links are kept in document order and are not deduplicated; the ledger
    check on the next hop takes care of repeats.
    """

    rejected_hosts = {'localhost'}

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def harvest_links(self, article: Article, base_url: Optional[str] = None) -> List[str]:
        """
        Return the query-stripped, strictly valid links found in article.content.

        Args:
            article: Extracted article
            base_url: Page URL used to resolve relative hrefs
        """
        soup = BeautifulSoup(article.content, 'lxml')
        links = []
        for anchor in soup.find_all('a'):
            href = (anchor.get('href') or '').strip()
            if not href:
                continue
            if base_url:
                href = urljoin(base_url, href)
            link = self.strip_query(href)
            if self.is_strict_url(link):
                links.append(link)

        self.logger.debug(f"Harvested {len(links)} links from {base_url}")
        return links

    @staticmethod
    def strip_query(url: str) -> str:
        """Drop the query string, keeping path and fragment."""
        try:
            parts = urlsplit(url)
        except ValueError:
            return url
        return urlunsplit((parts.scheme, parts.netloc, parts.path, '', parts.fragment))

    def is_strict_url(self, url: str) -> bool:
        """
        Accept only absolute URLs with a real hostname.

        Empty hostnames (mailto:, javascript:, relative paths) and 'localhost'
        are both rejected.
        """
        try:
            parsed = urlsplit(url)
            # Accessing port validates it
            parsed.port
        except ValueError:
            return False

        if not parsed.scheme or not parsed.netloc:
            return False

        hostname = parsed.hostname
        if not hostname:
            return False

        return hostname not in self.rejected_hosts
