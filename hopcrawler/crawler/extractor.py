"""
Reader-mode article extraction.
"""

import math
import re
import logging
from typing import Optional

from bs4 import BeautifulSoup, Comment, Tag
from readability import Document

from .models import Article


# Class/id hints used by the readerable heuristic
UNLIKELY_CANDIDATES = re.compile(
    r'-ad-|ai2html|banner|breadcrumbs|combx|comment|community|cover-wrap|disqus|extra|'
    r'footer|gdpr|header|legends|menu|related|remark|replies|rss|shoutbox|sidebar|'
    r'skyscraper|social|sponsor|supplemental|ad-break|agegate|pagination|pager|popup|'
    r'yom-remote',
    re.IGNORECASE
)
MAYBE_CANDIDATE = re.compile(r'and|article|body|column|content|main|shadow', re.IGNORECASE)
BYLINE_HINT = re.compile(r'byline|author|dateline|writtenby|p-author', re.IGNORECASE)
DISPLAY_NONE = re.compile(r'display\s*:\s*none', re.IGNORECASE)
VISIBILITY_HIDDEN = re.compile(r'visibility\s*:\s*hidden', re.IGNORECASE)

NO_TITLE = '[no-title]'


class ArticleExtractor:
    """
    Decides whether a page looks like an article and extracts it.

    is_extractable() is a cheap scan meant to run before extract(), which
    does the full readability pass.
    """

    def __init__(self, min_content_length: int = 140, min_score: float = 20.0,
                 max_byline_length: int = 100):
        self.min_content_length = min_content_length
        self.min_score = min_score
        self.max_byline_length = max_byline_length
        self.whitespace_pattern = re.compile(r'\s+')
        self.logger = logging.getLogger(__name__)

    def parse(self, html: str) -> BeautifulSoup:
        """Parse page HTML into a document."""
        soup = BeautifulSoup(html, 'lxml')
        for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
            comment.extract()
        return soup

    def is_extractable(self, document: BeautifulSoup) -> bool:
        """
        Heuristic check that the page is probably a readable article.

        Scores paragraph-like nodes by text length and returns True as soon as
        the accumulated score passes min_score.
        """
        nodes = document.select('p, pre, article')
        seen = {id(node) for node in nodes}
        for br in document.select('div > br'):
            parent = br.parent
            if id(parent) not in seen:
                seen.add(id(parent))
                nodes.append(parent)

        score = 0.0
        for node in nodes:
            if not self._is_visible(node):
                continue

            match_string = f"{' '.join(node.get('class', []))} {node.get('id', '')}"
            if UNLIKELY_CANDIDATES.search(match_string) and not MAYBE_CANDIDATE.search(match_string):
                continue

            if node.name == 'p' and node.find_parent('li') is not None:
                continue

            text_length = len(node.get_text().strip())
            if text_length < self.min_content_length:
                continue

            score += math.sqrt(text_length - self.min_content_length)
            if score > self.min_score:
                return True

        return False

    @staticmethod
    def _is_visible(node: Tag) -> bool:
        style = node.get('style', '')
        if style and (DISPLAY_NONE.search(style) or VISIBILITY_HIDDEN.search(style)):
            return False
        if node.has_attr('hidden'):
            return False
        if node.get('aria-hidden') == 'true' and 'fallback-image' not in node.get('class', []):
            return False
        return True

    def extract(self, document: BeautifulSoup, url: Optional[str] = None) -> Optional[Article]:
        """
        Run the readability pass and collect article metadata.

        Returns:
            Article, or None if the page could not be parsed or yielded no text
        """
        try:
            reader = Document(str(document), url=url)
            content = reader.summary(html_partial=True)

            content_soup = BeautifulSoup(content, 'lxml')
            text_content = self._clean_text(content_soup.get_text(' '))
            if not text_content:
                self.logger.info(f"Readability produced no text for {url}")
                return None

            title = self._meta_content(document, 'og:title', 'twitter:title')
            if not title:
                title = reader.short_title() or ''
                if title == NO_TITLE:
                    title = ''

            return Article(
                title=self._clean_text(title),
                excerpt=self._extract_excerpt(document, content_soup),
                content=content,
                text_content=text_content,
                byline=self._extract_byline(document),
                site_name=self._meta_content(document, 'og:site_name') or None,
                length=len(text_content),
            )

        except Exception as e:
            self.logger.warning(f"Error extracting article from {url}: {e}")
            return None

    def _meta_content(self, document: BeautifulSoup, *names: str) -> str:
        """First non-empty content of a <meta> matched by name or property."""
        for name in names:
            meta = document.find('meta', attrs={'property': name}) or \
                document.find('meta', attrs={'name': name})
            if meta and meta.get('content', '').strip():
                return self._clean_text(meta['content'])
        return ''

    def _extract_excerpt(self, document: BeautifulSoup, content_soup: BeautifulSoup) -> str:
        excerpt = self._meta_content(document, 'description', 'og:description', 'twitter:description')
        if excerpt:
            return excerpt

        for paragraph in content_soup.find_all('p'):
            text = self._clean_text(paragraph.get_text(' '))
            if text:
                return text
        return ''

    def _extract_byline(self, document: BeautifulSoup) -> Optional[str]:
        byline = self._meta_content(document, 'author', 'article:author', 'dc.creator')
        if byline:
            return byline

        body = document.body or document
        for node in body.find_all(True):
            match_string = f"{' '.join(node.get('class', []))} {node.get('id', '')}"
            is_hint = (
                node.get('rel') == ['author'] or
                'author' in (node.get('itemprop') or '') or
                BYLINE_HINT.search(match_string)
            )
            if not is_hint:
                continue

            text = self._clean_text(node.get_text(' '))
            if text and len(text) < self.max_byline_length:
                return text
        return None

    def _clean_text(self, text: str) -> str:
        if not text:
            return ""
        return self.whitespace_pattern.sub(' ', text.strip())
