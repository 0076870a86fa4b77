"""
Page fetcher: a single GET gated on an HTML content type.
"""

import asyncio
import aiohttp
import logging
import time
from typing import Optional, Dict
from aiohttp import ClientSession, ClientTimeout, ClientError

from .models import RawPage


class ContentFetcher:
    """
    Fetches web pages for extraction.

    Every failure mode (transport error, non-success status, missing or
    non-HTML content type, oversized body) collapses into a single None
    result; the caller drops the edge either way.
    """

    def __init__(self, user_agent: str, request_timeout: int = 30,
                 max_content_size: int = 10 * 1024 * 1024,
                 max_connections: int = 20):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_content_size = max_content_size
        self.max_connections = max_connections

        self.logger = logging.getLogger(__name__)
        self.session: Optional[ClientSession] = None

        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'rejected_content_type': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Initialize the shared session."""
        if self.session is None:
            timeout = ClientTimeout(total=self.request_timeout)
            headers = {'User-Agent': self.user_agent}

            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
                raise_for_status=True,
                connector=aiohttp.TCPConnector(
                    limit=self.max_connections,
                    ttl_dns_cache=300,
                    use_dns_cache=True
                )
            )
            self.logger.info("ContentFetcher session started")

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("ContentFetcher session closed")

    async def fetch(self, url: str) -> Optional[RawPage]:
        """
        Fetch a single URL.

        Args:
            url: The URL to fetch

        Returns:
            RawPage with the decoded body, or None if the page is not fetchable
        """
        if self.session is None:
            await self.start()

        self.stats['total_requests'] += 1
        try:
            async with self.session.get(url, allow_redirects=True) as response:
                content_type = response.headers.get('content-type', '')

                if not self._is_html_content(content_type):
                    self.stats['rejected_content_type'] += 1
                    self.logger.info(f"Not an HTML page: {url} ({content_type or 'no content-type'})")
                    return None

                html = await self._read_content_safely(response)
                if html is None:
                    self.stats['failed_requests'] += 1
                    return None

                self.stats['successful_requests'] += 1
                self.logger.debug(f"Fetched {url}: {response.status} ({len(html)} chars)")
                return RawPage(url=str(response.url), html=html, content_type=content_type)

        except asyncio.TimeoutError:
            self.stats['failed_requests'] += 1
            self.logger.info(f"Timeout fetching {url}")

        except ClientError as e:
            self.stats['failed_requests'] += 1
            self.logger.info(f"Client error fetching {url}: {e}")

        except Exception as e:
            self.stats['failed_requests'] += 1
            self.logger.warning(f"Unexpected error fetching {url}: {e}")

        return None

    @staticmethod
    def _is_html_content(content_type: str) -> bool:
        return 'html' in content_type.lower()

    async def _read_content_safely(self, response) -> Optional[str]:
        """
        Read response content within the size limit.

        Returns:
            Decoded content, or None if too large
        """
        content_length = response.headers.get('content-length')
        if content_length and content_length.isdigit() and int(content_length) > self.max_content_size:
            self.logger.info(f"Content too large ({content_length} bytes): {response.url}")
            return None

        content_bytes = bytearray()
        async for chunk in response.content.iter_chunked(8192):
            content_bytes.extend(chunk)
            if len(content_bytes) > self.max_content_size:
                self.logger.info(f"Content exceeded size limit during reading: {response.url}")
                return None

        self.stats['total_bytes_downloaded'] += len(content_bytes)

        encoding = response.charset or 'utf-8'
        try:
            return content_bytes.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            for fallback_encoding in ['utf-8', 'cp1252']:
                try:
                    return content_bytes.decode(fallback_encoding)
                except UnicodeDecodeError:
                    continue
            return content_bytes.decode('utf-8', errors='ignore')

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()
