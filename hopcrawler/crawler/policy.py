"""
Static allow/deny URL policy.
"""

import re
import logging
from typing import List, Pattern, Sequence

from .models import CrawlEdge
from ..utils.config import ConfigError


class PolicyFilter:
    """
    Decides which edges may be crawled.

    An edge is eligible when its parent matches an allow pattern and its child
    matches no deny pattern. Patterns are regular expressions searched anywhere
    in the URL, so a plain domain works as a substring match.
    """

    def __init__(self, allow_patterns: Sequence[str], deny_patterns: Sequence[str]):
        self.logger = logging.getLogger(__name__)
        self.allow_patterns = self._compile(allow_patterns)
        self.deny_patterns = self._compile(deny_patterns)

    @staticmethod
    def _compile(patterns: Sequence[str]) -> List[Pattern]:
        compiled = []
        for pattern in patterns:
            try:
                compiled.append(re.compile(pattern))
            except re.error as e:
                raise ConfigError(f"Invalid URL pattern {pattern!r}: {e}")
        return compiled

    def is_allowed(self, url: str) -> bool:
        if not url:
            return False
        return any(pattern.search(url) for pattern in self.allow_patterns)

    def is_blocked(self, url: str) -> bool:
        return any(pattern.search(url) for pattern in self.deny_patterns)

    def is_eligible(self, edge: CrawlEdge) -> bool:
        if not self.is_allowed(edge.from_):
            self.logger.info(f"Parent url not allow-listed: {edge.from_}")
            return False
        if self.is_blocked(edge.to):
            self.logger.info(f"Blocked url: {edge.to}")
            return False
        return True
