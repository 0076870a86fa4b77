"""
Hop Crawler

A single-hop crawl worker: visits one edge of the web graph per message,
extracts the article and fans out new edges.
"""

__version__ = "1.0.0"
__description__ = "Single-hop crawl worker with reader-mode extraction"
