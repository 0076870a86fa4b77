"""
Monitoring and metrics collection for the crawl worker.
"""

import time
import logging
from typing import Dict, Any

from prometheus_client import Counter, Histogram, CollectorRegistry, start_http_server


class MetricsCollector:
    """Owns the Prometheus registry and metric objects."""

    def __init__(self, enable_prometheus: bool = False, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.enable_prometheus = enable_prometheus
        self.prometheus_port = prometheus_port

        # Private registry so several workers can coexist in one process (tests)
        self.registry = CollectorRegistry()
        self.invocations_total = Counter(
            'crawler_invocations_total',
            'Crawl invocations by final outcome',
            ['outcome'],
            registry=self.registry
        )
        self.links_published_total = Counter(
            'crawler_links_published_total',
            'Link events published',
            registry=self.registry
        )
        self.articles_published_total = Counter(
            'crawler_articles_published_total',
            'Article events published',
            registry=self.registry
        )
        self.publish_errors_total = Counter(
            'crawler_publish_errors_total',
            'Failed fan-out branches',
            ['branch'],
            registry=self.registry
        )
        self.fetch_seconds = Histogram(
            'crawler_fetch_seconds',
            'Time spent fetching pages',
            registry=self.registry
        )

    def start_prometheus_server(self):
        """Start Prometheus metrics HTTP server."""
        if not self.enable_prometheus:
            return

        try:
            start_http_server(self.prometheus_port, registry=self.registry)
            self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")
        except Exception as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")

    def get_sample(self, name: str, labels: Dict[str, str] = None) -> float:
        """Current value of a sample, 0.0 if never recorded."""
        value = self.registry.get_sample_value(name, labels or {})
        return value or 0.0


class CrawlerMonitor:
    """High-level monitoring interface for the crawl worker."""

    def __init__(self, metrics_collector: MetricsCollector):
        self.metrics = metrics_collector
        self.start_time = time.time()
        self.outcomes: Dict[str, int] = {}

    def record_outcome(self, outcome: str):
        self.metrics.invocations_total.labels(outcome=outcome).inc()
        self.outcomes[outcome] = self.outcomes.get(outcome, 0) + 1

    def record_links_published(self, count: int):
        self.metrics.links_published_total.inc(count)

    def record_article_published(self):
        self.metrics.articles_published_total.inc()

    def record_publish_error(self, branch: str):
        self.metrics.publish_errors_total.labels(branch=branch).inc()

    def observe_fetch_time(self, seconds: float):
        self.metrics.fetch_seconds.observe(seconds)

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of invocation outcomes."""
        runtime = time.time() - self.start_time
        total = sum(self.outcomes.values())
        return {
            'runtime_seconds': runtime,
            'invocations': total,
            'outcomes': dict(self.outcomes),
            'invocations_per_minute': total / (runtime / 60) if runtime > 0 else 0,
        }


def initialize_monitoring(enable_prometheus: bool = False, prometheus_port: int = 8000) -> CrawlerMonitor:
    """Create a monitor and start the exporter when enabled."""
    metrics_collector = MetricsCollector(enable_prometheus, prometheus_port)
    metrics_collector.start_prometheus_server()
    return CrawlerMonitor(metrics_collector)
