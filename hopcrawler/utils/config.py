"""
Configuration management for the crawl worker.
"""

import yaml
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field


class ConfigError(ValueError):
    """Raised when the configuration file is missing or invalid."""
    pass


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    user_agent: str = "HopCrawler/1.0"
    request_timeout: int = 30
    max_content_size: int = 10 * 1024 * 1024
    max_concurrent_invocations: int = 10
    allow_patterns: List[str] = field(default_factory=list)
    deny_patterns: List[str] = field(default_factory=list)
    allow_patterns_file: Optional[str] = None
    deny_patterns_file: Optional[str] = None


@dataclass
class RedisConfig:
    """Configuration for Redis."""
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


@dataclass
class LedgerConfig:
    """Configuration for the crawl ledger."""
    backend: str = "redis"
    namespace: str = "crawled"
    directory: str = "data/ledger"


@dataclass
class MessagingConfig:
    """Configuration for the inbound and outbound streams."""
    inbound_stream: str = "crawler:edges"
    consumer_group: str = "crawler"
    consumer_name: str = "worker-1"
    link_stream: str = "crawler:edges"
    article_stream: str = "crawler:articles"
    link_batch_max_messages: int = 100
    link_batch_max_latency: float = 1.0
    stream_maxlen: Optional[int] = None
    read_count: int = 10
    read_block_ms: int = 5000


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: str = "logs/crawler.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    prometheus_port: int = 8000
    metrics_enabled: bool = False


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig
    redis: RedisConfig
    ledger: LedgerConfig
    messaging: MessagingConfig
    logging: LoggingConfig
    monitoring: MonitoringConfig


def load_patterns(inline: List[str], file_path: Optional[str]) -> List[str]:
    """
    Merge inline patterns with patterns read from a file.

    The file holds one regular expression per line; blank lines and lines
    starting with '#' are ignored.
    """
    patterns = list(inline or [])
    if file_path:
        path = Path(file_path)
        if not path.exists():
            raise ConfigError(f"Pattern file not found: {path}")
        with open(path, 'r', encoding='utf-8') as file:
            for line in file:
                line = line.strip()
                if line and not line.startswith('#'):
                    patterns.append(line)
    return patterns


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise ConfigError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r') as file:
            config_data = yaml.safe_load(file) or {}

        if not isinstance(config_data, dict):
            raise ConfigError("Configuration root must be a mapping")

        self._config = self.from_dict(config_data)
        self._validate_config()
        return self._config

    @staticmethod
    def from_dict(config_data: Dict[str, Any]) -> Config:
        """Build a Config from already-parsed data; missing sections use defaults."""
        sections = {
            'crawler': CrawlerConfig,
            'redis': RedisConfig,
            'ledger': LedgerConfig,
            'messaging': MessagingConfig,
            'logging': LoggingConfig,
            'monitoring': MonitoringConfig,
        }
        parsed = {}
        for name, section_cls in sections.items():
            section = config_data.get(name) or {}
            try:
                parsed[name] = section_cls(**section)
            except TypeError as e:
                raise ConfigError(f"Invalid '{name}' section: {e}")

        config = Config(**parsed)
        config.crawler.allow_patterns = load_patterns(
            config.crawler.allow_patterns, config.crawler.allow_patterns_file
        )
        config.crawler.deny_patterns = load_patterns(
            config.crawler.deny_patterns, config.crawler.deny_patterns_file
        )
        return config

    def _validate_config(self):
        """Validate configuration values."""
        if not self._config:
            raise ConfigError("Configuration not loaded")

        crawler = self._config.crawler
        if not crawler.allow_patterns:
            logging.warning("No allow patterns configured; every edge will be dropped")

        if crawler.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")

        if crawler.max_content_size <= 0:
            raise ConfigError("max_content_size must be positive")

        if crawler.max_concurrent_invocations < 1:
            raise ConfigError("max_concurrent_invocations must be at least 1")

        messaging = self._config.messaging
        if messaging.link_batch_max_messages < 1:
            raise ConfigError("link_batch_max_messages must be at least 1")

        if messaging.link_batch_max_latency < 0:
            raise ConfigError("link_batch_max_latency must be non-negative")

        if self._config.ledger.backend not in ['redis', 'file']:
            raise ConfigError("Ledger backend must be 'redis' or 'file'")

        if not self._config.ledger.namespace:
            raise ConfigError("Ledger namespace must not be empty")

        logging.info("Configuration validation passed")

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ConfigError("Configuration not loaded. Call load_config() first.")
        return self._config


def load_config(config_path: str = "config.yaml") -> Config:
    """Load configuration from file."""
    return ConfigManager(config_path).load_config()
