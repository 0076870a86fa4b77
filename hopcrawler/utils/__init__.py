"""
Utility modules for the crawl worker.
"""

from .config import Config, ConfigManager, ConfigError, load_config

__all__ = ['Config', 'ConfigManager', 'ConfigError', 'load_config']
