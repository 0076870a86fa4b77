#!/usr/bin/env python3
"""
Main entry point for the crawl worker.
"""

import asyncio
import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from hopcrawler import __version__
from hopcrawler.utils.config import load_config, Config, ConfigError
from hopcrawler.utils.logger import setup_logging
from hopcrawler.crawler.service import CrawlerService


class CrawlerApp:
    """Main application class for the crawl worker."""

    def __init__(self):
        self.service: Optional[CrawlerService] = None
        self.logger = logging.getLogger(__name__)
        self._shutdown_event = asyncio.Event()

    def setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, self._request_shutdown, signum)

    def _request_shutdown(self, signum):
        self.logger.info(f"Received signal {signum}, initiating shutdown...")
        self._shutdown_event.set()

    async def run(self, config_path: str, dry_run: bool = False,
                  seed: Optional[list] = None) -> int:
        """Run the crawl worker."""
        try:
            config = load_config(config_path)
            setup_logging(config.logging)
            self.setup_signal_handlers()

            self.logger.info("=== CRAWL WORKER STARTING ===")
            self.logger.info(f"Configuration loaded from: {config_path}")
            self.logger.info(f"Allow patterns: {len(config.crawler.allow_patterns)}")
            self.logger.info(f"Deny patterns: {len(config.crawler.deny_patterns)}")
            self.logger.info(f"Inbound stream: {config.messaging.inbound_stream}")
            self.logger.info(f"Ledger: {config.ledger.backend} ({config.ledger.namespace})")

            if dry_run:
                self.logger.info("DRY RUN MODE: No messages will be consumed")
                await self._dry_run(config)
                return 0

            self.service = CrawlerService(config)
            await self.service.initialize()

            if seed:
                await self.service.seed(seed[0], seed[1])
                return 0

            await self.service.run(self._shutdown_event)

        except ConfigError as e:
            print(f"Configuration error: {e}")
            return 1

        except Exception as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1

        finally:
            if self.service:
                await self.service.close()
            self.logger.info("=== CRAWL WORKER FINISHED ===")

        return 0

    async def _dry_run(self, config: Config):
        """Check configuration and connections without consuming."""
        self.logger.info("Testing Redis connection...")
        try:
            import redis.asyncio as redis
            redis_client = redis.Redis(
                host=config.redis.host,
                port=config.redis.port,
                db=config.redis.db,
                password=config.redis.password
            )
            await redis_client.ping()
            await redis_client.aclose()
            self.logger.info("Redis connection successful")
        except Exception as e:
            self.logger.error(f"Redis connection failed: {e}")

        self.logger.info("Testing policy patterns...")
        try:
            from hopcrawler.crawler.policy import PolicyFilter
            PolicyFilter(config.crawler.allow_patterns, config.crawler.deny_patterns)
            self.logger.info("Policy patterns compiled")
        except ConfigError as e:
            self.logger.error(f"Policy patterns invalid: {e}")

        self.logger.info("Testing fetcher configuration...")
        try:
            from hopcrawler.crawler.fetcher import ContentFetcher
            async with ContentFetcher(
                user_agent=config.crawler.user_agent,
                request_timeout=config.crawler.request_timeout,
                max_content_size=config.crawler.max_content_size
            ):
                self.logger.info("Fetcher session started")
        except Exception as e:
            self.logger.error(f"Fetcher test failed: {e}")

        self.logger.info("Dry run completed")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Single-hop crawl worker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                  # Consume edges with config.yaml
  python main.py --config my_config.yaml          # Run with custom config
  python main.py --seed https://a.example/ https://a.example/post
                                                  # Publish one starting edge
  python main.py --dry-run                        # Test configuration only
        """
    )

    parser.add_argument(
        '--config',
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )

    parser.add_argument(
        '--seed',
        nargs=2,
        metavar=('FROM', 'TO'),
        help='Publish a single edge to the inbound stream and exit'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Test configuration without consuming messages'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'hop-crawler {__version__}'
    )

    args = parser.parse_args()

    if not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.")
        print("Please create a config.yaml file or specify a different path with --config")
        return 1

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(
            config_path=args.config,
            dry_run=args.dry_run,
            seed=args.seed
        ))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())
