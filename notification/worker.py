#!/usr/bin/env python3
"""
RQ Worker for volunteer notifications.

Processes notification jobs queued by NotificationService in async mode.

Usage:
    python -m notification.worker
    python -m notification.worker --burst
    python -m notification.worker --verbose
"""

import os
import sys
import argparse
import logging

from redis import Redis
from rq import Worker

logger = logging.getLogger(__name__)


def resolve_redis_url(config_path: str = None) -> str:
    """REDIS_URL wins, then notifications.redis_url from config, then localhost."""
    env_url = os.environ.get('REDIS_URL')
    if env_url:
        return env_url
    if config_path and os.path.exists(config_path):
        from core.config_loader import load_config
        configured = load_config(config_path).notifications.redis_url
        if configured:
            return configured
    return 'redis://localhost:6379/0'


def start_worker(redis_url: str, burst: bool = False, queues: list = None):
    """Start the RQ worker."""
    if queues is None:
        queues = ['notifications']

    logger.info("Starting RQ Worker")
    logger.info(f"Queues: {', '.join(queues)}")
    logger.info(f"Burst mode: {burst}")

    try:
        redis_conn = Redis.from_url(redis_url)
        redis_conn.ping()
        logger.info("Connected to Redis")

        worker = Worker(queues, connection=redis_conn)

        if burst:
            logger.info("Running in burst mode...")
            worker.work(burst=True)
        else:
            logger.info("Worker started. Press Ctrl+C to stop.")
            worker.work()

    except KeyboardInterrupt:
        logger.info("Worker stopped")
    except Exception as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


def main(argv=None):
    parser = argparse.ArgumentParser(description='Volunteer Notification Worker')
    parser.add_argument('--burst', action='store_true', help='Process all and exit')
    parser.add_argument('--queues', nargs='+', default=['notifications'])
    parser.add_argument('--config', default='config.yaml')
    parser.add_argument('--verbose', action='store_true')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # in_app deliveries write through the configured database
    if os.path.exists(args.config):
        from core.config_loader import load_config
        from database.database import configure_database
        configure_database(load_config(args.config).database)

    start_worker(resolve_redis_url(args.config), burst=args.burst, queues=args.queues)


if __name__ == '__main__':
    main()
