#!/usr/bin/env python3
"""
SMS digest worker for WAVE.

Periodically renders each member's pending SMS notifications into digest
messages and hands them to the rate-limited SMS dispatch queue.

Usage:
    python -m notification.worker --once
    python -m notification.worker --groups family friends --interval 600
    python -m notification.worker --verbose
"""

import argparse
import logging
import sys
import time
from typing import List, Optional

from core.app_context import AppContext
from core.config_loader import load_config
from core.exceptions import NotFoundError

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def discover_groups(ctx: AppContext) -> List[str]:
    return ctx.store.list_keys("groups")


def run_once(ctx: AppContext, groups: List[str]) -> int:
    """Flush every group once. Returns the number of SMS messages queued."""
    total = 0
    for group_id in groups:
        try:
            total += ctx.notification_service.flush_sms_digests(group_id)
        except NotFoundError as e:
            logger.warning(f"Skipping group {group_id}: {e}")
    return total


def wait_for_sms_drain(ctx: AppContext, poll_seconds: float = 1.0) -> None:
    # Timer threads are daemons; keep the process alive until the last send returns
    while not ctx.sms_queue.is_idle():
        time.sleep(poll_seconds)


def start_worker(config_path: str, groups: Optional[List[str]], interval: Optional[int], once: bool) -> None:
    config = load_config(config_path)
    ctx = AppContext.build(config)

    interval = interval or config.worker.interval_seconds

    logger.info("Starting SMS digest worker")
    logger.info(f"Data root: {config.storage.data_root}")
    logger.info(f"Interval: {interval}s")
    logger.info(f"Single pass: {once}")

    try:
        while True:
            target_groups = groups or config.worker.groups or discover_groups(ctx)
            queued = run_once(ctx, target_groups)
            logger.info(f"Digest pass complete: {queued} SMS message(s) queued across {len(target_groups)} group(s)")

            if once:
                wait_for_sms_drain(ctx)
                break
            time.sleep(interval)
    except KeyboardInterrupt:
        logger.info("\nWorker stopped")
    finally:
        ctx.close()


def main():
    parser = argparse.ArgumentParser(description='WAVE SMS Digest Worker')
    parser.add_argument('--config', default='config.yaml', help='Path to config.yaml')
    parser.add_argument('--groups', nargs='+', default=None, help='Group ids (default: config or all)')
    parser.add_argument('--interval', type=int, default=None, help='Seconds between passes')
    parser.add_argument('--once', action='store_true', help='Run a single pass and exit')
    parser.add_argument('--verbose', action='store_true')

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        start_worker(args.config, args.groups, args.interval, args.once)
    except Exception as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
