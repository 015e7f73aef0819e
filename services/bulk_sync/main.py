"""Bulk sync script - copies every matching memo into the Notion database.

Run:
    MEMOS_API_BASE=https://your-memos.com/api/v1 \\
    MEMOS_API_TOKEN=xxx \\
    NOTION_TOKEN=xxx \\
    NOTION_DATABASE_ID=xxx \\
    python -m services.bulk_sync.main

Optional environment variables:
    MEMOS_FILTER            Memos list filter expression, e.g. attachments IS NOT EMPTY
    MEMOS_PAGE_SIZE         Memos per list page (default 10)
    NOTION_DELAY_MS         Pause between Notion writes (default 200)
    NOTION_UPDATE_EXISTING  "true" updates pages that already exist, otherwise they are skipped
    R2_PUBLIC_DOMAIN        Public domain replacing private R2 storage hosts in image URLs
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import httpx

from services.bulk_sync.synchronizer import BulkSynchronizer
from services.notion_writer.writer import NotionWriter
from shared.config import SyncConfig
from shared.memos_client import MemosClient
from shared.models import SyncSummary

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Copy Memos memos into a Notion database")
    parser.add_argument("--filter", dest="memos_filter", help="Memos list filter expression")
    parser.add_argument("--page-size", dest="memos_page_size", type=int, help="Memos per list page")
    parser.add_argument("--delay-ms", dest="notion_delay_ms", type=int, help="Pause between Notion writes")
    parser.add_argument(
        "--update-existing",
        dest="notion_update_existing",
        action="store_true",
        default=None,
        help="Update pages that already exist instead of skipping them"
    )
    return parser.parse_args(argv)


def apply_overrides(config: SyncConfig, args: argparse.Namespace) -> SyncConfig:
    """Apply command-line values on top of the environment configuration."""
    for name in ("memos_filter", "memos_page_size", "notion_delay_ms", "notion_update_existing"):
        value = getattr(args, name, None)
        if value is not None:
            setattr(config, name, value)
    return config


def check_config(config: SyncConfig) -> List[str]:
    """Return the problems that prevent a bulk sync from starting."""
    errors = list(config.validate_memos().errors)
    if not config.notion_token:
        errors.append("NOTION_TOKEN is not set")
    if not config.notion_database_id:
        errors.append("NOTION_DATABASE_ID is not set")
    if config.memos_page_size <= 0:
        errors.append("MEMOS_PAGE_SIZE must be positive")
    return errors


async def run_sync(config: SyncConfig) -> SyncSummary:
    """Build the clients and run one bulk sync."""
    check = config.validate_memos()
    writer = NotionWriter(config.notion_token)
    try:
        async with httpx.AsyncClient(timeout=config.http_timeout) as http_client:
            synchronizer = BulkSynchronizer(
                config=config,
                memos_client=MemosClient(check.base, check.token, http_client=http_client),
                writer=writer
            )
            return await synchronizer.run()
    finally:
        await writer.aclose()


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point; returns the process exit code."""
    try:
        config = apply_overrides(SyncConfig.from_env(), parse_args(argv))
    except ValueError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"Invalid configuration: {e}")
        return 1

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    errors = check_config(config)
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return 1

    logger.info(f"Memos base: {config.memos_api_base}, Notion database: {config.notion_database_id}")

    try:
        summary = asyncio.run(run_sync(config))
    except Exception as e:
        logger.error(f"Bulk sync aborted: {e}", exc_info=True)
        return 1

    logger.info(f"Summary: {summary.to_dict()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
