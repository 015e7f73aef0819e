"""Bulk synchronization of every memo into Notion."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from services.notion_writer.writer import NotionWriter
from shared.config import SyncConfig
from shared.content import (
    build_memo_page,
    collect_images,
    extract_attachment_urls,
    parse_memo_content,
    to_public_url,
)
from shared.memos_client import MemosClient
from shared.models import Memo, SyncFailure, SyncSummary


class BulkSynchronizer:
    """Walks the memo list and creates, updates or skips the matching Notion pages."""

    def __init__(
        self,
        config: SyncConfig,
        memos_client: MemosClient,
        writer: NotionWriter,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the synchronizer.

        Args:
            config: Sync configuration (filter, page size, delay, update mode)
            memos_client: Source of memos
            writer: Notion writer for lookups and writes
            sleep: Coroutine used for the pause between writes
            logger: Logger for progress diagnostics
        """
        self.config = config
        self.memos_client = memos_client
        self.writer = writer
        self.sleep = sleep
        self.logger = logger or logging.getLogger(__name__)

    async def run(self) -> SyncSummary:
        """
        Synchronize every memo returned by the list endpoint.

        Per-memo failures are recorded and the loop continues; errors from
        the list endpoint itself propagate.

        Returns:
            SyncSummary with counters and failures
        """
        config = self.config
        self.logger.info(
            f"Starting bulk sync (filter={config.memos_filter or '(none)'}, "
            f"page_size={config.memos_page_size}, delay={config.notion_delay_ms}ms, "
            f"update_existing={config.notion_update_existing})"
        )

        summary = SyncSummary()

        async for memo_data in self.memos_client.iter_memos(
            filter_expr=config.memos_filter,
            page_size=config.memos_page_size
        ):
            summary.processed += 1
            memo_id = "unknown"

            try:
                if not isinstance(memo_data, dict):
                    raise ValueError(f"Unexpected memo record: {memo_data!r}")
                memo_id = memo_data.get("name") or "unknown"
                outcome = await self._sync_memo(Memo.from_dict(memo_data))
            except Exception as e:
                self.logger.error(f"Failed to process memo {memo_id}: {e}", exc_info=True)
                summary.failures.append(SyncFailure(memo_id=memo_id, error=str(e)))
                continue

            if outcome == "skipped":
                summary.skipped += 1
            elif outcome == "updated":
                summary.updated += 1
            else:
                summary.created += 1

        self.logger.info(
            f"Bulk sync finished: {summary.processed} processed, {summary.created} created, "
            f"{summary.updated} updated, {summary.skipped} skipped, {len(summary.failures)} failed"
        )
        for failure in summary.failures:
            self.logger.warning(f"Failed memo {failure.memo_id}: {failure.error}")

        return summary

    async def _sync_memo(self, memo: Memo) -> str:
        """Write one memo and report "created", "updated" or "skipped"."""
        config = self.config
        self.logger.info(f"Processing memo {memo.memo_id}")

        text, content_images = parse_memo_content(memo.content)
        attachment_images = extract_attachment_urls(memo.attachments)
        images = [
            to_public_url(url, config.r2_public_domain)
            for url in collect_images(content_images, attachment_images)
        ]
        self.logger.debug(
            f"Memo {memo.memo_id}: {len(content_images)} content images, "
            f"{len(attachment_images)} attachment images, {len(images)} after dedup"
        )

        existing_page_id = await self.writer.find_page_by_memo_id(
            config.notion_database_id, memo.memo_id
        )

        if existing_page_id and not config.notion_update_existing:
            self.logger.info(f"Notion page {existing_page_id} already exists, skipping")
            return "skipped"

        page = build_memo_page(memo, text, images)

        if existing_page_id:
            await self.writer.update_page(existing_page_id, page)
            outcome = "updated"
        else:
            await self.writer.create_page(config.notion_database_id, page)
            outcome = "created"

        if config.notion_delay_ms > 0:
            await self.sleep(config.notion_delay_ms / 1000)

        return outcome
