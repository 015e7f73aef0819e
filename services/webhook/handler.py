"""Processing of a single "memo created" webhook event."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from services.notion_writer.writer import NotionWriter
from shared.config import SyncConfig
from shared.content import (
    build_memo_page,
    collect_images,
    extract_attachment_urls,
    parse_memo_content,
    to_public_url,
)
from shared.memos_client import MemosAPIError, MemosClient
from shared.models import Memo

MEMO_CREATED = "memos.memo.created"


class MemoWebhookHandler:
    """Turns a memo-created event into a new Notion page."""

    def __init__(
        self,
        config: SyncConfig,
        writer: NotionWriter,
        memos_client: Optional[MemosClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the handler.

        Args:
            config: Sync configuration
            writer: Notion writer used to create the page
            memos_client: Client for the delayed attachment fetch; None skips it
            sleep: Coroutine used for the wait before the attachment fetch
            logger: Logger for processing diagnostics
        """
        self.config = config
        self.writer = writer
        self.memos_client = memos_client
        self.sleep = sleep
        self.logger = logger or logging.getLogger(__name__)

    async def handle(self, memo_data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Mirror the memo of a created event into Notion.

        Every call creates a page; existing pages are not looked up.

        Returns:
            Summary with status, memo_id and images_count

        Raises:
            ValueError: If the payload has no memo
            APIResponseError: If Notion rejects the page
        """
        if not isinstance(memo_data, dict):
            raise ValueError("Webhook payload is missing the memo object")

        memo = Memo.from_dict(memo_data)
        self.logger.info(f"Processing created memo {memo.memo_id}")

        text, content_images = parse_memo_content(memo.content)
        payload_images = extract_attachment_urls(memo.attachments)
        fetched_images = await self.fetch_attachment_images_after_delay(memo)

        self.logger.info(
            f"Memo {memo.memo_id} images: {len(content_images)} in content, "
            f"{len(payload_images)} in payload attachments, {len(fetched_images)} fetched"
        )

        images = [
            to_public_url(url, self.config.r2_public_domain)
            for url in collect_images(content_images, payload_images, fetched_images)
        ]

        page = build_memo_page(memo, text, images)
        await self.writer.create_page(self.config.notion_database_id, page)

        return {
            "status": "success",
            "memo_id": page.memo_id,
            "images_count": len(images)
        }

    async def fetch_attachment_images_after_delay(self, memo: Memo) -> List[str]:
        """
        Wait, then list the memo's attachments from Memos and return their URLs.

        Attachment links may not exist yet when the created event fires, so
        a single fetch is made after a fixed delay. Any problem with the
        fetch contributes no images.
        """
        if not memo.name:
            self.logger.warning("Memo has no name, skipping attachment fetch")
            return []

        check = self.config.validate_memos()
        if not check.ok:
            self.logger.warning(f"Memos configuration invalid, skipping attachment fetch: {check.errors}")
            return []
        if self.memos_client is None:
            self.logger.warning("No Memos client configured, skipping attachment fetch")
            return []

        delay = self.config.attachment_fetch_delay
        if delay > 0:
            self.logger.info(f"Waiting {delay}s before fetching attachments for {memo.name}")
            await self.sleep(delay)

        try:
            attachments = await self.memos_client.list_attachments(memo.name)
        except MemosAPIError as e:
            self.logger.error(f"Fetching attachments failed: {e}")
            return []
        except httpx.HTTPError as e:
            self.logger.error(f"Fetching attachments failed: {e}")
            return []
        except ValueError as e:
            self.logger.error(f"Could not parse attachments response: {e}")
            return []

        self.logger.info(f"Fetched {len(attachments)} attachments for {memo.name}")
        return extract_attachment_urls(attachments)
