"""Notion Writer - handles page lookup, creation and updates in Notion."""

import logging
from typing import Any, Dict, List, Optional

from notion_client import AsyncClient
from notion_client.errors import APIResponseError

from shared.models import MemoPage

NOTION_VERSION = "2022-06-28"

TITLE_PROPERTY = "Name"
CREATED_PROPERTY = "Created"
MEMO_ID_PROPERTY = "Memos ID"


def build_content_blocks(text: str, images: List[str]) -> List[Dict[str, Any]]:
    """
    Build Notion content blocks from memo text and image URLs.

    Args:
        text: Plain memo text; each non-blank line becomes a paragraph
        images: Image URLs, appended as external image blocks after the text

    Returns:
        List of Notion block objects
    """
    blocks = []

    if text:
        for paragraph in text.split("\n"):
            if paragraph.strip():  # Skip empty lines
                blocks.append({
                    "object": "block",
                    "type": "paragraph",
                    "paragraph": {
                        "rich_text": [
                            {
                                "type": "text",
                                "text": {"content": paragraph.rstrip()}
                            }
                        ]
                    }
                })

    for url in images:
        blocks.append({
            "object": "block",
            "type": "image",
            "image": {
                "type": "external",
                "external": {"url": url}
            }
        })

    return blocks


def build_page_properties(page: MemoPage) -> Dict[str, Any]:
    """Build the fixed Name / Created / Memos ID property set for a memo page."""
    return {
        TITLE_PROPERTY: {
            "title": [
                {
                    "type": "text",
                    "text": {"content": page.title}
                }
            ]
        },
        CREATED_PROPERTY: {
            "date": {"start": page.created}
        },
        MEMO_ID_PROPERTY: {
            "rich_text": [
                {
                    "type": "text",
                    "text": {"content": page.memo_id}
                }
            ]
        }
    }


class NotionWriter:
    """Handles writing memo pages to a Notion database."""

    def __init__(
        self,
        api_token: str,
        client: Optional[AsyncClient] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize Notion Writer.

        Args:
            api_token: Notion API integration token
            client: Optional pre-built notion_client.AsyncClient
            logger: Logger for write diagnostics
        """
        self.client = client or AsyncClient(auth=api_token, notion_version=NOTION_VERSION)
        self.api_token = api_token
        self.logger = logger or logging.getLogger(__name__)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def create_page(self, database_id: str, page: MemoPage) -> Dict[str, str]:
        """
        Create a new Notion page for a memo.

        Args:
            database_id: Notion database ID where the page will be created
            page: Memo page fields

        Returns:
            Dictionary with page_id and url

        Raises:
            APIResponseError: If Notion API request fails
        """
        children = build_content_blocks(page.text, page.images)

        self.logger.info(
            f"Creating Notion page for memo {page.memo_id} "
            f"({len(children)} blocks, {len(page.images)} images)"
        )
        try:
            response = await self.client.pages.create(
                parent={"database_id": database_id},
                properties=build_page_properties(page),
                children=children
            )
        except APIResponseError as e:
            self.logger.error(f"Notion API error creating page for memo {page.memo_id}: {e}")
            raise

        page_id = response["id"]
        self.logger.info(f"Successfully created Notion page: {page_id}")

        return {
            "page_id": page_id,
            "url": response.get("url", "")
        }

    async def find_page_by_memo_id(self, database_id: str, memo_id: str) -> Optional[str]:
        """
        Look up the page whose "Memos ID" property equals the memo identifier.

        Returns:
            ID of the first matching page, or None

        Raises:
            APIResponseError: If Notion API request fails
        """
        try:
            response = await self.client.databases.query(
                database_id=database_id,
                filter={
                    "property": MEMO_ID_PROPERTY,
                    "rich_text": {"equals": memo_id}
                }
            )
        except APIResponseError as e:
            self.logger.error(f"Notion API error querying memo {memo_id}: {e}")
            raise

        results = response.get("results") or []
        if not results:
            return None
        return results[0].get("id")

    async def update_page(self, page_id: str, page: MemoPage) -> Dict[str, Any]:
        """
        Update an existing Notion page.

        Properties are overwritten; body blocks are appended after the
        existing ones, so repeated updates duplicate content.

        Args:
            page_id: Notion page ID to update
            page: Memo page fields

        Returns:
            Dictionary with page_id and updated status

        Raises:
            APIResponseError: If Notion API request fails
        """
        try:
            self.logger.info(f"Updating Notion page {page_id} for memo {page.memo_id}")
            await self.client.pages.update(
                page_id=page_id,
                properties=build_page_properties(page)
            )

            children = build_content_blocks(page.text, page.images)
            if children:
                await self.client.blocks.children.append(
                    block_id=page_id,
                    children=children
                )
        except APIResponseError as e:
            self.logger.error(f"Notion API error updating page {page_id}: {e}")
            raise

        self.logger.info(f"Successfully updated Notion page: {page_id}")

        return {
            "page_id": page_id,
            "updated": True
        }
