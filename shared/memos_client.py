"""Memos API client used by both the webhook service and the bulk sync script."""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx


class MemosAPIError(Exception):
    """Raised when the Memos API answers with a non-success status."""

    def __init__(self, message: str, status_code: int, body: str):
        super().__init__(f"{message}: {status_code} {body}")
        self.status_code = status_code
        self.body = body


class MemosClient:
    """Thin async wrapper over the Memos REST API."""

    def __init__(
        self,
        base_url: str,
        token: str,
        http_client: httpx.AsyncClient,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the Memos client.

        Args:
            base_url: API base, e.g. https://memos.example.com/api/v1
            token: Memos access token sent as a bearer token
            http_client: httpx client owned and closed by the caller
            logger: Logger for request diagnostics
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.http_client = http_client
        self.logger = logger or logging.getLogger(__name__)

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    async def list_memos_page(
        self,
        page_size: int,
        page_token: Optional[str] = None,
        filter_expr: Optional[str] = None
    ) -> Dict[str, Any]:
        """Fetch one page of the memo list."""
        params = {"pageSize": str(page_size)}
        if page_token:
            params["pageToken"] = page_token
        if filter_expr:
            params["filter"] = filter_expr

        url = f"{self.base_url}/memos"
        self.logger.debug(f"Requesting memos page: {url} params={params}")
        response = await self.http_client.get(url, params=params, headers=self._headers())

        if not response.is_success:
            raise MemosAPIError("List memos failed", response.status_code, response.text)

        return response.json()

    async def iter_memos(
        self,
        filter_expr: Optional[str] = None,
        page_size: int = 10
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Iterate every memo, following nextPageToken until it is empty.

        Raises:
            MemosAPIError: If any page request fails
        """
        page_token = ""
        page = 0
        while True:
            page += 1
            data = await self.list_memos_page(page_size, page_token, filter_expr)
            memos = data.get("memos") or []
            self.logger.info(f"Memos page {page} returned {len(memos)} memos")

            for memo in memos:
                yield memo

            page_token = data.get("nextPageToken") or ""
            if not page_token:
                break

    async def list_attachments(self, memo_name: str) -> List[Dict[str, Any]]:
        """
        List the attachments of a memo.

        Args:
            memo_name: Memo resource name (memos/<id>) or bare id

        Returns:
            List of attachment records

        Raises:
            MemosAPIError: If the API answers with a non-success status
            ValueError: If the response body is not JSON
        """
        memo_id = memo_name.split("/")[-1]
        url = f"{self.base_url}/memos/{memo_id}/attachments"
        self.logger.info(f"Requesting memo attachments: {url}")

        response = await self.http_client.get(url, headers=self._headers())
        if not response.is_success:
            raise MemosAPIError("List attachments failed", response.status_code, response.text)

        data = response.json()
        attachments = data.get("attachments") if isinstance(data, dict) else None
        return attachments or []
