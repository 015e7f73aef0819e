"""Unit tests for the Memos webhook service."""

import logging
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from services.notion_writer.writer import NotionWriter
from services.webhook.handler import MemoWebhookHandler
from services.webhook.main import create_app
from shared.config import SyncConfig
from shared.memos_client import MemosAPIError, MemosClient
from shared.models import Memo

CREATED_PAYLOAD = {
    "activityType": "memos.memo.created",
    "memo": {
        "name": "memos/abc123",
        "content": "Hello ![x](http://img/a.png)\nWorld",
        "create_time": {"seconds": 1700000000}
    }
}


# Test fixtures

@pytest.fixture
def config():
    """Configuration with a working Memos API."""
    return SyncConfig(
        memos_api_base="https://memos.example.com/api/v1",
        memos_api_token="memos-token",
        notion_token="notion-token",
        notion_database_id="db123",
        attachment_fetch_delay=10.0
    )


@pytest.fixture
def mock_notion_client():
    """Mock notion_client.AsyncClient."""
    client = AsyncMock()
    client.pages.create.return_value = {"id": "page123", "url": "https://notion.so/page123"}
    return client


@pytest.fixture
def writer(mock_notion_client):
    return NotionWriter(api_token="notion-token", client=mock_notion_client)


@pytest.fixture
def mock_memos_client():
    """Mock Memos client returning no attachments."""
    client = AsyncMock(spec=MemosClient)
    client.list_attachments.return_value = []
    return client


@pytest.fixture
def mock_sleep():
    return AsyncMock()


@pytest.fixture
def handler(config, writer, mock_memos_client, mock_sleep):
    return MemoWebhookHandler(
        config=config,
        writer=writer,
        memos_client=mock_memos_client,
        sleep=mock_sleep
    )


@pytest.fixture
def client(handler):
    return TestClient(create_app(config=handler.config, handler=handler))


# Test: HTTP endpoint

def test_created_event_creates_page(client, mock_notion_client):
    """Test the full flow for a memo with text and one inline image."""
    response = client.post("/webhook", json=CREATED_PAYLOAD)

    assert response.status_code == 200
    assert response.json() == {
        "status": "success",
        "memo_id": "memos/abc123",
        "images_count": 1
    }

    mock_notion_client.pages.create.assert_called_once()
    call_args = mock_notion_client.pages.create.call_args
    assert call_args.kwargs["parent"] == {"database_id": "db123"}

    children = call_args.kwargs["children"]
    assert [block["type"] for block in children] == ["paragraph", "paragraph", "image"]
    assert children[0]["paragraph"]["rich_text"][0]["text"]["content"] == "Hello"
    assert children[1]["paragraph"]["rich_text"][0]["text"]["content"] == "World"
    assert children[2]["image"]["external"]["url"] == "http://img/a.png"

    properties = call_args.kwargs["properties"]
    assert properties["Name"]["title"][0]["text"]["content"] == "Hello\nWorld"
    assert properties["Created"]["date"]["start"] == "2023-11-14T22:13:20.000Z"
    assert properties["Memos ID"]["rich_text"][0]["text"]["content"] == "memos/abc123"


def test_other_event_ignored(client, mock_notion_client, mock_memos_client):
    """Test that non-created events are acknowledged without any Notion call."""
    payload = dict(CREATED_PAYLOAD, activityType="memos.memo.updated")

    response = client.post("/webhook", json=payload)

    assert response.status_code == 200
    assert response.json() == {"status": "ignored"}
    mock_notion_client.pages.create.assert_not_called()
    mock_memos_client.list_attachments.assert_not_called()


def test_missing_activity_type_ignored(client, mock_notion_client):
    response = client.post("/webhook", json={"memo": {"name": "memos/1"}})

    assert response.json() == {"status": "ignored"}
    mock_notion_client.pages.create.assert_not_called()


@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
def test_wrong_method_rejected(client, mock_notion_client, method):
    """Test that only POST is accepted."""
    response = client.request(method, "/webhook")

    assert response.status_code == 405
    assert response.text == "Method not allowed"
    mock_notion_client.pages.create.assert_not_called()


def test_invalid_json_returns_500(client):
    response = client.post(
        "/webhook",
        content=b"not json",
        headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 500
    body = response.json()
    assert "error" in body
    assert "Traceback" in body["stack"]


def test_notion_failure_returns_500(client, mock_notion_client):
    """Test that a Notion error is reported with diagnostic detail."""
    mock_notion_client.pages.create.side_effect = RuntimeError("validation_error: Created is not a property")

    response = client.post("/webhook", json=CREATED_PAYLOAD)

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "validation_error: Created is not a property"
    assert "RuntimeError" in body["stack"]


def test_missing_memo_returns_500(client, mock_notion_client):
    response = client.post("/webhook", json={"activityType": "memos.memo.created"})

    assert response.status_code == 500
    assert "memo" in response.json()["error"]
    mock_notion_client.pages.create.assert_not_called()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_shutdown_closes_built_writer(config):
    """Test that a handler built at startup has its Notion client closed on shutdown."""
    built_writer = AsyncMock(spec=NotionWriter)

    with patch("services.webhook.main.NotionWriter", return_value=built_writer):
        with TestClient(create_app(config=config)) as app_client:
            assert app_client.get("/health").status_code == 200
            built_writer.aclose.assert_not_awaited()

    built_writer.aclose.assert_awaited_once()


# Test: handler

@pytest.mark.asyncio
async def test_images_merged_and_deduplicated(handler, mock_notion_client, mock_memos_client, mock_sleep):
    """Test that content, payload and fetched attachment images are unioned."""
    mock_memos_client.list_attachments.return_value = [
        {"externalLink": "https://a/2.png"},
        {"externalLink": "https://a/3.png"},
    ]
    memo = {
        "name": "memos/abc123",
        "content": "![one](https://a/1.png) text",
        "attachments": [{"external_link": "https://a/1.png"}, {"content": "https://a/2.png"}]
    }

    result = await handler.handle(memo)

    assert result["images_count"] == 3
    mock_sleep.assert_awaited_once_with(10.0)
    mock_memos_client.list_attachments.assert_awaited_once_with("memos/abc123")

    children = mock_notion_client.pages.create.call_args.kwargs["children"]
    urls = [block["image"]["external"]["url"] for block in children if block["type"] == "image"]
    assert urls == ["https://a/1.png", "https://a/2.png", "https://a/3.png"]


@pytest.mark.asyncio
async def test_r2_urls_rewritten(handler, mock_notion_client):
    handler.config.r2_public_domain = "https://img.example.com/"
    memo = {
        "name": "memos/abc123",
        "attachments": [{"externalLink": "https://bucket.acct.r2.cloudflarestorage.com/a/1.png?X-Amz=1"}]
    }

    await handler.handle(memo)

    children = mock_notion_client.pages.create.call_args.kwargs["children"]
    assert children[0]["image"]["external"]["url"] == "https://img.example.com/a/1.png"


@pytest.mark.asyncio
async def test_webhook_never_checks_existing_pages(handler, mock_notion_client):
    """Test that every created event creates a page."""
    await handler.handle(CREATED_PAYLOAD["memo"])
    await handler.handle(CREATED_PAYLOAD["memo"])

    assert mock_notion_client.pages.create.call_count == 2
    mock_notion_client.databases.query.assert_not_called()


@pytest.mark.asyncio
async def test_fetch_skipped_without_memo_name(handler, mock_memos_client, mock_sleep, caplog):
    with caplog.at_level(logging.WARNING):
        result = await handler.handle({"content": "hi"})

    assert result["memo_id"] == "unknown"
    mock_sleep.assert_not_awaited()
    mock_memos_client.list_attachments.assert_not_called()
    assert "no name" in caplog.text


@pytest.mark.asyncio
async def test_fetch_skipped_with_invalid_config(handler, mock_memos_client, mock_sleep, caplog):
    handler.config.memos_api_token = ""

    with caplog.at_level(logging.WARNING):
        images = await handler.fetch_attachment_images_after_delay(Memo(name="memos/abc123"))

    assert images == []
    mock_sleep.assert_not_awaited()
    mock_memos_client.list_attachments.assert_not_called()
    assert "MEMOS_API_TOKEN" in caplog.text


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    MemosAPIError("List attachments failed", 500, "boom"),
    httpx.ConnectError("connection refused"),
    ValueError("Expecting value"),
])
async def test_fetch_failure_contributes_no_images(handler, mock_memos_client, mock_notion_client, error, caplog):
    """Test that a failing attachment fetch does not fail the request."""
    mock_memos_client.list_attachments.side_effect = error

    with caplog.at_level(logging.ERROR):
        result = await handler.handle(CREATED_PAYLOAD["memo"])

    assert result["status"] == "success"
    assert result["images_count"] == 1
    mock_notion_client.pages.create.assert_called_once()
    assert caplog.records


@pytest.mark.asyncio
async def test_no_delay_when_disabled(handler, mock_sleep, mock_memos_client):
    handler.config.attachment_fetch_delay = 0

    await handler.handle(CREATED_PAYLOAD["memo"])

    mock_sleep.assert_not_awaited()
    mock_memos_client.list_attachments.assert_awaited_once()


@pytest.mark.asyncio
async def test_handler_without_memos_client(config, writer, mock_sleep):
    handler = MemoWebhookHandler(config=config, writer=writer, memos_client=None, sleep=mock_sleep)

    result = await handler.handle(CREATED_PAYLOAD["memo"])

    assert result["images_count"] == 1
    mock_sleep.assert_not_awaited()
