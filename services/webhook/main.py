"""Memos Webhook Service - FastAPI application."""

import logging
import os
import sys
import traceback
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict

from services.notion_writer.writer import NotionWriter
from services.webhook.handler import MEMO_CREATED, MemoWebhookHandler
from shared.config import SyncConfig
from shared.memos_client import MemosClient

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = logging.getLogger(__name__)

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


class WebhookPayload(BaseModel):
    """Body sent by Memos webhooks."""
    model_config = ConfigDict(extra="allow")

    activityType: Optional[str] = None
    memo: Optional[Dict[str, Any]] = None


def build_handler(config: SyncConfig, http_client: httpx.AsyncClient) -> MemoWebhookHandler:
    """Wire a handler from configuration."""
    memos_client = None
    check = config.validate_memos()
    if check.ok:
        memos_client = MemosClient(check.base, check.token, http_client=http_client)
    else:
        logger.warning(f"Memos attachment fetch disabled: {check.errors}")

    return MemoWebhookHandler(
        config=config,
        writer=NotionWriter(config.notion_token),
        memos_client=memos_client
    )


def create_app(
    config: Optional[SyncConfig] = None,
    handler: Optional[MemoWebhookHandler] = None
) -> FastAPI:
    """
    Create the webhook application.

    Args:
        config: Configuration; read from the environment at startup when omitted
        handler: Pre-built handler; built from configuration at startup when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown events."""
        logger.info("Memos Webhook Service starting up...")
        http_client = None
        if app.state.handler is None:
            app_config = config or SyncConfig.from_env()
            logger.info(
                f"Notion token configured: {bool(app_config.notion_token)}, "
                f"database: {app_config.notion_database_id or '(unset)'}"
            )
            http_client = httpx.AsyncClient(timeout=app_config.http_timeout)
            app.state.handler = build_handler(app_config, http_client)
        yield
        if http_client is not None:
            await app.state.handler.writer.aclose()
            await http_client.aclose()
        logger.info("Memos Webhook Service shutting down...")

    app = FastAPI(
        title="Memos Webhook Service",
        description="Mirrors newly created memos into a Notion database",
        version="0.1.0",
        lifespan=lifespan
    )
    app.state.handler = handler

    @app.get("/health", status_code=status.HTTP_200_OK)
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "memos_webhook",
            "version": "0.1.0"
        }

    @app.api_route("/webhook", methods=ALL_METHODS)
    async def receive_webhook(request: Request):
        """
        Receive a Memos webhook event.

        Only POST is accepted. Events other than memo creation are
        acknowledged and ignored.
        """
        logger.info(f"Received {request.method} {request.url.path}")
        if request.method != "POST":
            logger.info(f"Rejecting {request.method} request")
            return PlainTextResponse("Method not allowed", status_code=status.HTTP_405_METHOD_NOT_ALLOWED)

        try:
            payload = WebhookPayload.model_validate(await request.json())
            logger.info(f"Activity type: {payload.activityType}")

            if payload.activityType != MEMO_CREATED:
                logger.info(f"Ignoring event: {payload.activityType}")
                return JSONResponse(status_code=status.HTTP_200_OK, content={"status": "ignored"})

            result = await request.app.state.handler.handle(payload.memo)
            return JSONResponse(status_code=status.HTTP_200_OK, content=result)

        except Exception as exc:
            logger.error(f"Webhook processing failed: {exc}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": str(exc),
                    "stack": traceback.format_exc()
                }
            )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("WEBHOOK_PORT", 8787))
    uvicorn.run(app, host="0.0.0.0", port=port)
