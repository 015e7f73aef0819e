"""Shared configuration utilities."""

import os
import re
from dataclasses import dataclass, field
from typing import List, Mapping, Optional


def get_env(
    key: str,
    default: Optional[str] = None,
    required: bool = False,
    environ: Optional[Mapping[str, str]] = None
) -> str:
    """Get environment variable with optional default and required validation."""
    source = os.environ if environ is None else environ
    value = source.get(key, default)
    if required and not value:
        raise ValueError(f"Required environment variable {key} is not set")
    return value


def _get_int(key: str, default: int, environ: Optional[Mapping[str, str]] = None) -> int:
    raw = get_env(key, None, environ=environ)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be an integer, got {raw!r}")


def _get_float(key: str, default: float, environ: Optional[Mapping[str, str]] = None) -> float:
    raw = get_env(key, None, environ=environ)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be a number, got {raw!r}")


def clean_database_id(database_id: str) -> str:
    """
    Clean and extract database ID from various formats.

    Handles:
    - Plain UUID: 2fb86a4c5fbf806dbeb6f3f2c1b23d10
    - UUID with dashes: 2fb86a4c-5fbf-806d-beb6-f3f2c1b23d10
    - Notion URL: https://www.notion.so/2fb86a4c5fbf806dbeb6f3f2c1b23d10?v=...

    Args:
        database_id: Database ID in any format

    Returns:
        Clean database ID (32 hex characters without dashes)

    Raises:
        ValueError: If database ID is invalid
    """
    database_id = database_id.strip()

    if database_id.startswith('http'):
        # The ID sits between the last / and ? (or the end)
        match = re.search(r'/([a-f0-9-]{32,36})(\?|$)', database_id)
        if match:
            database_id = match.group(1)
        else:
            raise ValueError(f"Could not extract database ID from URL: {database_id}")

    database_id = database_id.replace('-', '')

    if not re.match(r'^[a-f0-9]{32}$', database_id):
        raise ValueError(f"Invalid database ID format: {database_id}. Expected 32 hex characters.")

    return database_id


@dataclass
class MemosConfigCheck:
    """Result of validating the Memos API settings."""
    ok: bool
    base: str
    token: str
    errors: List[str] = field(default_factory=list)


@dataclass
class SyncConfig:
    """Settings for both the webhook service and the bulk sync script."""
    memos_api_base: str = ""
    memos_api_token: str = ""
    notion_token: str = ""
    notion_database_id: str = ""
    r2_public_domain: str = ""
    memos_filter: Optional[str] = None
    memos_page_size: int = 10
    notion_delay_ms: int = 200
    notion_update_existing: bool = False
    attachment_fetch_delay: float = 10.0
    http_timeout: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SyncConfig":
        """Build the configuration from environment variables."""
        database_id = get_env("NOTION_DATABASE_ID", "", environ=environ) or ""
        if database_id.strip():
            database_id = clean_database_id(database_id)

        return cls(
            memos_api_base=get_env("MEMOS_API_BASE", "", environ=environ) or "",
            memos_api_token=get_env("MEMOS_API_TOKEN", "", environ=environ) or "",
            notion_token=get_env("NOTION_TOKEN", "", environ=environ) or "",
            notion_database_id=database_id,
            r2_public_domain=get_env("R2_PUBLIC_DOMAIN", "", environ=environ) or "",
            memos_filter=get_env("MEMOS_FILTER", None, environ=environ) or None,
            memos_page_size=_get_int("MEMOS_PAGE_SIZE", 10, environ),
            notion_delay_ms=_get_int("NOTION_DELAY_MS", 200, environ),
            notion_update_existing=get_env("NOTION_UPDATE_EXISTING", "", environ=environ) == "true",
            attachment_fetch_delay=_get_float("ATTACHMENT_FETCH_DELAY", 10.0, environ),
            http_timeout=_get_float("HTTP_TIMEOUT", 30.0, environ),
            log_level=(get_env("LOG_LEVEL", "INFO", environ=environ) or "INFO").upper(),
        )

    def validate_memos(self) -> MemosConfigCheck:
        """Check that the Memos base URL and token are usable."""
        errors = []
        base = self.memos_api_base
        token = self.memos_api_token

        if not base:
            errors.append("MEMOS_API_BASE is not set")
        elif not re.match(r'^https?://', base):
            errors.append("MEMOS_API_BASE must be an http/https URL")

        if not token:
            errors.append("MEMOS_API_TOKEN is not set")

        return MemosConfigCheck(
            ok=not errors,
            base=base.rstrip('/') if base else "",
            token=token,
            errors=errors
        )
