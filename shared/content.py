"""Memo content helpers shared by the webhook service and the bulk sync script."""

import re
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Tuple
from urllib.parse import urlsplit

from shared.models import Memo, MemoPage

IMAGE_PATTERN = re.compile(r'!\[.*?\]\((https?://[^)]+)\)')

ATTACHMENT_URL_KEYS = ("externalLink", "external_link", "content")

R2_PRIVATE_SUFFIX = ".r2.cloudflarestorage.com"

TITLE_MAX_LENGTH = 100


def parse_memo_content(content: Optional[str]) -> Tuple[str, List[str]]:
    """
    Split memo markdown into plain text and embedded image URLs.

    Args:
        content: Raw memo markdown (may be None or empty)

    Returns:
        Tuple of (text with image markers removed and trimmed, image URLs
        in order of appearance)
    """
    if not content:
        return "", []

    images = IMAGE_PATTERN.findall(content)
    text = IMAGE_PATTERN.sub("", content).strip()
    return text, images


def extract_attachment_urls(attachments: Any) -> List[str]:
    """
    Pull externally reachable URLs out of attachment records.

    Each record contributes its first non-empty value among externalLink,
    external_link and content, kept only if it is an http(s) string.
    Anything that is not a list yields no URLs.
    """
    if not isinstance(attachments, list):
        return []

    urls = []
    for attachment in attachments:
        if not isinstance(attachment, dict):
            continue
        url = next((attachment[key] for key in ATTACHMENT_URL_KEYS if attachment.get(key)), None)
        if isinstance(url, str) and url.startswith("http"):
            urls.append(url)
    return urls


def to_public_url(url: str, public_domain: Optional[str]) -> str:
    """Rewrite a private R2 storage URL onto the configured public domain."""
    if not public_domain:
        return url

    try:
        parsed = urlsplit(url)
        host = parsed.hostname or ""
    except ValueError:
        return url

    if host.endswith(R2_PRIVATE_SUFFIX):
        return f"{public_domain.rstrip('/')}{parsed.path or '/'}"
    return url


def collect_images(*sources: Iterable[str]) -> List[str]:
    """Union image URL sources, dropping exact duplicates and keeping first-seen order."""
    seen = {}
    for source in sources:
        for url in source:
            seen.setdefault(url, None)
    return list(seen)


def _format_instant(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _from_epoch(seconds: float) -> str:
    return _format_instant(datetime.fromtimestamp(seconds, tz=timezone.utc))


def normalize_time(value: Any, now: Optional[datetime] = None) -> str:
    """
    Convert the timestamp shapes found in memos into a UTC ISO-8601 string.

    Accepts epoch seconds, datetime objects, ISO strings and mappings with
    a numeric "seconds" field. Missing or unrecognised values fall back to
    the current time.

    Raises:
        ValueError: If a string cannot be parsed as a date/time
    """
    current = now or datetime.now(timezone.utc)

    if not value:
        return _format_instant(current)

    if isinstance(value, bool):
        return _format_instant(current)

    if isinstance(value, (int, float)):
        return _from_epoch(value)

    if isinstance(value, datetime):
        return _format_instant(value)

    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"Invalid time value: {value!r}")
        return _format_instant(parsed)

    if isinstance(value, dict):
        seconds = value.get("seconds")
        if isinstance(seconds, (int, float)) and not isinstance(seconds, bool):
            return _from_epoch(seconds)

    return _format_instant(current)


def build_memo_page(memo: Memo, text: str, images: List[str]) -> MemoPage:
    """Map a memo onto the fields of its Notion page."""
    memo_id = memo.memo_id
    title_source = "\n".join(line.rstrip() for line in text.split("\n")) if text else ""
    title = (title_source or memo.snippet or memo_id)[:TITLE_MAX_LENGTH]
    return MemoPage(
        memo_id=memo_id,
        title=title,
        created=normalize_time(memo.timestamp),
        text=text,
        images=list(images)
    )
