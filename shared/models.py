"""Shared data models for the Memos to Notion sync application."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Memo:
    """Represents a memo from the Memos API."""
    name: str
    content: str = ""
    attachments: List[Dict[str, Any]] = field(default_factory=list)
    create_time: Any = None
    display_time: Any = None
    snippet: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Memo":
        """Build a memo from an API or webhook payload (camelCase or snake_case keys)."""
        data = data or {}
        attachments = data.get("attachments")
        return cls(
            name=data.get("name") or "",
            content=data.get("content") or "",
            attachments=attachments if isinstance(attachments, list) else [],
            create_time=data.get("createTime") or data.get("create_time"),
            display_time=data.get("displayTime") or data.get("display_time"),
            snippet=data.get("snippet") or "",
        )

    @property
    def memo_id(self) -> str:
        """Identifier stored in the Notion "Memos ID" property."""
        return self.name or "unknown"

    @property
    def timestamp(self) -> Any:
        """Raw timestamp used for the page date: display time first, then creation time."""
        return self.display_time or self.create_time


@dataclass
class MemoPage:
    """Fields of the Notion page mirroring one memo."""
    memo_id: str
    title: str
    created: str
    text: str
    images: List[str] = field(default_factory=list)


@dataclass
class SyncFailure:
    """A memo that could not be written during a bulk sync."""
    memo_id: str
    error: str


@dataclass
class SyncSummary:
    """Counters reported at the end of a bulk sync run."""
    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failures: List[SyncFailure] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failures": [
                {"memo_id": failure.memo_id, "error": failure.error}
                for failure in self.failures
            ],
        }
