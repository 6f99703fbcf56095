"""Change event schemas.

A change event says *that* a content item changed, never *what* it now
looks like: the payload is a best-effort snapshot for diagnostics and may
be stale by the time it is consumed. Consumers re-read the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

TOPIC_PREFIX = "content"


class ChangeKind(str, Enum):
    """Kind of change recorded against a content item."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    REINDEX_REQUESTED = "reindex_requested"

    @property
    def topic(self) -> str:
        return f"{TOPIC_PREFIX}.{self.value}"

    @classmethod
    def from_topic(cls, topic: str) -> ChangeKind:
        prefix, _, kind = topic.partition(".")
        if prefix != TOPIC_PREFIX:
            raise ValueError(f"Unknown change topic: {topic}")
        return cls(kind)


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A content mutation or administrative signal."""

    change_kind: ChangeKind
    entity_id: str | None = None  # None for reindex_requested
    payload: dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid4()))
    emitted_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def topic(self) -> str:
        return self.change_kind.topic

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "change_kind": self.change_kind.value,
            "entity_id": self.entity_id,
            "payload": self.payload,
            "event_id": self.event_id,
            "emitted_at": self.emitted_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChangeEvent:
        kind = data.get("change_kind")
        change_kind = ChangeKind(kind) if kind else ChangeKind.from_topic(data["topic"])
        emitted_at = data.get("emitted_at")
        return cls(
            change_kind=change_kind,
            entity_id=data.get("entity_id"),
            payload=data.get("payload") or {},
            event_id=data.get("event_id") or str(uuid4()),
            emitted_at=(
                datetime.fromisoformat(emitted_at) if emitted_at else datetime.now(UTC)
            ),
        )
