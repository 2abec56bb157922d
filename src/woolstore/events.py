"""Notification events.

Every fan-out performed by the router describes itself with one of these
events. Callbacks receive the unpacked ``(key, value, trigger)`` triple;
the full model is what gets logged and handed to failure hooks.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PubSubType(StrEnum):
    """Why a notification fired.

    This vocabulary is closed: embedding applications match on it.
    """

    SET = "set"
    DEL = "del"
    PUB = "pub"
    SUB = "sub"


Callback = Callable[[str, Any, PubSubType], Awaitable[None] | None]
"""Subscriber callback, either a plain function or a coroutine function."""


class Notification(BaseModel):
    """A single event delivered to one or more subscribers."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: Any = None
    trigger: PubSubType
    source: str | None = Field(
        default=None,
        description="Targeted subscriber for pub_to deliveries, None for a fan-out.",
    )
    published_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("published_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def as_args(self) -> tuple[str, Any, PubSubType]:
        return self.key, self.value, self.trigger
