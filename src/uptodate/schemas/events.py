"""Schemas for the /v1/events endpoint."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Column widths of user_events.dwell_ms (INTEGER) and client_ts (BIGINT)
INT32_MAX = 2**31 - 1
INT64_MAX = 2**63 - 1

EventType = Literal[
    "topic_swipe_right",
    "topic_swipe_left",
    "topic_open",
    "subtopic_open",
    "dwell_time",
]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EventIn(_CamelModel):
    """A single interaction reported by the client."""

    type: EventType
    topic_id: str | None = Field(default=None, max_length=128)
    subtopic_id: str | None = Field(default=None, max_length=128)
    dwell_ms: int | None = Field(default=None, ge=-INT32_MAX - 1, le=INT32_MAX)
    ts: int | None = Field(
        default=None,
        ge=-INT64_MAX - 1,
        le=INT64_MAX,
        description="Client timestamp, epoch milliseconds.",
    )


class EventBatch(_CamelModel):
    """Payload posted by the client after a feed session."""

    user_id: str = Field(min_length=1, max_length=128)
    bucket_id: str = Field(min_length=1, max_length=32)
    snapshot_date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    events: list[EventIn] = Field(max_length=500)


class EventsResponse(_CamelModel):
    ok: bool = True
    events_recorded: int
    topics_scored: int
