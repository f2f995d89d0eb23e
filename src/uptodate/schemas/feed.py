"""Schemas for the /v1/feed endpoint."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from uptodate.schemas.snapshot import Topic


class FeedResponse(BaseModel):
    """Ranked topics for the requester's location and date."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    requested_bucket_id: str
    resolved_bucket_id: str
    snapshot_date: str
    generated_at: str | None = None
    topics: list[Topic]
