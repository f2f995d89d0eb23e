"""Schema of a topic snapshot as produced by the summarization provider.

The provider's reply is untrusted JSON. It is validated here in strict mode
immediately on receipt: required fields must be present with the right
types, the topic list must be non-empty and topic ids must be unique.
Nothing is coerced; any deviation surfaces as a ``ValidationError`` that
callers translate into ``SchemaError``.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        strict=True,
    )


class LocationContext(_CamelModel):
    """Approximate location a snapshot was generated for."""

    city: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class SubTopic(_CamelModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    title: str
    summary: str
    supporting_item_ids: list[str]


class Topic(_CamelModel):
    """One ranked topic. Provider fields outside the schema are kept as-is."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    title: str
    summary: str
    source: str | None = None
    trend_score: float | None = None
    location_relevance: float | None = None
    supporting_item_ids: list[str]
    sub_topics: list[SubTopic]


class TopicSnapshotPayload(_CamelModel):
    """Snapshot body stored per (bucket, date)."""

    generated_at: str | None = None
    location_context: LocationContext | None = None
    topics: list[Topic] = Field(min_length=1)

    @model_validator(mode="after")
    def _topic_ids_unique(self) -> "TopicSnapshotPayload":
        seen: set[str] = set()
        for topic in self.topics:
            if topic.id in seen:
                raise ValueError(f"duplicate topic id {topic.id!r}")
            seen.add(topic.id)
        return self

    def to_document(self) -> dict:
        """Serialize to the camelCase JSON document kept in the snapshot store."""
        return self.model_dump(by_alias=True, mode="json")
