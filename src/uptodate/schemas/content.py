"""Raw content item as produced by a content source."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RawItem(BaseModel):
    """A raw item before summarization. Immutable once stored."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str = Field(min_length=1, max_length=255)
    source_type: str = "news"
    source_name: str
    title: str = Field(min_length=1)
    snippet: str | None = None
    url: str | None = None
    published_at: datetime | None = None

    def to_prompt_dict(self) -> dict:
        """Shape sent to the summarization provider."""
        return {
            "id": self.id,
            "source_type": self.source_type,
            "source_name": self.source_name,
            "title": self.title,
            "snippet": self.snippet,
            "url": self.url,
            "published_at": self.published_at.isoformat() if self.published_at else None,
        }
