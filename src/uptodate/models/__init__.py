"""SQLAlchemy ORM models."""

from uptodate.models.base import Base
from uptodate.models.content_item import ContentItem
from uptodate.models.topic_snapshot import TopicSnapshot
from uptodate.models.ingestion_run import IngestionRun
from uptodate.models.user_event import UserEvent
from uptodate.models.user_topic_score import UserTopicScore

__all__ = [
    "Base",
    "ContentItem",
    "TopicSnapshot",
    "IngestionRun",
    "UserEvent",
    "UserTopicScore",
]
