"""TopicSnapshot model - generated topics for one bucket on one date."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from uptodate.db.types import JSONType
from uptodate.models.base import Base


class TopicSnapshot(Base):
    __tablename__ = "topic_snapshots"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    bucket_id: Mapped[str] = mapped_column(String(32), nullable=False)
    snapshot_date: Mapped[str] = mapped_column(String(10), nullable=False)
    snapshot: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    run_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        Index(
            "ix_topic_snapshots_bucket_date",
            "bucket_id",
            "snapshot_date",
            unique=True,
        ),
    )
