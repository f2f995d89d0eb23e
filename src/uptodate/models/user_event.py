"""UserEvent model - append-only interaction log."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from uptodate.models.base import Base


class UserEvent(Base):
    __tablename__ = "user_events"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    bucket_id: Mapped[str] = mapped_column(String(32), nullable=False)
    snapshot_date: Mapped[str] = mapped_column(String(10), nullable=False)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    topic_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    subtopic_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    dwell_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    client_ts: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_user_events_created_at", "created_at"),
    )
