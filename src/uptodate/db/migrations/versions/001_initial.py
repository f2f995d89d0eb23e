"""Initial schema - content, snapshots, runs, events and affinity scores.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Raw content items, deduplicated by id
    op.create_table(
        "content_items",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column(
            "source_type", sa.String(16), nullable=False, server_default="news"
        ),
        sa.Column("source_name", sa.String(128), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("snippet", sa.Text(), nullable=True),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_content_items_created_at", "content_items", ["created_at"])

    # One snapshot document per (bucket, date)
    op.create_table(
        "topic_snapshots",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("bucket_id", sa.String(32), nullable=False),
        sa.Column("snapshot_date", sa.String(10), nullable=False),
        sa.Column("snapshot", sa.Text(), nullable=False),
        sa.Column("run_id", sa.String(36), nullable=True),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_topic_snapshots_bucket_date",
        "topic_snapshots",
        ["bucket_id", "snapshot_date"],
        unique=True,
    )

    # Ingestion run lifecycle
    op.create_table(
        "ingestion_runs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("details", sa.Text(), nullable=False),
    )
    op.create_index(
        "ix_ingestion_runs_status_started", "ingestion_runs", ["status", "started_at"]
    )
    op.create_index(
        "uq_ingestion_runs_running",
        "ingestion_runs",
        ["status"],
        unique=True,
        sqlite_where=sa.text("status = 'running'"),
        postgresql_where=sa.text("status = 'running'"),
    )

    # Append-only interaction log
    op.create_table(
        "user_events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("bucket_id", sa.String(32), nullable=False),
        sa.Column("snapshot_date", sa.String(10), nullable=False),
        sa.Column("event_type", sa.String(32), nullable=False),
        sa.Column("topic_id", sa.String(128), nullable=True),
        sa.Column("subtopic_id", sa.String(128), nullable=True),
        sa.Column("dwell_ms", sa.Integer(), nullable=True),
        sa.Column("client_ts", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_user_events_user_id", "user_events", ["user_id"])
    op.create_index("ix_user_events_created_at", "user_events", ["created_at"])

    # Accumulated affinity per (user, topic)
    op.create_table(
        "user_topic_scores",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("topic_id", sa.String(128), nullable=False),
        sa.Column("score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_user_topic_scores_user_topic",
        "user_topic_scores",
        ["user_id", "topic_id"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_table("user_topic_scores")
    op.drop_table("user_events")
    op.drop_table("ingestion_runs")
    op.drop_table("topic_snapshots")
    op.drop_table("content_items")
