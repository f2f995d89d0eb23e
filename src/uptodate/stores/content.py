"""Content item store - insert-or-ignore by id, newest-first reads."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from uptodate.db.dialect import supports_upsert, upsert_insert
from uptodate.models.content_item import ContentItem
from uptodate.schemas.content import RawItem


class ContentItemStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def insert_new(self, items: list[RawItem]) -> int:
        """Persist items whose id is not stored yet. Returns how many were new.

        Existing rows are never updated; a second item with a known id is
        dropped silently (first one wins within a batch too).
        """
        unique: dict[str, RawItem] = {}
        for item in items:
            unique.setdefault(item.id, item)
        if not unique:
            return 0

        result = await self.db.execute(
            select(ContentItem.id).where(ContentItem.id.in_(list(unique)))
        )
        known = set(result.scalars().all())
        fresh = [item for item_id, item in unique.items() if item_id not in known]
        if not fresh:
            return 0

        rows = [
            {
                "id": item.id,
                "source_type": item.source_type,
                "source_name": item.source_name,
                "title": item.title,
                "snippet": item.snippet,
                "url": item.url,
                "published_at": item.published_at,
            }
            for item in fresh
        ]

        if supports_upsert(self.db):
            stmt = upsert_insert(self.db, ContentItem).values(rows)
            stmt = stmt.on_conflict_do_nothing(index_elements=["id"])
            await self.db.execute(stmt)
        else:
            self.db.add_all([ContentItem(**row) for row in rows])
            await self.db.flush()

        return len(fresh)

    async def latest(self, limit: int) -> list[RawItem]:
        """Return the most recently ingested items, newest first."""
        stmt = (
            select(ContentItem)
            .order_by(
                ContentItem.created_at.desc(),
                ContentItem.published_at.desc(),
                ContentItem.id,
            )
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return [RawItem.model_validate(row) for row in result.scalars().all()]
