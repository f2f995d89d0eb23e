"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from uptodate import __version__
from uptodate.dependencies import get_db

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)) -> dict:
    """Return API health status, version and database reachability."""
    await db.execute(text("SELECT 1"))
    return {
        "status": "ok",
        "version": __version__,
    }
