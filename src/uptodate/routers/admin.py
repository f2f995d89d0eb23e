"""Admin endpoints for ingestion runs."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from uptodate.config import Settings
from uptodate.dependencies import (
    get_app_settings,
    get_content_source,
    get_db,
    get_summarizer,
    verify_admin_key,
)
from uptodate.schemas.ingestion import IngestionRunResponse
from uptodate.services.content_source import ContentSource
from uptodate.services.ingestion import IngestionPipeline
from uptodate.services.summarizer import SummarizationProvider
from uptodate.stores.runs import RunStore

router = APIRouter(
    prefix="/v1/admin",
    tags=["admin"],
    dependencies=[Depends(verify_admin_key)],
)


@router.post("/ingest", response_model=IngestionRunResponse)
async def trigger_ingestion(
    date: str | None = Query(default=None, pattern=r"^\d{4}-\d{2}-\d{2}$"),
    db: AsyncSession = Depends(get_db),
    content_source: ContentSource = Depends(get_content_source),
    provider: SummarizationProvider = Depends(get_summarizer),
    settings: Settings = Depends(get_app_settings),
) -> IngestionRunResponse:
    """Run the ingestion pipeline once and return the closed run record.

    Failures are returned as error responses; the run row records them too.
    """
    pipeline = IngestionPipeline(db, content_source, provider, settings)
    result = await pipeline.run(snapshot_date=date)

    run = await RunStore(db).get(result.run_id)
    return IngestionRunResponse.model_validate(run)


@router.get("/runs", response_model=list[IngestionRunResponse])
async def list_runs(
    limit: int = Query(default=20, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> list[IngestionRunResponse]:
    """List recent ingestion runs, newest first."""
    runs = await RunStore(db).recent(limit=limit)
    return [IngestionRunResponse.model_validate(run) for run in runs]
