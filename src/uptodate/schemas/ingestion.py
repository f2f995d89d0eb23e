"""Schemas for ingestion run records."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class IngestionRunResponse(BaseModel):
    """Public view of an ingestion run."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: str
    status: str
    started_at: datetime
    finished_at: datetime | None = None
    details: dict
