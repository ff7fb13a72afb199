"""Store data models for the JSON-backed relational store."""

from datetime import datetime

from pydantic import BaseModel, Field


class StoreData(BaseModel):
    """Root store data structure: table name -> list of row dicts."""

    tables: dict[str, list[dict]] = Field(default_factory=dict)
    updated_at: datetime | None = None
