from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImportEvent(BaseModel):
    """One observation that ``parent_id`` triggered the load of ``imported_id``."""

    model_config = ConfigDict(frozen=True)

    parent_id: str
    imported_id: str
    elapsed: float = Field(..., ge=0, description="Wall-clock import time in milliseconds")
    seq: int = Field(
        ...,
        ge=0,
        description="Store-wide observation order, unique per event",
    )


class ModuleRecord(BaseModel):
    id: str
    location: Optional[str] = None
    import_events: List[ImportEvent] = Field(default_factory=list)
