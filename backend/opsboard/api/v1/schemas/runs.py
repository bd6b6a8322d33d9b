import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict


class SourceRunOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    connection_id: uuid.UUID
    status: Literal["running", "success", "failed"]
    rows_in: int
    rows_valid: int
    rows_invalid: int
    rows_duplicate: int
    error: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None


class RunList(BaseModel):
    ok: bool = True
    runs: list[SourceRunOut]
