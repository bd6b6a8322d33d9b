import uuid

from pydantic import BaseModel


class IngestResponse(BaseModel):
    ok: bool = True
    rawEventId: uuid.UUID
    normalizedCount: int
    runId: uuid.UUID
    duplicate: bool = False


class CsvImportResponse(BaseModel):
    ok: bool = True
    runId: uuid.UUID
    rows_in: int
    rows_valid: int
    rows_invalid: int
    rows_duplicate: int
