import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class MappingSave(BaseModel):
    source_connection_id: str = ""
    mapping: Any = None


class MappingTest(BaseModel):
    source_connection_id: str = ""


class FieldMappingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: uuid.UUID
    connection_id: uuid.UUID
    target: str
    version: int
    mapping: dict
    updated_at: Optional[datetime] = None


class MappingSaved(BaseModel):
    ok: bool = True
    field_mapping: FieldMappingOut


class NormalizedPreview(BaseModel):
    metric_key: str
    occurred_on: date
    value_num: Optional[float] = None
    value_text: Optional[str] = None
    source: Optional[str] = None


class PreviewRow(BaseModel):
    received_at: datetime
    normalized: NormalizedPreview


class MappingTestResult(BaseModel):
    ok: bool = True
    preview: list[PreviewRow]
    nullCount: int


class MappingFields(BaseModel):
    ok: bool = True
    fields: list[str]
