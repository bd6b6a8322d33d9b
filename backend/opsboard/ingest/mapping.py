"""
Versioned field-mapping documents.

A mapping tells the normalizer how to turn one raw event payload into one
canonical metric observation. Documents are stored as JSON on
`field_mappings.mapping` and always carry a `version`; `parse_mapping`
dispatches on it so a document written for one schema version is never read
with another.

Version 1:

    {
      "version": 1,
      "target": "metric_values",
      "metric_key": "revenue_mtd",
      "occurred_on": {"mode": "field", "field": "date"},   # or "today" / "event"
      "value_num": {"field": "amount"},
      "value_text": {"field": "note"},
      "source": {"mode": "fixed", "value": "stripe"}       # or {"mode": "field", "field": ...}
    }
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from opsboard.core.errors import MappingConfigError

METRIC_VALUES_TARGET = "metric_values"


class FieldRef(BaseModel):
    model_config = ConfigDict(extra="forbid")

    field: str = Field(..., min_length=1)


class OccurredOnField(BaseModel):
    mode: Literal["field"]
    field: str = Field(..., min_length=1)


class OccurredOnToday(BaseModel):
    mode: Literal["today"]


class OccurredOnEvent(BaseModel):
    mode: Literal["event"]


OccurredOnRule = Annotated[
    Union[OccurredOnField, OccurredOnToday, OccurredOnEvent],
    Field(discriminator="mode"),
]


class SourceFixed(BaseModel):
    mode: Literal["fixed"]
    value: str


class SourceField(BaseModel):
    mode: Literal["field"]
    field: str = Field(..., min_length=1)


SourceRule = Annotated[Union[SourceFixed, SourceField], Field(discriminator="mode")]


class MappingConfigV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: Literal[1] = 1
    target: Literal["metric_values"] = METRIC_VALUES_TARGET
    metric_key: str = Field(..., min_length=1)
    occurred_on: OccurredOnRule = Field(default_factory=lambda: OccurredOnEvent(mode="event"))
    value_num: Optional[FieldRef] = None
    value_text: Optional[FieldRef] = None
    source: Optional[SourceRule] = None

    @model_validator(mode="after")
    def _require_value_rule(self) -> "MappingConfigV1":
        if self.value_num is None and self.value_text is None:
            raise ValueError("mapping needs value_num or value_text")
        return self


MappingConfig = MappingConfigV1

MAPPING_VERSIONS: dict[int, type[BaseModel]] = {
    1: MappingConfigV1,
}


def parse_mapping(document: Any) -> MappingConfig:
    if not isinstance(document, dict):
        raise MappingConfigError("mapping must be a JSON object")

    version = document.get("version")
    model = MAPPING_VERSIONS.get(version) if isinstance(version, int) and not isinstance(version, bool) else None
    if model is None:
        raise MappingConfigError(f"unsupported mapping version: {version!r}")

    try:
        return model.model_validate(document)
    except ValidationError as e:
        raise MappingConfigError(str(e)) from e
