from datetime import date
from typing import Union

from pydantic import BaseModel


class WindowOut(BaseModel):
    preset: str
    start: date
    end: date


class KpiResponse(BaseModel):
    ok: bool = True
    kpis: dict[str, Union[int, float]]
    window: WindowOut
