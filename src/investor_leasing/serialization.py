from __future__ import annotations

import dataclasses
import math
from datetime import date
from enum import Enum
from typing import Any

from investor_leasing.metrics.engine import IrrResult, PaybackPeriod


def to_jsonable(value: Any) -> Any:
    """
    Convert result dataclasses into plain JSON types.
    Dates become ISO strings, enums their values; NaN and infinities become None.
    """
    if isinstance(value, IrrResult):
        return {"rate": value.rate, "converged": value.converged, "iterations": value.iterations}
    if isinstance(value, PaybackPeriod):
        return {"status": value.status.value, "periods": value.periods, "label": value.label}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    return value
