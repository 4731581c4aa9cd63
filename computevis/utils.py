"""Utility functions for ComputeVis."""

import dataclasses
from enum import Enum
from typing import Any, Dict, List, Sequence

import numpy as np

from .models import Sample


def to_json(value: Any, decimals: int = 4) -> Any:
    """Convert dataclasses, enums and floats into JSON-serializable values."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_json(getattr(value, f.name), decimals)
            for f in dataclasses.fields(value)
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, float):
        return round(value, decimals)
    if isinstance(value, dict):
        return {k: to_json(v, decimals) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v, decimals) for v in value]
    return value


def history_series(
    samples: Sequence[Sample], decimals: int = 2
) -> Dict[str, List[float]]:
    """Column-oriented view of the history for chart rendering."""
    columns = (
        "captured_at",
        "vram_used_gb",
        "compute_util_percent",
        "teraflops",
        "temperature_c",
    )
    series = {}
    for name in columns:
        values = np.array([getattr(s, name) for s in samples], dtype=float)
        series[name] = np.round(values, decimals).tolist()
    # Optional metrics become 0.0 where absent so series stay aligned
    for name in ("loss", "tokens_per_second"):
        values = np.array(
            [getattr(s, name) or 0.0 for s in samples], dtype=float
        )
        series[name] = np.round(values, decimals).tolist()
    return series


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safely divide, returning default if denominator is zero."""
    return numerator / denominator if denominator != 0 else default
