"""Pipeline configuration."""

from __future__ import annotations

import sys
from typing import Iterable

from pydantic import BaseModel, Field

# Default tolerance is this many float spacings at the data's magnitude.
TOLERANCE_ULPS = 16


class PipelineConfig(BaseModel):
    """Settings shared by every model builder.

    ``tolerance`` is the per-axis absolute difference under which two coordinates
    are the same vertex. ``None`` derives it from the data via ``default_tolerance``.
    """

    tolerance: float | None = Field(default=None, ge=0)
    close_rings: bool = True
    near_vertex_factor: float = Field(default=0.0, ge=0)
    max_workers: int = Field(default=1, ge=1)


def default_tolerance(values: Iterable[tuple[float, ...]]) -> float:
    """Machine epsilon scaled to the magnitude and extent of ``values``."""
    scale = 1.0
    lows: list[float] = []
    highs: list[float] = []
    for value in values:
        for axis, component in enumerate(value):
            if component is None:
                continue
            scale = max(scale, abs(component))
            if axis >= len(lows):
                lows.append(component)
                highs.append(component)
            else:
                lows[axis] = min(lows[axis], component)
                highs[axis] = max(highs[axis], component)
    for low, high in zip(lows, highs):
        scale = max(scale, high - low)
    return TOLERANCE_ULPS * sys.float_info.epsilon * scale
