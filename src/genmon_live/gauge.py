from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

# 270 degree sweep centred on vertical; the 90 degrees at the bottom hold the label.
SWEEP_DEGREES = 270.0
START_DEGREES = -135.0

WARNING_FRACTION = 0.6
DANGER_FRACTION = 0.8


class ColorBand(str, Enum):
    NORMAL = "NORMAL"
    WARNING = "WARNING"
    DANGER = "DANGER"


BAND_COLORS = {
    ColorBand.NORMAL: "#10b981",
    ColorBand.WARNING: "#f59e0b",
    ColorBand.DANGER: "#ef4444",
}


@dataclass(frozen=True, slots=True)
class GaugeReading:
    value: float  # raw, unclamped
    max_value: float
    angle_fraction: float
    color_band: ColorBand

    @property
    def angle_degrees(self) -> float:
        return START_DEGREES + self.angle_fraction * SWEEP_DEGREES

    @property
    def color(self) -> str:
        return BAND_COLORS[self.color_band]

    def label(self, precision: int = 0) -> str:
        return f"{self.value:.{precision}f}"


def color_band(value: float, max_value: float) -> ColorBand:
    if value > DANGER_FRACTION * max_value:
        return ColorBand.DANGER
    if value > WARNING_FRACTION * max_value:
        return ColorBand.WARNING
    return ColorBand.NORMAL


def map_value(value: float, max_value: float) -> GaugeReading:
    """Map a scalar onto the gauge sweep and its colour band.

    The angle is clamped to ``[0, max_value]``; the band and the label use the
    raw value. NaN and infinities raise :class:`ValueError`.
    """
    if max_value <= 0:
        raise ValueError("max_value must be positive")
    if not math.isfinite(value):
        raise ValueError(f"value must be finite, got {value!r}")
    clamped = min(max(value, 0.0), max_value)
    return GaugeReading(
        value=value,
        max_value=max_value,
        angle_fraction=clamped / max_value,
        color_band=color_band(value, max_value),
    )
