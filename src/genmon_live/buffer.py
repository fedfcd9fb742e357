from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar

from genmon_live.models import TelemetrySample

T = TypeVar("T")

LIVE_WINDOW_SIZE = 40

ACTIVE_POWER_CHANNELS = ("generator_p_l1", "generator_p_l2", "generator_p_l3")
VOLTAGE_LN_CHANNELS = ("generator_voltage_l1_n", "generator_voltage_l2_n", "generator_voltage_l3_n")


class RollingWindow(Generic[T]):
    """
    Bounded FIFO window kept in receipt order.
    Appending to a full window evicts the oldest entry.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._items: deque[T] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._items.maxlen or 0

    def append(self, item: T) -> None:
        self._items.append(item)

    def snapshot(self) -> list[T]:
        return list(self._items)

    def latest(self) -> T | None:
        return self._items[-1] if self._items else None

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.snapshot())


@dataclass(frozen=True, slots=True)
class DerivedMetrics:
    total_active_power: float
    mean_voltage_ln: float | None
    phases_reporting_power: int
    phases_reporting_voltage: int


EMPTY_METRICS = DerivedMetrics(
    total_active_power=0.0,
    mean_voltage_ln=None,
    phases_reporting_power=0,
    phases_reporting_voltage=0,
)


def derive_metrics(sample: TelemetrySample) -> DerivedMetrics:
    """Summed per-phase active power and mean L-N voltage over the phases present."""
    ch = sample.channels
    powers = [v for v in (getattr(ch, name) for name in ACTIVE_POWER_CHANNELS) if v is not None]
    volts = [v for v in (getattr(ch, name) for name in VOLTAGE_LN_CHANNELS) if v is not None]
    return DerivedMetrics(
        total_active_power=float(sum(powers)),
        mean_voltage_ln=sum(volts) / len(volts) if volts else None,
        phases_reporting_power=len(powers),
        phases_reporting_voltage=len(volts),
    )


class TelemetryBuffer:
    """Rolling window of the most recent samples for one device view."""

    def __init__(self, capacity: int = LIVE_WINDOW_SIZE) -> None:
        self._window: RollingWindow[TelemetrySample] = RollingWindow(capacity)
        self._metrics = EMPTY_METRICS

    @property
    def capacity(self) -> int:
        return self._window.capacity

    @property
    def metrics(self) -> DerivedMetrics:
        """Derived scalars of the most recent sample."""
        return self._metrics

    @property
    def latest(self) -> TelemetrySample | None:
        return self._window.latest()

    def push(self, sample: TelemetrySample) -> None:
        self._window.append(sample)
        self._metrics = derive_metrics(sample)

    def snapshot(self) -> list[TelemetrySample]:
        """Point-in-time copy, oldest first."""
        return self._window.snapshot()

    def series(self, channel: str) -> list[tuple[datetime, float | bool]]:
        out: list[tuple[datetime, float | bool]] = []
        for sample in self._window:
            value = sample.channels.get(channel)
            if value is not None:
                out.append((sample.timestamp, value))
        return out

    def __len__(self) -> int:
        return len(self._window)
