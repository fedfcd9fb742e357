"""Gap filling for sparse historical series.

Charting libraries draw a straight line between two distant points, which on
the RPM chart reads as "the engine kept running". Inserting zero points every
interval across a gap makes an outage show up as a drop to zero instead.

Example, interval 60 s::

    (0s, 5), (185s, 9)  ->  (0s, 5), (60s, 0), (120s, 0), (180s, 0), (185s, 9)
"""
from __future__ import annotations

from collections.abc import Sequence
from datetime import timedelta

from genmon_live.models import HistoryPoint

DEFAULT_INTERVAL = timedelta(minutes=1)


def resample(
    points: Sequence[HistoryPoint],
    interval: timedelta = DEFAULT_INTERVAL,
    *,
    fill_value: float = 0.0,
) -> list[HistoryPoint]:
    """Return ``points`` sorted by time with synthetic points across every gap.

    Real points are never moved or overwritten. ``fill_value`` defaults to 0,
    which is only meaningful for rate channels such as RPM.
    """
    if interval <= timedelta(0):
        raise ValueError("interval must be positive")
    if not points:
        return []

    ordered = sorted(points, key=lambda p: p.timestamp)  # stable
    out: list[HistoryPoint] = []
    for current, following in zip(ordered, ordered[1:]):
        out.append(current)
        t = current.timestamp + interval
        while t < following.timestamp:
            out.append(HistoryPoint(timestamp=t, value=fill_value, synthetic=True))
            t += interval
    out.append(ordered[-1])
    return out
