"""Union of device-side and backend-side alarms for one rendering pass.

Embedded alarm strings come first as WARNING alarms, followed by the pushed
backend alarms unchanged. The same condition can legitimately show up in both
lists (device flag and backend threshold breach), so nothing is deduplicated.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from genmon_live.models import AlarmSeverity, AlarmSource, DeviceAlarm, TelemetrySample


@dataclass(frozen=True, slots=True)
class AlarmSummary:
    alarms: tuple[DeviceAlarm, ...]

    @property
    def count(self) -> int:
        return len(self.alarms)

    @property
    def headline(self) -> str | None:
        return self.alarms[0].message if self.alarms else None

    @property
    def label(self) -> str:
        noun = "alert" if self.count == 1 else "alerts"
        return f"{self.count} active {noun}"


EMPTY_SUMMARY = AlarmSummary(alarms=())


def alarm_from_embedded(sample: TelemetrySample, message: str) -> DeviceAlarm:
    return DeviceAlarm(
        device_id=sample.device_id,
        message=message,
        severity=AlarmSeverity.WARNING,
        timestamp=sample.timestamp,
        source=AlarmSource.DEVICE,
    )


class AlarmAggregator:
    def __init__(self) -> None:
        self._summary = EMPTY_SUMMARY

    @property
    def summary(self) -> AlarmSummary:
        """Result of the most recent :meth:`merge`."""
        return self._summary

    def merge(self, sample: TelemetrySample, pushed_alarms: Sequence[DeviceAlarm]) -> list[DeviceAlarm]:
        merged = [alarm_from_embedded(sample, text) for text in sample.embedded_alarms]
        merged.extend(pushed_alarms)
        self._summary = AlarmSummary(alarms=tuple(merged))
        return merged
