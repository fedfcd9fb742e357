from __future__ import annotations

import unittest

from genmon_live.alarms import AlarmAggregator
from genmon_live.models import AlarmSeverity, AlarmSource, DeviceAlarm, TelemetrySample


def make_sample(alarms: list[str]) -> TelemetrySample:
    return TelemetrySample.model_validate(
        {"deviceId": "GEN-001", "timestamp": "2026-01-01T12:00:00", "device_alarms": alarms}
    )


HIGH_TEMP = DeviceAlarm(
    device_id="GEN-001",
    parameter="oilTemperature",
    message="High temp",
    severity=AlarmSeverity.CRITICAL,
    value=120.0,
)


class TestAlarmAggregator(unittest.TestCase):
    def test_embedded_first_then_pushed_unchanged(self) -> None:
        merged = AlarmAggregator().merge(make_sample(["Low oil"]), [HIGH_TEMP])

        self.assertEqual(len(merged), 2)
        self.assertEqual(merged[0].message, "Low oil")
        self.assertEqual(merged[0].severity, AlarmSeverity.WARNING)
        self.assertIsNone(merged[0].parameter)
        self.assertIsNone(merged[0].value)
        self.assertEqual(merged[0].source, AlarmSource.DEVICE)
        self.assertIs(merged[1], HIGH_TEMP)

    def test_internal_order_is_preserved(self) -> None:
        second = HIGH_TEMP.model_copy(update={"message": "Overload"})
        merged = AlarmAggregator().merge(make_sample(["a", "b"]), [HIGH_TEMP, second])
        self.assertEqual([a.message for a in merged], ["a", "b", "High temp", "Overload"])

    def test_same_condition_from_both_sources_is_not_deduplicated(self) -> None:
        merged = AlarmAggregator().merge(make_sample(["High temp"]), [HIGH_TEMP])
        self.assertEqual(len(merged), 2)

    def test_summary_reflects_last_merge(self) -> None:
        agg = AlarmAggregator()
        self.assertEqual(agg.summary.count, 0)
        self.assertIsNone(agg.summary.headline)

        agg.merge(make_sample(["Low oil"]), [HIGH_TEMP])
        self.assertEqual(agg.summary.count, 2)
        self.assertEqual(agg.summary.headline, "Low oil")
        self.assertEqual(agg.summary.label, "2 active alerts")

        agg.merge(make_sample([]), [HIGH_TEMP])
        self.assertEqual(agg.summary.label, "1 active alert")
        self.assertEqual(agg.summary.headline, "High temp")
