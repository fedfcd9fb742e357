from genmon_live.alarms import AlarmAggregator, AlarmSummary
from genmon_live.buffer import DerivedMetrics, RollingWindow, TelemetryBuffer
from genmon_live.connection import ConnectionManager, StompConnection
from genmon_live.gauge import ColorBand, GaugeReading, map_value
from genmon_live.models import (
    AlarmSeverity,
    AlarmSource,
    DeviceAlarm,
    DeviceDataMessage,
    GeneratorChannels,
    HistoryPoint,
    TelemetrySample,
)
from genmon_live.resample import resample
from genmon_live.router import DeviceFeed, Subscription, SubscriptionRouter, topic_for

__all__ = [
    "AlarmAggregator",
    "AlarmSeverity",
    "AlarmSource",
    "AlarmSummary",
    "ColorBand",
    "ConnectionManager",
    "DerivedMetrics",
    "DeviceAlarm",
    "DeviceDataMessage",
    "DeviceFeed",
    "GaugeReading",
    "GeneratorChannels",
    "HistoryPoint",
    "RollingWindow",
    "StompConnection",
    "Subscription",
    "SubscriptionRouter",
    "TelemetryBuffer",
    "TelemetrySample",
    "map_value",
    "resample",
    "topic_for",
]
