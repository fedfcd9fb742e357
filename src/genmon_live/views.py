"""View state for device dashboards and history charts.

Each view owns its buffer, aggregator and loaded data; nothing is shared
between two views.
"""
from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

import structlog

from genmon_live.alarms import AlarmAggregator, AlarmSummary
from genmon_live.buffer import DerivedMetrics, TelemetryBuffer
from genmon_live.config import LiveSettings
from genmon_live.connection import ConnectionManager, StompConnection
from genmon_live.core.exceptions import QueryError
from genmon_live.gauge import GaugeReading, map_value
from genmon_live.history import HistoryClient, HistoryQuery, HistoryRecord, parameter_points
from genmon_live.models import DeviceDataMessage, HistoryPoint, TelemetrySample
from genmon_live.resample import resample
from genmon_live.router import DeviceFeed, SubscriptionRouter

logger = structlog.get_logger(__name__)

NO_RPM_DATA = "No RPM data recorded for this day"


class ConnectionStatus(str, Enum):
    ONLINE = "Online"
    OFFLINE = "Offline"


class DeviceDashboard:
    """Live view of one device.

    Usage::

        async with ConnectionManager(settings.stream) as manager:
            async with DeviceDashboard("GEN-001", manager) as view:
                ...
    """

    def __init__(
        self,
        device_id: str,
        manager: ConnectionManager,
        *,
        settings: LiveSettings | None = None,
        router: SubscriptionRouter | None = None,
    ) -> None:
        self.device_id = device_id
        self._settings = settings or LiveSettings()
        self._manager = manager
        self._router = router or SubscriptionRouter()
        self._buffer = TelemetryBuffer(self._settings.charts.window_size)
        self._aggregator = AlarmAggregator()
        self._connection: StompConnection | None = None
        self._feed: DeviceFeed | None = None
        self._pump: asyncio.Task[None] | None = None
        self._closed = False
        self.messages_applied = 0

    async def __aenter__(self) -> "DeviceDashboard":
        await self.start()
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    async def start(self, endpoint: str | None = None) -> None:
        if self._connection is not None:
            return
        self._connection = await self._manager.open(endpoint)
        self._feed = self._router.open_feed(self._connection, self.device_id)
        self._pump = asyncio.create_task(self._consume(self._feed), name=f"dashboard:{self.device_id}")
        logger.info("dashboard_started", device_id=self.device_id, endpoint=self._connection.endpoint)

    async def _consume(self, feed: DeviceFeed) -> None:
        async for message in feed:
            self.apply(message)

    def apply(self, message: DeviceDataMessage) -> None:
        if self._closed:
            return
        self._buffer.push(message.telemetry)
        self._aggregator.merge(message.telemetry, message.backend_alarms)
        self.messages_applied += 1

    async def close(self) -> None:
        if self._closed:
            return
        # Stop delivery before anything is awaited.
        self._closed = True
        if self._feed is not None:
            self._feed.close()
        if self._pump is not None:
            self._pump.cancel()
            try:
                await self._pump
            except asyncio.CancelledError:
                pass
        if self._connection is not None:
            await self._manager.close(self._connection)
        logger.info("dashboard_closed", device_id=self.device_id)

    @property
    def connected(self) -> bool:
        return self._connection is not None and self._connection.connected

    @property
    def status(self) -> ConnectionStatus:
        return ConnectionStatus.ONLINE if self.connected else ConnectionStatus.OFFLINE

    @property
    def samples(self) -> list[TelemetrySample]:
        return self._buffer.snapshot()

    @property
    def latest(self) -> TelemetrySample | None:
        return self._buffer.latest

    @property
    def metrics(self) -> DerivedMetrics:
        return self._buffer.metrics

    @property
    def alarms(self) -> AlarmSummary:
        return self._aggregator.summary

    def series(self, channel: str) -> list[tuple[datetime, float | bool]]:
        return self._buffer.series(channel)

    def rpm_gauge(self) -> GaugeReading | None:
        latest = self._buffer.latest
        rpm = latest.channels.rpm if latest is not None else None
        if rpm is None or not math.isfinite(rpm):
            return None
        return map_value(rpm, self._settings.charts.rpm_gauge_max)


@dataclass(frozen=True, slots=True)
class SeriesResult:
    points: tuple[HistoryPoint, ...]
    has_enough_data: bool
    message: str | None = None


EMPTY_SERIES = SeriesResult(points=(), has_enough_data=False, message=NO_RPM_DATA)


class HistoryView:
    """Historical charts for one device.

    A failed query sets :attr:`error` and keeps whatever was loaded before.
    """

    def __init__(
        self,
        client: HistoryClient,
        device_id: str,
        *,
        interval: timedelta = timedelta(minutes=1),
    ) -> None:
        self._client = client
        self.device_id = device_id
        self.interval = interval
        self.records: list[HistoryRecord] = []
        self.rpm_series: SeriesResult = EMPTY_SERIES
        self.error: str | None = None

    async def load(self, query: HistoryQuery) -> list[HistoryRecord]:
        try:
            records = await self._client.query(query)
        except QueryError as exc:
            self.error = exc.message
            return self.records
        records.sort(key=lambda r: r.timestamp)
        self.records = records
        self.error = None
        return records

    def parameter_series(self, name: str) -> list[HistoryPoint]:
        return parameter_points(self.records, name)

    async def load_rpm_day(self, day: date) -> SeriesResult:
        try:
            points = await self._client.daily_rpm(self.device_id, day)
        except QueryError as exc:
            self.error = exc.message
            return self.rpm_series
        self.error = None
        if not points:
            self.rpm_series = EMPTY_SERIES
        else:
            self.rpm_series = SeriesResult(
                points=tuple(resample(points, self.interval)),
                has_enough_data=True,
            )
        return self.rpm_series
