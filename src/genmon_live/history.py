"""Client for the history REST endpoints and helpers to turn results into series."""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from genmon_live.core.exceptions import QueryError
from genmon_live.models import HistoryPoint, as_utc, to_rfc3339_z
from genmon_live.rest import ApiClient

logger = structlog.get_logger(__name__)

DEFAULT_HISTORY_ERROR = "Failed to load historical data"


class HistoryQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    device_id: str = Field(min_length=1)
    start_time: datetime
    end_time: datetime
    parameters: tuple[str, ...] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_range(self) -> "HistoryQuery":
        if as_utc(self.end_time) <= as_utc(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self

    def as_request_dict(self) -> dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "startTime": to_rfc3339_z(self.start_time),
            "endTime": to_rfc3339_z(self.end_time),
            "parameters": list(self.parameters),
        }


class HistoryRecord(BaseModel):
    """One row of a history query: a timestamp and the parameters it reported."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    parameters: dict[str, Any] = Field(default_factory=dict)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parameter_points(records: Iterable[HistoryRecord], name: str) -> list[HistoryPoint]:
    """Extract one numeric parameter; records that did not report it are skipped."""
    return [
        HistoryPoint(timestamp=as_utc(r.timestamp), value=float(r.parameters[name]))
        for r in records
        if _is_number(r.parameters.get(name))
    ]


def rpm_points(rows: Iterable[Mapping[str, Any]]) -> list[HistoryPoint]:
    """Parse ``{timestamp, rpm}`` rows; rows without a numeric rpm are skipped."""
    out: list[HistoryPoint] = []
    for row in rows:
        rpm = row.get("rpm")
        ts = row.get("timestamp")
        if not _is_number(rpm) or not isinstance(ts, str):
            continue
        try:
            timestamp = datetime.fromisoformat(ts.replace("Z", "+00:00"))
        except ValueError:
            logger.warning("history_row_skipped", reason="bad_timestamp", timestamp=ts)
            continue
        out.append(HistoryPoint(timestamp=as_utc(timestamp), value=float(rpm)))
    return out


def to_chart_series(points: Iterable[HistoryPoint]) -> list[tuple[int, float]]:
    return [p.as_chart_pair() for p in points]


def day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


class HistoryClient(ApiClient):
    default_error = DEFAULT_HISTORY_ERROR

    async def query(self, query: HistoryQuery) -> list[HistoryRecord]:
        payload = await self.post_json("/api/history/query", query.as_request_dict())
        if not isinstance(payload, list):
            raise QueryError(self.default_error)
        try:
            return [HistoryRecord.model_validate(item) for item in payload]
        except ValidationError as exc:
            raise QueryError(self.default_error) from exc

    async def parameters(self) -> dict[str, str]:
        """Parameter names mapped to display names with units."""
        payload = await self.get_json("/api/history/parameters")
        if not isinstance(payload, dict):
            raise QueryError("Failed to load parameters")
        return {str(k): str(v) for k, v in payload.items()}

    async def daily_rpm(self, device_id: str, day: date) -> list[HistoryPoint]:
        """Per-minute averaged RPM for one calendar day, unordered and gap-prone."""
        start, end = day_bounds(day)
        payload = await self.get_json(
            f"/api/history/rpm/{device_id}",
            params={"startTime": to_rfc3339_z(start), "endTime": to_rfc3339_z(end)},
        )
        if not isinstance(payload, list):
            raise QueryError(self.default_error)
        return rpm_points(item for item in payload if isinstance(item, dict))
