from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class StreamSettings(BaseModel):
    url: str = "ws://localhost:8080/ws/websocket"
    reconnect_delay_ms: int = Field(default=5000, ge=1, le=60_000)
    heartbeat_outgoing_ms: int = Field(default=4000, ge=0, le=60_000)
    heartbeat_incoming_ms: int = Field(default=4000, ge=0, le=60_000)
    # Multiplier applied to the negotiated incoming interval before the peer is declared dead.
    heartbeat_tolerance: float = Field(default=2.0, ge=1.0, le=10.0)
    connect_timeout_s: float = Field(default=10.0, gt=0.0)

    @property
    def reconnect_delay_s(self) -> float:
        return self.reconnect_delay_ms / 1000.0


class ApiSettings(BaseModel):
    base_url: HttpUrl = Field(default="http://localhost:8080")
    timeout_s: float = Field(default=10.0, ge=0.1)


class ChartSettings(BaseModel):
    window_size: int = Field(default=40, ge=1, le=10_000)
    resample_interval_ms: int = Field(default=60_000, ge=1)
    rpm_gauge_max: float = Field(default=3000.0, gt=0.0)

    @property
    def resample_interval(self) -> timedelta:
        return timedelta(milliseconds=self.resample_interval_ms)


class LiveSettings(BaseSettings):
    """Settings for dashboard views consuming the live telemetry stream."""

    model_config = SettingsConfigDict(
        env_prefix="GENMON_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    log_json: bool = False

    stream: StreamSettings = Field(default_factory=StreamSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    charts: ChartSettings = Field(default_factory=ChartSettings)


def load_settings(path: str | Path | None = None) -> LiveSettings:
    if path is None:
        return LiveSettings()
    p = Path(path)
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    return LiveSettings(**data)

