from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    # The backend serialises LocalDateTime without an offset; those are UTC.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_rfc3339_z(dt: datetime) -> str:
    return as_utc(dt).isoformat().replace("+00:00", "Z")


def to_epoch_ms(dt: datetime) -> int:
    return int(round(as_utc(dt).timestamp() * 1000))


class AlarmSeverity(str, Enum):
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class AlarmSource(str, Enum):
    DEVICE = "DEVICE"
    BACKEND = "BACKEND"


class GeneratorChannels(BaseModel):
    """Channels reported by the generator controller on one tick.

    Every field is optional: a missing channel means "not reported this tick",
    never zero.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    rpm: float | None = Field(default=None, alias="RPM")

    generator_p_l1: float | None = Field(default=None, alias="Generator_P_L1")
    generator_p_l2: float | None = Field(default=None, alias="Generator_P_L2")
    generator_p_l3: float | None = Field(default=None, alias="Generator_P_L3")

    generator_q: float | None = Field(default=None, alias="Generator_Q")
    generator_q_l1: float | None = Field(default=None, alias="Generator_Q_L1")
    generator_q_l2: float | None = Field(default=None, alias="Generator_Q_L2")
    generator_q_l3: float | None = Field(default=None, alias="Generator_Q_L3")

    generator_s: float | None = Field(default=None, alias="Generator_S")
    generator_s_l1: float | None = Field(default=None, alias="Generator_S_L1")
    generator_s_l2: float | None = Field(default=None, alias="Generator_S_L2")
    generator_s_l3: float | None = Field(default=None, alias="Generator_S_L3")

    generator_power_factor: float | None = Field(default=None, alias="Generator_Power_Factor")
    generator_frequency: float | None = Field(default=None, alias="Generator_Frequency")

    generator_voltage_l1_n: float | None = Field(default=None, alias="Generator_Voltage_L1_N")
    generator_voltage_l2_n: float | None = Field(default=None, alias="Generator_Voltage_L2_N")
    generator_voltage_l3_n: float | None = Field(default=None, alias="Generator_Voltage_L3_N")

    generator_voltage_l1_l2: float | None = Field(default=None, alias="Generator_Voltage_L1_L2")
    generator_voltage_l2_l3: float | None = Field(default=None, alias="Generator_Voltage_L2_L3")
    generator_voltage_l3_l1: float | None = Field(default=None, alias="Generator_Voltage_L3_L1")

    generator_current_l1: float | None = Field(default=None, alias="Generator_Current_L1")
    generator_current_l2: float | None = Field(default=None, alias="Generator_Current_L2")
    generator_current_l3: float | None = Field(default=None, alias="Generator_Current_L3")

    earth_fault_current: float | None = Field(default=None, alias="Earth_Fault_Current")

    mains_bus_frequency: float | None = Field(default=None, alias="Mains_Bus_Frequency")
    mains_bus_voltage_l1_n: float | None = Field(default=None, alias="Mains_Bus_Voltage_L1_N")
    mains_bus_voltage_l2_n: float | None = Field(default=None, alias="Mains_Bus_Voltage_L2_N")
    mains_bus_voltage_l3_n: float | None = Field(default=None, alias="Mains_Bus_Voltage_L3_N")
    mains_bus_voltage_l1_l2: float | None = Field(default=None, alias="Mains_Bus_Voltage_L1_L2")
    mains_bus_voltage_l2_l3: float | None = Field(default=None, alias="Mains_Bus_Voltage_L2_L3")
    mains_bus_voltage_l3_l1: float | None = Field(default=None, alias="Mains_Bus_Voltage_L3_L1")
    mains_l1_current: float | None = Field(default=None, alias="Mains_L1_Current")

    mains_import_p: float | None = Field(default=None, alias="Mains_Import_P")
    mains_import_q: float | None = Field(default=None, alias="Mains_Import_Q")
    mains_pf: float | None = Field(default=None, alias="Mains_PF")

    max_vector_shift: float | None = Field(default=None, alias="Max_Vector_Shift")
    rocof: float | None = Field(default=None, alias="ROCOF")
    max_rocof: float | None = Field(default=None, alias="Max_ROCOF")

    load_p: float | None = Field(default=None, alias="Load_P")
    load_q: float | None = Field(default=None, alias="Load_Q")
    load_pf: float | None = Field(default=None, alias="Load_PF")

    battery_volts: float | None = Field(default=None, alias="Battery_Volts")
    d_plus: float | None = Field(default=None, alias="D_Plus")

    oil_pressure: float | None = Field(default=None, alias="Oil_Pressure")
    oil_temperature: float | None = Field(default=None, alias="Oil_Temperature")
    fuel_level: float | None = Field(default=None, alias="Fuel_Level")

    e_stop: bool | None = Field(default=None, alias="E_STOP")

    # Legacy simulator fields
    voltage: float | None = None
    current: float | None = None
    frequency: float | None = None
    power: float | None = None
    temperature: float | None = None

    def reported(self) -> dict[str, float | bool]:
        """Channels present on this tick, keyed by field name."""
        return {k: v for k, v in self if v is not None}

    def get(self, name: str) -> float | bool | None:
        if name not in type(self).model_fields:
            raise KeyError(name)
        return getattr(self, name)


# Wire keys on the flat telemetry object that are not channels.
_SAMPLE_KEYS = {"deviceId", "device_id", "timestamp", "Alarm", "alarm", "device_alarms", "embedded_alarms"}


class TelemetrySample(BaseModel):
    """One decoded telemetry message for one device at one instant."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    device_id: str = Field(alias="deviceId")
    timestamp: datetime
    channels: GeneratorChannels = Field(default_factory=GeneratorChannels)
    alarm: str | None = Field(default=None, alias="Alarm")
    embedded_alarms: tuple[str, ...] = Field(default=(), alias="device_alarms")

    @model_validator(mode="before")
    @classmethod
    def _collect_channels(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "channels" in data:
            return data
        out = {k: v for k, v in data.items() if k in _SAMPLE_KEYS}
        out["channels"] = {k: v for k, v in data.items() if k not in _SAMPLE_KEYS}
        if out.get("device_alarms") is None and "device_alarms" in out:
            out["device_alarms"] = ()
        return out


class DeviceAlarm(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    device_id: str = Field(alias="deviceId")
    parameter: str | None = None
    message: str
    severity: AlarmSeverity = AlarmSeverity.WARNING
    value: float | None = None
    timestamp: datetime | None = None
    source: AlarmSource = AlarmSource.BACKEND


class DeviceDataMessage(BaseModel):
    """Envelope pushed on a device topic."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    telemetry: TelemetrySample
    backend_alarms: tuple[DeviceAlarm, ...] = Field(default=(), alias="backendAlarms")

    @model_validator(mode="before")
    @classmethod
    def _null_alarms(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("backendAlarms", ()) is None:
            data = {**data, "backendAlarms": ()}
        return data


@dataclass(frozen=True, slots=True)
class HistoryPoint:
    """One timestamped scalar of a historical series."""

    timestamp: datetime
    value: float
    synthetic: bool = False

    def as_chart_pair(self) -> tuple[int, float]:
        return to_epoch_ms(self.timestamp), self.value
