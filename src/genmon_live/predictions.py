"""Typed views of the runtime prediction endpoints.

The regression model lives on the backend; this module only decodes and
formats what it returns.
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from genmon_live.core.exceptions import QueryError
from genmon_live.rest import ApiClient

DEFAULT_PREDICTION_ERROR = "Failed to fetch predictions"
NOT_ENOUGH_DATA = "Not enough data for a prediction yet"


class _Wire(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class PredictionPoint(_Wire):
    timestamp: datetime
    value: float | None = None


class SubsystemForecast(_Wire):
    """Fuel or battery runtime forecast for one device."""

    current_level: float | None = Field(default=None, alias="currentLevel")
    decline_rate: float | None = Field(default=None, alias="declineRate")
    predicted_runtime_hours: float | None = Field(default=None, alias="predictedRuntimeHours")
    predicted_runtime_minutes: float | None = Field(default=None, alias="predictedRuntimeMinutes")
    estimated_empty_time: datetime | None = Field(default=None, alias="estimatedEmptyTime")
    historical_data: tuple[PredictionPoint, ...] = Field(default=(), alias="historicalData")
    has_enough_data: bool = Field(default=False, alias="hasEnoughData")
    message: str | None = None


class RuntimeForecast(_Wire):
    fuel: SubsystemForecast | None = Field(default=None, alias="fuelPrediction")
    battery: SubsystemForecast | None = Field(default=None, alias="batteryPrediction")


class RuntimePrediction(_Wire):
    timestamp: int  # epoch ms
    rule_based: float | None = Field(default=None, alias="ruleBasedRuntime")
    ai_corrected: float | None = Field(default=None, alias="aiCorrectedRuntime")
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)

    @property
    def correction_factor(self) -> float | None:
        return _factor(self.ai_corrected, self.rule_based)


class BatteryPrediction(_Wire):
    timestamp: int  # epoch ms
    rule_based: float | None = Field(default=None, alias="ruleBasedDrain")
    ai_corrected: float | None = Field(default=None, alias="aiCorrectedDrain")
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)

    @property
    def correction_factor(self) -> float | None:
        return _factor(self.ai_corrected, self.rule_based)


class AiPredictionData(_Wire):
    fuel_predictions: tuple[RuntimePrediction, ...] = Field(default=(), alias="fuelPredictions")
    battery_predictions: tuple[BatteryPrediction, ...] = Field(default=(), alias="batteryPredictions")
    current_fuel_level: float | None = Field(default=None, alias="currentFuelLevel")
    current_battery_voltage: float | None = Field(default=None, alias="currentBatteryVoltage")
    current_load: float | None = Field(default=None, alias="currentLoad")
    last_updated: str | None = Field(default=None, alias="lastUpdated")

    @property
    def latest_fuel(self) -> RuntimePrediction | None:
        return max(self.fuel_predictions, key=lambda p: p.timestamp, default=None)

    @property
    def latest_battery(self) -> BatteryPrediction | None:
        return max(self.battery_predictions, key=lambda p: p.timestamp, default=None)


def _factor(corrected: float | None, base: float | None) -> float | None:
    if corrected is None or not base:
        return None
    return corrected / base


def format_runtime(hours: float) -> str:
    total_minutes = max(0, int(round(hours * 60)))
    h, m = divmod(total_minutes, 60)
    return f"{h}h {m}m"


def describe_runtime(forecast: SubsystemForecast | None) -> str:
    """Text shown in place of the runtime metric."""
    if forecast is None:
        return NOT_ENOUGH_DATA
    if not forecast.has_enough_data or forecast.predicted_runtime_hours is None:
        return forecast.message or NOT_ENOUGH_DATA
    return format_runtime(forecast.predicted_runtime_hours)


class PredictionClient(ApiClient):
    default_error = DEFAULT_PREDICTION_ERROR

    async def runtime_forecast(self, device_id: str) -> RuntimeForecast:
        payload = await self.get_json(f"/api/predictions/{device_id}")
        try:
            return RuntimeForecast.model_validate(payload)
        except ValidationError as exc:
            raise QueryError(self.default_error) from exc

    async def ai_predictions(self, device_id: str) -> AiPredictionData:
        payload = await self.get_json(f"/api/ai/predictions/{device_id}")
        try:
            return AiPredictionData.model_validate(payload)
        except ValidationError as exc:
            raise QueryError(self.default_error) from exc
