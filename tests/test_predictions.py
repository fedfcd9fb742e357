from __future__ import annotations

import unittest
from typing import Any
from unittest.mock import patch

from pydantic import ValidationError

from genmon_live.core.exceptions import QueryError
from genmon_live.predictions import (
    NOT_ENOUGH_DATA,
    AiPredictionData,
    PredictionClient,
    RuntimePrediction,
    SubsystemForecast,
    describe_runtime,
    format_runtime,
)


class _FakeResponse:
    def __init__(self, payload: Any):
        self._payload = payload
        self.status_code = 200

    def raise_for_status(self) -> None:
        return None

    def json(self) -> Any:
        return self._payload


class _FakeAsyncClient:
    urls: list[str] = []
    payload: Any = None

    def __init__(self, **_kwargs: Any):
        return None

    async def get(self, url: str, *, params: Any, headers: dict[str, str]) -> _FakeResponse:
        type(self).urls.append(url)
        return _FakeResponse(type(self).payload)

    async def aclose(self) -> None:
        return None


FORECAST = {
    "fuelPrediction": {
        "currentLevel": 62.5,
        "declineRate": 1.25,
        "predictedRuntimeHours": 50.0,
        "predictedRuntimeMinutes": 3000.0,
        "estimatedEmptyTime": "2026-01-03T14:00:00",
        "historicalData": [{"timestamp": "2026-01-01T12:00:00", "value": 64.0}],
        "hasEnoughData": True,
    },
    "batteryPrediction": {
        "hasEnoughData": False,
        "message": "Need at least 10 readings",
    },
}

AI_PAYLOAD = {
    "fuelPredictions": [
        {"timestamp": 1000, "ruleBasedRuntime": 10.0, "aiCorrectedRuntime": 9.0, "confidence": 0.8},
        {"timestamp": 2000, "ruleBasedRuntime": 8.0, "aiCorrectedRuntime": 10.0, "confidence": 0.9},
    ],
    "batteryPredictions": [],
    "currentFuelLevel": 55.0,
    "lastUpdated": "2026-01-01T12:00:00",
}


class TestRuntimeText(unittest.TestCase):
    def test_format_runtime(self) -> None:
        self.assertEqual(format_runtime(2.5), "2h 30m")
        self.assertEqual(format_runtime(0), "0h 0m")
        self.assertEqual(format_runtime(-1), "0h 0m")

    def test_describe_uses_server_message_without_enough_data(self) -> None:
        forecast = SubsystemForecast.model_validate(FORECAST["batteryPrediction"])
        self.assertEqual(describe_runtime(forecast), "Need at least 10 readings")
        self.assertEqual(describe_runtime(None), NOT_ENOUGH_DATA)
        self.assertEqual(describe_runtime(SubsystemForecast()), NOT_ENOUGH_DATA)

    def test_describe_formats_runtime(self) -> None:
        forecast = SubsystemForecast.model_validate(FORECAST["fuelPrediction"])
        self.assertEqual(describe_runtime(forecast), "50h 0m")


class TestAiPredictions(unittest.TestCase):
    def test_latest_and_correction_factor(self) -> None:
        data = AiPredictionData.model_validate(AI_PAYLOAD)
        latest = data.latest_fuel
        assert latest is not None
        self.assertEqual(latest.timestamp, 2000)
        self.assertEqual(latest.correction_factor, 1.25)
        self.assertIsNone(data.latest_battery)

    def test_zero_base_has_no_factor(self) -> None:
        p = RuntimePrediction(timestamp=1, ruleBasedRuntime=0.0, aiCorrectedRuntime=3.0)
        self.assertIsNone(p.correction_factor)

    def test_confidence_is_bounded(self) -> None:
        with self.assertRaises(ValidationError):
            RuntimePrediction(timestamp=1, confidence=1.5)


class TestPredictionClient(unittest.IsolatedAsyncioTestCase):
    async def test_runtime_forecast(self) -> None:
        _FakeAsyncClient.urls = []
        _FakeAsyncClient.payload = FORECAST
        with patch("genmon_live.rest.httpx.AsyncClient", _FakeAsyncClient):
            async with PredictionClient("http://backend.test") as client:
                forecast = await client.runtime_forecast("GEN-001")

        self.assertEqual(_FakeAsyncClient.urls, ["http://backend.test/api/predictions/GEN-001"])
        assert forecast.fuel is not None and forecast.battery is not None
        self.assertEqual(forecast.fuel.current_level, 62.5)
        self.assertEqual(len(forecast.fuel.historical_data), 1)
        self.assertFalse(forecast.battery.has_enough_data)

    async def test_ai_predictions(self) -> None:
        _FakeAsyncClient.urls = []
        _FakeAsyncClient.payload = AI_PAYLOAD
        with patch("genmon_live.rest.httpx.AsyncClient", _FakeAsyncClient):
            async with PredictionClient("http://backend.test") as client:
                data = await client.ai_predictions("GEN-001")

        self.assertEqual(_FakeAsyncClient.urls, ["http://backend.test/api/ai/predictions/GEN-001"])
        self.assertEqual(data.current_fuel_level, 55.0)

    async def test_malformed_payload_is_query_error(self) -> None:
        _FakeAsyncClient.payload = {"fuelPredictions": [{"timestamp": "not-a-number"}]}
        with patch("genmon_live.rest.httpx.AsyncClient", _FakeAsyncClient):
            async with PredictionClient("http://backend.test") as client:
                with self.assertRaises(QueryError) as ctx:
                    await client.ai_predictions("GEN-001")
        self.assertEqual(ctx.exception.message, "Failed to fetch predictions")
