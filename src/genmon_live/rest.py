from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx
import structlog

from genmon_live.core.exceptions import QueryError

logger = structlog.get_logger(__name__)


def error_message(response: httpx.Response, default: str) -> str:
    """The server's ``message`` field when it sent one, otherwise ``default``."""
    try:
        payload = response.json()
    except ValueError:
        return default
    if isinstance(payload, dict) and isinstance(payload.get("message"), str) and payload["message"]:
        return payload["message"]
    return default


class ApiClient:
    """Async JSON client for the monitoring backend.

    Every failure is raised as :class:`QueryError`; nothing is retried.
    """

    default_error = "Request failed"

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 10.0,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._headers = dict(headers or {})
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "ApiClient":
        self._client = httpx.AsyncClient(timeout=self._timeout_s)
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(f"{type(self).__name__} must be used as an async context manager")
        return self._client

    async def get_json(self, path: str, *, params: Mapping[str, str] | None = None) -> Any:
        url = f"{self._base_url}{path}"
        try:
            resp = await self._http().get(url, params=params, headers=self._headers)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            raise self._status_error(url, exc) from exc
        except httpx.HTTPError as exc:
            logger.warning("api_request_failed", url=url, error=str(exc))
            raise QueryError(self.default_error) from exc
        except ValueError as exc:
            logger.warning("api_request_failed", url=url, error="invalid JSON")
            raise QueryError(self.default_error) from exc

    async def post_json(self, path: str, payload: dict[str, Any]) -> Any:
        url = f"{self._base_url}{path}"
        try:
            resp = await self._http().post(url, json=payload, headers=self._headers)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            raise self._status_error(url, exc) from exc
        except httpx.HTTPError as exc:
            logger.warning("api_request_failed", url=url, error=str(exc))
            raise QueryError(self.default_error) from exc
        except ValueError as exc:
            logger.warning("api_request_failed", url=url, error="invalid JSON")
            raise QueryError(self.default_error) from exc

    def _status_error(self, url: str, exc: httpx.HTTPStatusError) -> QueryError:
        status = exc.response.status_code
        message = error_message(exc.response, self.default_error)
        logger.warning("api_request_failed", url=url, status=status, error=message)
        return QueryError(message, status_code=status)
