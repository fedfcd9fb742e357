from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol

import aiohttp

STOMP_SUBPROTOCOLS = ("v12.stomp", "v11.stomp", "v10.stomp")


class Transport(Protocol):
    async def send(self, data: str) -> None: ...

    async def receive(self) -> str | None:
        """Next text message, or ``None`` once the peer has closed."""
        ...

    async def close(self) -> None: ...


TransportFactory = Callable[[str], Awaitable[Transport]]


class WebSocketTransport:
    """aiohttp WebSocket carrying STOMP frames as text messages."""

    def __init__(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse):
        self._session = session
        self._ws = ws

    async def send(self, data: str) -> None:
        await self._ws.send_str(data)

    async def receive(self) -> str | None:
        msg = await self._ws.receive()
        if msg.type == aiohttp.WSMsgType.TEXT:
            return msg.data
        if msg.type == aiohttp.WSMsgType.BINARY:
            return msg.data.decode("utf-8")
        # CLOSE, CLOSING, CLOSED, ERROR
        return None

    async def close(self) -> None:
        try:
            await self._ws.close()
        finally:
            await self._session.close()


async def connect_websocket(endpoint: str) -> WebSocketTransport:
    session = aiohttp.ClientSession()
    try:
        ws = await session.ws_connect(endpoint, protocols=STOMP_SUBPROTOCOLS, autoping=True)
    except BaseException:
        await session.close()
        raise
    return WebSocketTransport(session, ws)
