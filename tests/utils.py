"""In-memory broker and transport used instead of a real WebSocket."""
from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

from genmon_live.config import StreamSettings
from genmon_live.stomp import Frame, decode_frame, encode_frame


def fast_stream_settings(**overrides: Any) -> StreamSettings:
    values: dict[str, Any] = {
        "url": "ws://broker.test/ws/websocket",
        "reconnect_delay_ms": 10,
        "heartbeat_outgoing_ms": 0,
        "heartbeat_incoming_ms": 0,
        "connect_timeout_s": 1.0,
    }
    values.update(overrides)
    return StreamSettings(**values)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


class FakeTransport:
    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False
        self._inbox: asyncio.Queue[str | None] = asyncio.Queue()

    async def send(self, data: str) -> None:
        if self.closed:
            raise ConnectionResetError("transport closed")
        self.sent.append(data)

    async def receive(self) -> str | None:
        if self.closed:
            return None
        return await self._inbox.get()

    async def close(self) -> None:
        self.closed = True
        self._inbox.put_nowait(None)

    def feed(self, text: str) -> None:
        self._inbox.put_nowait(text)

    def drop(self) -> None:
        """Peer goes away."""
        self._inbox.put_nowait(None)

    def frames(self) -> list[Frame]:
        out = []
        for text in self.sent:
            frame = decode_frame(text)
            if frame is not None:
                out.append(frame)
        return out

    def frames_of(self, command: str) -> list[Frame]:
        return [f for f in self.frames() if f.command == command]


class FakeBroker:
    """Transport factory that hands out :class:`FakeTransport` instances."""

    def __init__(self, *, heartbeat: str = "0,0", refuse: int = 0, auto_connect: bool = True) -> None:
        self.heartbeat = heartbeat
        self.refuse = refuse
        self.auto_connect = auto_connect
        self.attempts = 0
        self.transports: list[FakeTransport] = []

    async def __call__(self, endpoint: str) -> FakeTransport:
        self.attempts += 1
        if self.refuse > 0:
            self.refuse -= 1
            raise ConnectionRefusedError(f"refused: {endpoint}")
        transport = FakeTransport()
        if self.auto_connect:
            transport.feed(encode_frame(Frame("CONNECTED", {"version": "1.2", "heart-beat": self.heartbeat})))
        self.transports.append(transport)
        return transport

    @property
    def current(self) -> FakeTransport:
        return self.transports[-1]

    def subscription_id(self, destination: str, transport: FakeTransport | None = None) -> str | None:
        transport = transport or self.current
        active: dict[str, str] = {}
        for frame in transport.frames():
            if frame.command == "SUBSCRIBE":
                active[frame.headers["id"]] = frame.headers["destination"]
            elif frame.command == "UNSUBSCRIBE":
                active.pop(frame.headers["id"], None)
        for sub_id, dest in active.items():
            if dest == destination:
                return sub_id
        return None

    def publish(self, destination: str, body: str, transport: FakeTransport | None = None) -> None:
        transport = transport or self.current
        sub_id = self.subscription_id(destination, transport)
        if sub_id is None:
            raise AssertionError(f"no subscription for {destination}")
        transport.feed(
            encode_frame(
                Frame(
                    "MESSAGE",
                    {"destination": destination, "subscription": sub_id, "message-id": "m-1"},
                    body,
                )
            )
        )


def envelope(
    device_id: str = "GEN-001",
    *,
    timestamp: str = "2026-01-01T12:00:00",
    device_alarms: list[str] | None = None,
    backend_alarms: list[dict[str, Any]] | None = None,
    **channels: Any,
) -> str:
    telemetry: dict[str, Any] = {"deviceId": device_id, "timestamp": timestamp, **channels}
    if device_alarms is not None:
        telemetry["device_alarms"] = device_alarms
    return json.dumps({"telemetry": telemetry, "backendAlarms": backend_alarms or []})
