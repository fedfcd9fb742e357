"""Connection lifecycle for the STOMP push channel.

A :class:`StompConnection` owns one physical transport. It reconnects forever
with a fixed delay, exchanges heart-beats in both directions and replays every
registered subscription after each successful handshake, so consumers never
notice a reconnect except through the ``connected`` flag.
"""
from __future__ import annotations

import asyncio
import itertools
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from urllib.parse import urlsplit

import structlog

from genmon_live.config import StreamSettings
from genmon_live.core.exceptions import StompProtocolError, TransportError
from genmon_live.stomp import (
    HEARTBEAT,
    Frame,
    connect_frame,
    decode_frame,
    disconnect_frame,
    encode_frame,
    negotiate_heartbeat,
    subscribe_frame,
    unsubscribe_frame,
)
from genmon_live.transport import Transport, TransportFactory, connect_websocket

logger = structlog.get_logger(__name__)

FrameHandler = Callable[[str], None]
StatusListener = Callable[[bool], None]


@dataclass(slots=True)
class _Registration:
    subscription_id: str
    destination: str
    handler: FrameHandler


class StompConnection:
    def __init__(
        self,
        endpoint: str,
        settings: StreamSettings,
        transport_factory: TransportFactory = connect_websocket,
    ) -> None:
        self.endpoint = endpoint
        self._settings = settings
        self._factory = transport_factory
        self._subscriptions: dict[str, _Registration] = {}
        self._ids = itertools.count()
        self._status_listeners: list[StatusListener] = []
        self._transport: Transport | None = None
        self._ready = False
        self._connected = False
        self._connected_event = asyncio.Event()
        self._closed = False
        self._task: asyncio.Task[None] | None = None
        self._pending_sends: set[asyncio.Task[None]] = set()

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def closed(self) -> bool:
        return self._closed

    def add_status_listener(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    async def wait_connected(self, timeout: float | None = None) -> None:
        await asyncio.wait_for(self._connected_event.wait(), timeout)

    def start(self) -> None:
        if self._task is None and not self._closed:
            self._task = asyncio.create_task(self._run(), name=f"stomp:{self.endpoint}")

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def add_subscription(self, destination: str, handler: FrameHandler) -> str:
        if self._closed:
            raise TransportError("Connection is closed")
        subscription_id = f"sub-{next(self._ids)}"
        self._subscriptions[subscription_id] = _Registration(subscription_id, destination, handler)
        if self._ready:
            self._send_soon(subscribe_frame(subscription_id, destination))
        return subscription_id

    def remove_subscription(self, subscription_id: str) -> None:
        # Removal is immediate: no frame for this id is dispatched after it returns.
        if self._subscriptions.pop(subscription_id, None) is None:
            return
        if self._ready and not self._closed:
            self._send_soon(unsubscribe_frame(subscription_id))

    def _send_soon(self, frame: Frame) -> None:
        task = asyncio.create_task(self._send_frame(frame))
        self._pending_sends.add(task)
        task.add_done_callback(self._send_done)

    def _send_done(self, task: asyncio.Task[None]) -> None:
        self._pending_sends.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            # The read loop notices the broken transport and reconnects.
            logger.warning("stream_send_failed", endpoint=self.endpoint, error=str(exc))

    async def _send_frame(self, frame: Frame) -> None:
        transport = self._transport
        if transport is None:
            return
        await transport.send(encode_frame(frame))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _set_connected(self, value: bool) -> None:
        if value:
            self._connected_event.set()
        else:
            self._connected_event.clear()
        if value == self._connected:
            return
        self._connected = value
        if self._closed:
            return
        logger.info("stream_status_changed", endpoint=self.endpoint, connected=value)
        for listener in list(self._status_listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("status_listener_failed", endpoint=self.endpoint)

    async def _run(self) -> None:
        while not self._closed:
            try:
                await self._session()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("stream_disconnected", endpoint=self.endpoint, error=str(exc))
            finally:
                self._ready = False
                self._set_connected(False)
                await self._drop_transport()

            if self._closed:
                break
            logger.info(
                "stream_reconnect_scheduled",
                endpoint=self.endpoint,
                delay_ms=self._settings.reconnect_delay_ms,
            )
            await asyncio.sleep(self._settings.reconnect_delay_s)

    async def _session(self) -> None:
        s = self._settings
        transport = await asyncio.wait_for(self._factory(self.endpoint), s.connect_timeout_s)
        self._transport = transport

        host = urlsplit(self.endpoint).hostname or "localhost"
        await transport.send(
            encode_frame(connect_frame(host, (s.heartbeat_outgoing_ms, s.heartbeat_incoming_ms)))
        )
        frame = await self._await_connected(transport)
        send_ms, receive_ms = negotiate_heartbeat(
            (s.heartbeat_outgoing_ms, s.heartbeat_incoming_ms), frame.headers.get("heart-beat")
        )

        self._ready = True
        for reg in list(self._subscriptions.values()):
            await transport.send(encode_frame(subscribe_frame(reg.subscription_id, reg.destination)))
        self._set_connected(True)
        logger.info(
            "stream_connected",
            endpoint=self.endpoint,
            subscriptions=len(self._subscriptions),
            heartbeat_send_ms=send_ms,
            heartbeat_receive_ms=receive_ms,
        )

        heartbeat_task = None
        if send_ms > 0:
            heartbeat_task = asyncio.create_task(self._send_heartbeats(transport, send_ms / 1000.0))
        deadline = receive_ms * s.heartbeat_tolerance / 1000.0 if receive_ms > 0 else None
        try:
            while not self._closed:
                text = await self._receive(transport, deadline)
                frame = decode_frame(text)
                if frame is None:
                    continue
                self._dispatch(frame)
        finally:
            if heartbeat_task is not None:
                heartbeat_task.cancel()

    async def _await_connected(self, transport: Transport) -> Frame:
        loop = asyncio.get_running_loop()
        give_up_at = loop.time() + self._settings.connect_timeout_s
        while True:
            remaining = give_up_at - loop.time()
            if remaining <= 0:
                raise TransportError("Timed out waiting for CONNECTED")
            frame = decode_frame(await self._receive(transport, remaining))
            if frame is None:
                continue
            if frame.command == "CONNECTED":
                return frame
            if frame.command == "ERROR":
                raise StompProtocolError(frame.headers.get("message") or frame.body or "STOMP ERROR")
            raise StompProtocolError(f"Unexpected {frame.command} frame before CONNECTED")

    @staticmethod
    async def _receive(transport: Transport, timeout: float | None) -> str:
        try:
            text = await asyncio.wait_for(transport.receive(), timeout)
        except asyncio.TimeoutError as exc:
            raise TransportError("Heart-beat timeout") from exc
        if text is None:
            raise TransportError("Connection closed by peer")
        return text

    async def _send_heartbeats(self, transport: Transport, interval_s: float) -> None:
        try:
            while True:
                await asyncio.sleep(interval_s)
                await transport.send(HEARTBEAT)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("heartbeat_send_failed", endpoint=self.endpoint, error=str(exc))
            # Closing the transport ends the pending receive and triggers a reconnect.
            await transport.close()

    def _dispatch(self, frame: Frame) -> None:
        if frame.command == "ERROR":
            raise StompProtocolError(frame.headers.get("message") or frame.body or "STOMP ERROR")
        if frame.command != "MESSAGE":
            return
        reg = self._subscriptions.get(frame.headers.get("subscription", ""))
        if reg is None:
            logger.debug(
                "message_for_unknown_subscription",
                endpoint=self.endpoint,
                destination=frame.headers.get("destination"),
            )
            return
        try:
            reg.handler(frame.body)
        except Exception:
            logger.exception("subscription_handler_failed", destination=reg.destination)

    async def _drop_transport(self) -> None:
        transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            await transport.close()
        except Exception as exc:
            logger.debug("transport_close_failed", endpoint=self.endpoint, error=str(exc))

    async def close(self) -> None:
        """Tear the connection down. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._subscriptions.clear()
        self._status_listeners.clear()

        transport = self._transport
        if transport is not None and self._ready:
            try:
                await transport.send(encode_frame(disconnect_frame()))
            except Exception as exc:
                logger.debug("disconnect_send_failed", endpoint=self.endpoint, error=str(exc))

        for task in list(self._pending_sends):
            task.cancel()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._ready = False
        self._connected = False
        self._connected_event.clear()
        await self._drop_transport()
        logger.info("stream_closed", endpoint=self.endpoint)


class ConnectionManager:
    """Opens and owns STOMP connections; every handle it opens is closed by :meth:`aclose`."""

    def __init__(
        self,
        settings: StreamSettings | None = None,
        transport_factory: TransportFactory = connect_websocket,
    ) -> None:
        self._settings = settings or StreamSettings()
        self._factory = transport_factory
        self._connections: list[StompConnection] = []

    async def open(self, endpoint: str | None = None) -> StompConnection:
        connection = StompConnection(endpoint or self._settings.url, self._settings, self._factory)
        self._connections.append(connection)
        connection.start()
        return connection

    async def close(self, connection: StompConnection) -> None:
        if connection in self._connections:
            self._connections.remove(connection)
        await connection.close()

    async def aclose(self) -> None:
        connections, self._connections = self._connections, []
        for connection in connections:
            await connection.close()

    @asynccontextmanager
    async def connect(self, endpoint: str | None = None) -> AsyncIterator[StompConnection]:
        connection = await self.open(endpoint)
        try:
            yield connection
        finally:
            await self.close(connection)

    async def __aenter__(self) -> "ConnectionManager":
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()
