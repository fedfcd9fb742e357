"""Per-device topic subscriptions on top of a :class:`StompConnection`."""
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

import structlog
from pydantic import ValidationError

from genmon_live.connection import StompConnection
from genmon_live.models import DeviceDataMessage

logger = structlog.get_logger(__name__)

TOPIC_PREFIX = "/topic/device/"

MessageHandler = Callable[[DeviceDataMessage], None]


def topic_for(device_id: str) -> str:
    return f"{TOPIC_PREFIX}{device_id}"


def decode_message(body: str) -> DeviceDataMessage | None:
    """Decode a pushed envelope, or log and return ``None`` when it is malformed."""
    try:
        return DeviceDataMessage.model_validate_json(body)
    except ValidationError as exc:
        logger.warning("message_dropped", reason="invalid_payload", errors=exc.error_count(), body=body[:200])
        return None


@dataclass(slots=True)
class Subscription:
    device_id: str
    topic: str
    subscription_id: str
    connection: StompConnection
    on_message: MessageHandler
    active: bool = True


class SubscriptionRouter:
    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def subscribe(
        self,
        connection: StompConnection,
        device_id: str,
        on_message: MessageHandler,
    ) -> Subscription:
        topic = topic_for(device_id)

        def _deliver(body: str) -> None:
            message = decode_message(body)
            if message is not None:
                on_message(message)

        subscription_id = connection.add_subscription(topic, _deliver)
        sub = Subscription(device_id, topic, subscription_id, connection, on_message)
        self._subscriptions.append(sub)
        logger.debug("subscribed", topic=topic, subscription_id=subscription_id)
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        if not subscription.active:
            return
        subscription.active = False
        subscription.connection.remove_subscription(subscription.subscription_id)
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
        logger.debug("unsubscribed", topic=subscription.topic, subscription_id=subscription.subscription_id)

    def unsubscribe_all(self) -> None:
        for sub in list(self._subscriptions):
            self.unsubscribe(sub)

    def open_feed(self, connection: StompConnection, device_id: str) -> "DeviceFeed":
        feed = DeviceFeed(self)
        feed._subscription = self.subscribe(connection, device_id, feed._put)
        return feed


class DeviceFeed:
    """Ordered queue of decoded messages for one device.

    Iterate with ``async for``; iteration ends after :meth:`close`.
    """

    _END = object()

    def __init__(self, router: SubscriptionRouter) -> None:
        self._router = router
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._subscription: Subscription | None = None
        self._closed = False

    @property
    def subscription(self) -> Subscription | None:
        return self._subscription

    @property
    def closed(self) -> bool:
        return self._closed

    def _put(self, message: DeviceDataMessage) -> None:
        if not self._closed:
            self._queue.put_nowait(message)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._router.unsubscribe(self._subscription)
        # Drop anything not yet consumed, then wake the consumer.
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(self._END)

    def __aiter__(self) -> AsyncIterator[DeviceDataMessage]:
        return self

    async def __anext__(self) -> DeviceDataMessage:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is self._END or self._closed:
            raise StopAsyncIteration
        return item  # type: ignore[return-value]
