"""
Event Fabric

Carries facts ({type, data} JSON payloads) between services.

Two primitives with different delivery guarantees coexist and are kept
separate on purpose:

1. Broadcast channel (Redis pub/sub)
   - The catalog publishes book lifecycle facts to the "book_events" channel.
   - Every subscriber connected at publish time receives the fact once.
   - Nothing is stored: a subscriber that is offline misses it for good.

2. Durable queue (Redis list)
   - The identity service appends "user created" facts to "user_created".
   - Messages stay in the list until something pops them, and survive
     broker restarts when the Redis server persists its data.
   - No consumer exists yet. Reading the queue is left to a future
     service; this module only offers publish() and a length probe.

Connection policy (both primitives): open() starts a background task that
connects and, on failure, retries after a fixed delay (5 seconds by
default), forever, with no backoff. Publishing while disconnected logs a
warning and returns False; it never raises into the request.

In-memory implementations of both primitives exist for single-process
runs (EVENT_BACKEND=memory) and tests.

Usage:
    channel = create_broadcast_channel(settings)
    await channel.open()
    await channel.publish(Event(EventType.BOOK_CREATED, {"id": 1, ...}))

    async with channel.subscribe() as subscription:
        async for payload in subscription:
            event = Event.from_json(payload)
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import redis.asyncio as aioredis
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

from bookcrossing.config import Settings

logger = logging.getLogger(__name__)


# =============================================================================
# Events
# =============================================================================


class EventType(StrEnum):
    """Types of facts carried by the event fabric."""

    BOOK_CREATED = "BOOK_CREATED"
    BOOK_STATUS_UPDATED = "BOOK_STATUS_UPDATED"
    USER_CREATED = "USER_CREATED"


@dataclass(frozen=True)
class Event:
    """
    An immutable fact.

    Attributes:
        type: What happened (an EventType value for facts we publish)
        data: Snapshot of the record the fact is about
    """

    type: str
    data: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": str(self.type), "data": self.data}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, payload: str | bytes) -> "Event":
        """
        Decode a published payload.

        Raises:
            ValueError: If the payload is not JSON or lacks type/data
        """
        decoded = json.loads(payload)
        if not isinstance(decoded, dict) or "type" not in decoded:
            raise ValueError("Event payload must be an object with a 'type' key")

        data = decoded.get("data")
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError("Event 'data' must be an object")

        return cls(type=decoded["type"], data=data)


class BrokerConnectionError(Exception):
    """The broker connection was lost while a subscription was active."""


# =============================================================================
# Subscriptions
# =============================================================================


class Subscription(ABC):
    """
    A live subscription to a broadcast channel.

    Iterating yields raw payload strings in publish order. Only facts
    published after the subscription was created are delivered.
    """

    @abstractmethod
    async def get(self, timeout: float | None = None) -> str | None:
        """Wait for the next payload; None if the timeout expires first."""

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> str:
        while True:
            payload = await self.get(timeout=None)
            if payload is not None:
                return payload


class InMemorySubscription(Subscription):
    def __init__(self) -> None:
        self.queue: asyncio.Queue[str] = asyncio.Queue()

    async def get(self, timeout: float | None = None) -> str | None:
        if timeout is None:
            return await self.queue.get()
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except TimeoutError:
            return None


class RedisSubscription(Subscription):
    def __init__(self, pubsub: PubSub) -> None:
        self.pubsub = pubsub

    async def get(self, timeout: float | None = None) -> str | None:
        try:
            message = await self.pubsub.get_message(
                ignore_subscribe_messages=True,
                timeout=timeout,
            )
        except RedisError as e:
            raise BrokerConnectionError(str(e)) from e

        if message is None or message.get("type") != "message":
            return None
        return message["data"]


# =============================================================================
# In-Memory Backend
# =============================================================================


class InMemoryBroadcastChannel:
    """
    Process-local fanout with the same at-most-once semantics as pub/sub.

    Each subscription owns a private queue (the equivalent of an
    anonymous, exclusive, auto-deleted queue); publish() copies the payload
    into the queues that exist at that moment.
    """

    def __init__(self, name: str = "book_events") -> None:
        self.name = name
        self._subscribers: list[InMemorySubscription] = []
        self._open = False

    @property
    def is_connected(self) -> bool:
        return self._open

    async def open(self) -> None:
        self._open = True

    async def close(self) -> None:
        self._open = False
        self._subscribers.clear()

    async def publish(self, event: Event) -> bool:
        if not self._open:
            logger.warning(f"Broadcast channel '{self.name}' is closed; dropping {event.type}")
            return False

        payload = event.to_json()
        for subscription in list(self._subscribers):
            subscription.queue.put_nowait(payload)

        logger.debug(
            f"Published {event.type} to '{self.name}' "
            f"({len(self._subscribers)} subscribers)"
        )
        return True

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[Subscription]:
        subscription = InMemorySubscription()
        self._subscribers.append(subscription)
        try:
            yield subscription
        finally:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)


class InMemoryDurableQueue:
    """
    Process-local stand-in for the durable queue.

    Messages are kept in order in `messages` until a consumer takes them.
    """

    def __init__(self, name: str = "user_created") -> None:
        self.name = name
        self.messages: list[str] = []
        self._open = False

    @property
    def is_connected(self) -> bool:
        return self._open

    async def open(self) -> None:
        self._open = True

    async def close(self) -> None:
        self._open = False

    async def publish(self, event: Event) -> bool:
        if not self._open:
            logger.warning(f"Queue '{self.name}' is closed; dropping {event.type}")
            return False

        self.messages.append(event.to_json())
        return True

    async def length(self) -> int:
        return len(self.messages)


# =============================================================================
# Redis Backend
# =============================================================================


class RedisConnection:
    """
    Redis client with connect-and-retry.

    connect() loops until a PING succeeds, sleeping retry_delay seconds
    after each failure. open() runs it as a background task so service
    startup never waits on the broker.
    """

    def __init__(self, url: str, retry_delay: float = 5.0) -> None:
        self.url = url
        self.retry_delay = retry_delay
        self.attempts = 0
        self._client: aioredis.Redis | None = None
        self._connected = asyncio.Event()
        self._connect_task: asyncio.Task | None = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> aioredis.Redis:
        while True:
            self.attempts += 1
            client = aioredis.from_url(self.url, decode_responses=True)
            try:
                await client.ping()
            except (RedisError, OSError) as e:
                logger.error(
                    f"Redis connection error: {e}. "
                    f"Retrying in {self.retry_delay} seconds"
                )
                with suppress(RedisError, OSError):
                    await client.aclose()
                await asyncio.sleep(self.retry_delay)
                continue

            self._client = client
            self._connected.set()
            logger.info(f"Connected to Redis after {self.attempts} attempt(s)")
            return client

    async def open(self) -> None:
        if self._connect_task is None and self._client is None:
            self._connect_task = asyncio.create_task(self.connect())

    async def wait_connected(self) -> aioredis.Redis:
        await self._connected.wait()
        return self._client

    async def close(self) -> None:
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._connect_task
        self._connect_task = None

        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._connected.clear()
            logger.info("Redis connection closed")


class RedisBroadcastChannel(RedisConnection):
    """Fanout over Redis pub/sub (PUBLISH / SUBSCRIBE)."""

    def __init__(self, url: str, name: str = "book_events", retry_delay: float = 5.0) -> None:
        super().__init__(url, retry_delay)
        self.name = name

    async def publish(self, event: Event) -> bool:
        if self._client is None:
            logger.warning(f"Redis not connected; dropping {event.type} for '{self.name}'")
            return False

        try:
            receivers = await self._client.publish(self.name, event.to_json())
        except RedisError as e:
            logger.warning(f"Failed to publish {event.type} to '{self.name}': {e}")
            return False

        logger.debug(f"Published {event.type} to '{self.name}' ({receivers} subscribers)")
        return True

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[Subscription]:
        client = await self.wait_connected()
        pubsub = client.pubsub()
        try:
            await pubsub.subscribe(self.name)
        except RedisError as e:
            await pubsub.aclose()
            raise BrokerConnectionError(str(e)) from e

        try:
            yield RedisSubscription(pubsub)
        finally:
            with suppress(RedisError):
                await pubsub.aclose()


class RedisDurableQueue(RedisConnection):
    """
    Durable queue over a Redis list (RPUSH).

    Consumers are expected to pop from the left (BLMOVE into a processing
    list gives redelivery of unacknowledged messages). None is defined in
    this repository.
    """

    def __init__(self, url: str, name: str = "user_created", retry_delay: float = 5.0) -> None:
        super().__init__(url, retry_delay)
        self.name = name

    async def publish(self, event: Event) -> bool:
        if self._client is None:
            logger.warning(f"Redis not connected; dropping {event.type} for queue '{self.name}'")
            return False

        try:
            await self._client.rpush(self.name, event.to_json())
        except RedisError as e:
            logger.warning(f"Failed to enqueue {event.type} on '{self.name}': {e}")
            return False

        return True

    async def length(self) -> int:
        if self._client is None:
            return 0
        try:
            return await self._client.llen(self.name)
        except RedisError as e:
            logger.warning(f"Failed to read length of '{self.name}': {e}")
            return 0


# =============================================================================
# Factories
# =============================================================================

BroadcastChannel = InMemoryBroadcastChannel | RedisBroadcastChannel
DurableQueue = InMemoryDurableQueue | RedisDurableQueue


def create_broadcast_channel(settings: Settings) -> BroadcastChannel:
    """Build the book-events channel for the configured backend."""
    if settings.event_backend == "memory":
        return InMemoryBroadcastChannel(settings.book_events_channel)
    return RedisBroadcastChannel(
        settings.redis_url,
        name=settings.book_events_channel,
        retry_delay=settings.broker_retry_delay,
    )


def create_durable_queue(settings: Settings) -> DurableQueue:
    """Build the user-created queue for the configured backend."""
    if settings.event_backend == "memory":
        return InMemoryDurableQueue(settings.user_created_queue)
    return RedisDurableQueue(
        settings.redis_url,
        name=settings.user_created_queue,
        retry_delay=settings.broker_retry_delay,
    )
