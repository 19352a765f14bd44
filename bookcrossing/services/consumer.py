"""
Book Event Consumer

Runs inside the exchange service and listens to the catalog's
"book_events" broadcast channel.

For each payload it:
1. decodes the JSON fact (undecodable payloads are logged and dropped)
2. logs it and passes it to the optional handler
3. moves on; pub/sub has no explicit ack, a delivered message is done

Delivery is at most once. Facts published while the consumer is not
subscribed (startup, reconnect) are never seen, so handlers must not rely
on seeing every fact and must tolerate seeing one twice if a future
transport redelivers.

If the broker connection drops, the consumer waits retry_delay seconds
and subscribes again, forever.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress

from bookcrossing.services.events import BroadcastChannel, BrokerConnectionError, Event

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], Awaitable[None]]


class BookEventConsumer:
    """
    Background subscriber for book lifecycle facts.

    Usage:
        consumer = BookEventConsumer(channel)
        consumer.start()
        ...
        await consumer.stop()
    """

    def __init__(
        self,
        channel: BroadcastChannel,
        handler: EventHandler | None = None,
        retry_delay: float = 5.0,
    ) -> None:
        self.channel = channel
        self.handler = handler
        self.retry_delay = retry_delay
        self.received = 0
        self._task: asyncio.Task | None = None

    async def handle(self, payload: str) -> Event | None:
        """
        Process one payload.

        Returns:
            The decoded event, or None if the payload was dropped
        """
        try:
            event = Event.from_json(payload)
        except ValueError as e:
            logger.warning(f"Dropping undecodable book event: {e}")
            return None

        self.received += 1
        logger.info(f"Received event: {event.type} {event.data}")

        if self.handler is not None:
            try:
                await self.handler(event)
            except Exception:
                logger.exception(f"Book event handler failed for {event.type}")

        return event

    async def run(self) -> None:
        """Subscribe and process payloads until cancelled."""
        while True:
            try:
                async with self.channel.subscribe() as subscription:
                    logger.info(f"Subscribed to '{self.channel.name}'")
                    async for payload in subscription:
                        await self.handle(payload)
            except BrokerConnectionError as e:
                logger.error(
                    f"Lost subscription to '{self.channel.name}': {e}. "
                    f"Retrying in {self.retry_delay} seconds"
                )
                await asyncio.sleep(self.retry_delay)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()
