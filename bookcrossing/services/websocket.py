"""
Live Notifier

Per-service WebSocket broadcast that mirrors state changes to connected
front-end clients.

Delivery is best effort:
- every connected client receives every notification of the service
- no acknowledgment, no replay for clients that connect later
- a client whose socket fails on send is dropped

Usage:
    notifier = LiveNotifier("exchange")
    await notifier.connect(websocket)
    await notifier.notify("exchange_approved", {"request": {...}})
    notifier.disconnect(websocket)
"""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class LiveNotifier:
    """
    Tracks the WebSocket clients of one service and broadcasts to all of them.

    The notifier is created by the application factory and stored on
    app.state, so each service has its own set of clients.
    """

    def __init__(self, service: str) -> None:
        self.service = service
        self.connections: list[WebSocket] = []

    async def connect(self, websocket: WebSocket) -> None:
        """Accept the socket and start delivering notifications to it."""
        await websocket.accept()
        self.connections.append(websocket)

        logger.info(
            f"A user connected to {self.service} notifications "
            f"(total={len(self.connections)})"
        )

    def disconnect(self, websocket: WebSocket) -> None:
        """Stop delivering to the socket. Unknown sockets are ignored."""
        before = len(self.connections)
        self.connections = [
            ws for ws in self.connections if ws is not websocket
        ]

        if len(self.connections) < before:
            logger.info(
                f"User disconnected from {self.service} notifications "
                f"(total={len(self.connections)})"
            )

    async def notify(self, event: str, data: dict[str, Any]) -> int:
        """
        Send a named notification to every connected client.

        Args:
            event: Notification name, e.g. "exchange_approved"
            data: JSON-serializable payload

        Returns:
            Number of clients the message was sent to
        """
        message = {
            "type": event,
            "data": data,
            "timestamp": datetime.now(UTC).isoformat(),
        }

        sent_count = 0
        failed_connections: list[WebSocket] = []

        for websocket in list(self.connections):
            try:
                await websocket.send_json(message)
                sent_count += 1
            except Exception as e:
                logger.warning(f"Failed to send to websocket: {e}")
                failed_connections.append(websocket)

        for websocket in failed_connections:
            self.disconnect(websocket)

        logger.debug(
            f"Notification '{event}': {sent_count} sent, "
            f"{len(failed_connections)} failed"
        )

        return sent_count

    def get_total_connections(self) -> int:
        return len(self.connections)

    def get_stats(self) -> dict[str, Any]:
        """Get connection statistics."""
        return {
            "service": self.service,
            "total_connections": self.get_total_connections(),
        }
