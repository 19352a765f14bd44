"""
WebSocket Router

Live notification endpoint, mounted on every service.

Endpoints:
- /ws: Receive every notification the service emits
- GET /ws/stats: Connection count

There is no authentication and no channel selection: a connected client
gets all of the service's notifications.

Message format (received):
```json
{
    "type": "exchange_approved",
    "data": {"request": {...}},
    "timestamp": "2024-01-20T12:00:00+00:00"
}
```

Messages a client may send:
- {"type": "ping"} -> {"type": "pong"}
- anything else -> {"type": "error"}
"""

import logging
from typing import Any

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect

from bookcrossing.services.websocket import LiveNotifier

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["WebSocket"],
)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    notifier: LiveNotifier = websocket.app.state.notifier

    await notifier.connect(websocket)

    try:
        await websocket.send_json({
            "type": "connected",
            "service": notifier.service,
            "message": f"Connected to {notifier.service} notifications",
        })

        while True:
            data = await websocket.receive_json()
            await handle_message(websocket, data)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected from {notifier.service}")
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        notifier.disconnect(websocket)


async def handle_message(websocket: WebSocket, data: Any) -> None:
    """Answer a message sent by a client."""
    message_type = data.get("type", "") if isinstance(data, dict) else ""

    if message_type == "ping":
        await websocket.send_json({
            "type": "pong",
            "timestamp": data.get("timestamp"),
        })
    else:
        await websocket.send_json({
            "type": "error",
            "message": f"Unknown message type: {message_type}",
        })


@router.get("/ws/stats", tags=["WebSocket"])
async def get_websocket_stats(request: Request) -> dict:
    """Number of clients connected to this service."""
    return request.app.state.notifier.get_stats()
