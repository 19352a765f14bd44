"""
Services Package

Business logic kept apart from HTTP handling (routers).

Current services:
- security.py: Password hashing and JWT utilities
- verifier.py: Local and remote credential verifiers
- catalog.py: Book storage operations
- exchange.py: Exchange request lifecycle
- events.py: Broadcast channel and durable queue (Redis or in-memory)
- consumer.py: Book event consumer of the exchange service
- websocket.py: Live notifier for WebSocket clients
"""
