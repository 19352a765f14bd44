"""
Bookcrossing Application Package

Three FastAPI services (identity, catalog, exchange) for exchanging books
between users, connected by an event fabric and live WebSocket
notifications.

Package Structure:
- config.py: Application configuration using Pydantic Settings
- database.py: SQLAlchemy engine and session management per service
- errors.py: Domain exceptions mapped to HTTP responses
- main.py: Application factories for the three services
- dependencies.py: Dependency injection functions
- models/: SQLAlchemy ORM models
- schemas/: Pydantic request/response schemas
- routers/: API route handlers
- services/: Business logic (tokens, catalog, exchanges, events)
"""

__version__ = "0.1.0"
