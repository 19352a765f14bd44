"""
FastAPI Application Entry Point

Builds the three services of the book exchange:

- identity (port 3001): registration, login, token validation, users
- catalog (port 3002): books, publishes book facts
- exchange (port 3003): exchange requests, consumes book facts

Key Concepts:
=============

1. Application Factory Pattern
   - create_identity_app() / create_catalog_app() / create_exchange_app()
   - Every collaborator (database, verifier, brokers, notifier) can be
     passed in; anything not passed is built from Settings
   - Collaborators are stored on app.state and reached through
     bookcrossing.dependencies

2. Lifespan Events
   - startup: create the service's own tables, open the verifier and the
     broker connections (in the background), start the book consumer
   - shutdown: close them again

3. Exception Handlers
   - Every failure answers {"error": "<message>"}
   - Database errors and unhandled exceptions are logged and answer 500
"""

import argparse
import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import Table
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from bookcrossing.config import Settings, get_settings
from bookcrossing.database import Database
from bookcrossing.errors import BookcrossingError
from bookcrossing.models import Book, ExchangeRequest, User
from bookcrossing.routers import (
    auth_router,
    books_router,
    exchange_requests_router,
    users_router,
    websocket_router,
)
from bookcrossing.services.consumer import BookEventConsumer
from bookcrossing.services.events import (
    BroadcastChannel,
    DurableQueue,
    create_broadcast_channel,
    create_durable_queue,
)
from bookcrossing.services.verifier import LocalCredentialVerifier, RemoteCredentialVerifier
from bookcrossing.services.websocket import LiveNotifier

# =============================================================================
# Logging Configuration
# =============================================================================
# Configure logging before creating the apps
settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan Helpers
# =============================================================================
def _create_tables(service: str, database: Database, tables: list[Table]) -> None:
    """Create the service's tables; a failure is logged, not fatal."""
    try:
        database.create_tables(tables)
        logger.info(f"{service}: tables ready ({', '.join(t.name for t in tables)})")
    except SQLAlchemyError as e:
        logger.error(f"{service}: error creating tables: {e}")


def _make_lifespan(
    service: str,
    tables: list[Table],
    owns_database: bool,
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """
    Build the lifespan of one service.

    Whatever is present on app.state (verifier, broadcast, user_queue,
    consumer) is opened on startup and closed on shutdown. The database
    engine is only disposed when the app created it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # ----- STARTUP -----
        state = app.state
        logger.info(f"Starting {service} service...")

        _create_tables(service, state.database, tables)

        await state.verifier.open()
        for name in ("broadcast", "user_queue"):
            broker = getattr(state, name, None)
            if broker is not None:
                await broker.open()

        consumer: BookEventConsumer | None = getattr(state, "consumer", None)
        if consumer is not None:
            consumer.start()

        yield  # Application runs here

        # ----- SHUTDOWN -----
        logger.info(f"Shutting down {service} service...")

        if consumer is not None:
            await consumer.stop()

        for name in ("broadcast", "user_queue"):
            broker = getattr(state, name, None)
            if broker is not None:
                await broker.close()

        await state.verifier.close()

        if owns_database:
            state.database.dispose()

    return lifespan


# =============================================================================
# Base Application
# =============================================================================
def _create_base_app(
    service: str,
    settings: Settings,
    database: Database | None,
    notifier: LiveNotifier | None,
    tables: list[Table],
) -> FastAPI:
    """
    Create a FastAPI app with the parts every service shares: CORS,
    exception handlers, /health, / and the /ws live notifier.
    """
    app = FastAPI(
        title=f"{settings.app_name} {service.capitalize()} Service",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=_make_lifespan(service, tables, owns_database=database is None),
    )

    app.state.service = service
    app.state.settings = settings
    app.state.database = database or Database(settings)
    app.state.notifier = notifier or LiveNotifier(service)

    # -------------------------------------------------------------------------
    # CORS Middleware
    # -------------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # Exception Handlers
    # -------------------------------------------------------------------------
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Malformed bodies and parameters answer 422."""
        return JSONResponse(
            status_code=422,
            content={
                "error": "Invalid request",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(BookcrossingError)
    async def domain_exception_handler(
        request: Request,
        exc: BookcrossingError,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message},
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(
        request: Request,
        exc: SQLAlchemyError,
    ) -> JSONResponse:
        """
        Handle SQLAlchemy database errors.

        Logs the actual error for debugging while hiding details from users.
        """
        logger.error(f"Database error: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "A database error occurred. Please try again later."},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """
        Catch-all exception handler.

        In production, hide internal errors from users.
        In debug mode, show more details.
        """
        logger.error(f"Unhandled error: {exc}", exc_info=True)

        if settings.debug:
            return JSONResponse(status_code=500, content={"error": str(exc)})

        return JSONResponse(
            status_code=500,
            content={"error": "An internal error occurred."},
        )

    # -------------------------------------------------------------------------
    # WebSocket Endpoint
    # -------------------------------------------------------------------------
    app.include_router(websocket_router)

    # -------------------------------------------------------------------------
    # Health Check Endpoint
    # -------------------------------------------------------------------------
    @app.get(
        "/health",
        tags=["Health"],
        summary="Health check",
    )
    async def health_check(request: Request) -> dict:
        """
        Health check endpoint for load balancers and monitoring.

        Reports broker connectivity without failing when the broker is down.
        """
        state = request.app.state
        brokers = {}
        for name in ("broadcast", "user_queue"):
            broker = getattr(state, name, None)
            if broker is not None:
                brokers[broker.name] = broker.is_connected

        health = {
            "status": "healthy",
            "service": service,
            "brokers": brokers,
            "websocket": state.notifier.get_stats(),
        }

        consumer = getattr(state, "consumer", None)
        if consumer is not None:
            health["consumer"] = {
                "running": consumer.is_running,
                "received": consumer.received,
            }

        return health

    @app.get(
        "/",
        tags=["Root"],
        summary="Service root",
    )
    async def root() -> dict:
        return {
            "message": f"Welcome to the {settings.app_name} {service} service",
            "docs": "/docs",
            "health": "/health",
            "websocket": "/ws",
        }

    return app


# =============================================================================
# Application Factories
# =============================================================================
def create_identity_app(
    settings: Settings | None = None,
    *,
    database: Database | None = None,
    verifier: LocalCredentialVerifier | None = None,
    user_queue: DurableQueue | None = None,
    notifier: LiveNotifier | None = None,
) -> FastAPI:
    """
    Identity service: user directory and token issuer/verifier.

    Owns the users table and publishes USER_CREATED to the durable queue.
    """
    settings = settings or get_settings()

    app = _create_base_app("identity", settings, database, notifier, [User.__table__])
    app.state.verifier = verifier or LocalCredentialVerifier.from_settings(settings)
    app.state.user_queue = user_queue or create_durable_queue(settings)

    app.include_router(auth_router)
    app.include_router(users_router)

    return app


def create_catalog_app(
    settings: Settings | None = None,
    *,
    database: Database | None = None,
    verifier: RemoteCredentialVerifier | None = None,
    broadcast: BroadcastChannel | None = None,
    notifier: LiveNotifier | None = None,
) -> FastAPI:
    """
    Catalog service: books owned by users.

    Owns the books table and publishes book facts to the broadcast channel.
    """
    settings = settings or get_settings()

    app = _create_base_app("catalog", settings, database, notifier, [Book.__table__])
    app.state.verifier = verifier or RemoteCredentialVerifier(settings.auth_service_url)
    app.state.broadcast = broadcast or create_broadcast_channel(settings)

    app.include_router(books_router)

    return app


def create_exchange_app(
    settings: Settings | None = None,
    *,
    database: Database | None = None,
    verifier: RemoteCredentialVerifier | None = None,
    broadcast: BroadcastChannel | None = None,
    consumer: BookEventConsumer | None = None,
    notifier: LiveNotifier | None = None,
) -> FastAPI:
    """
    Exchange service: negotiation of book exchanges between users.

    Owns the exchange_requests table and subscribes to book facts.
    """
    settings = settings or get_settings()

    app = _create_base_app(
        "exchange", settings, database, notifier, [ExchangeRequest.__table__]
    )
    app.state.verifier = verifier or RemoteCredentialVerifier(settings.auth_service_url)
    app.state.broadcast = broadcast or create_broadcast_channel(settings)
    app.state.consumer = consumer or BookEventConsumer(
        app.state.broadcast,
        retry_delay=settings.broker_retry_delay,
    )

    app.include_router(exchange_requests_router)

    return app


SERVICES = {
    "identity": ("bookcrossing.main:create_identity_app", "identity_port"),
    "catalog": ("bookcrossing.main:create_catalog_app", "catalog_port"),
    "exchange": ("bookcrossing.main:create_exchange_app", "exchange_port"),
}


# =============================================================================
# Development Server
# =============================================================================
# Run one service with: bookcrossing --service catalog
# or: uvicorn --factory bookcrossing.main:create_catalog_app --port 3002
def main() -> None:
    import uvicorn

    parser = argparse.ArgumentParser(description="Run a bookcrossing service")
    parser.add_argument("--service", choices=sorted(SERVICES), required=True)
    parser.add_argument("--port", type=int, default=None)
    args = parser.parse_args()

    factory, port_field = SERVICES[args.service]

    uvicorn.run(
        factory,
        factory=True,
        host=settings.host,
        port=args.port or getattr(settings, port_field),
        reload=settings.debug,  # Auto-reload on code changes
    )


if __name__ == "__main__":
    main()
