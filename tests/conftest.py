"""
pytest Fixtures for Bookcrossing Tests

Shared fixtures for the three services.

Every test gets:
- a fresh SQLite in-memory database (StaticPool keeps the single
  connection alive, so all three services see the same tables)
- the identity, catalog and exchange apps built by their factories with
  in-memory brokers instead of Redis
- catalog and exchange apps whose remote verifier talks to the identity
  app in-process through httpx.ASGITransport

FIXTURE SCOPES:
- function (default) for everything: each test starts from empty tables
  and empty brokers
"""

# =============================================================================
# TEST ENVIRONMENT SETUP
# =============================================================================
# IMPORTANT: Set environment variables BEFORE importing the app
import os

os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests-at-least-32-characters-long"
os.environ["EVENT_BACKEND"] = "memory"
os.environ["DATABASE_URL"] = "sqlite://"

from collections.abc import Generator

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from bookcrossing.config import Settings, get_settings
from bookcrossing.database import Base, Database
from bookcrossing.main import create_catalog_app, create_exchange_app, create_identity_app
from bookcrossing.services.events import (
    Event,
    InMemoryBroadcastChannel,
    InMemoryDurableQueue,
)
from bookcrossing.services.verifier import RemoteCredentialVerifier


# =============================================================================
# TEST DOUBLES
# =============================================================================
class RecordingBroadcastChannel(InMemoryBroadcastChannel):
    """In-memory channel that also remembers what was published."""

    def __init__(self, name: str = "book_events") -> None:
        super().__init__(name)
        self.published: list[Event] = []

    async def publish(self, event: Event) -> bool:
        self.published.append(event)
        return await super().publish(event)


def make_remote_verifier(identity_app: FastAPI) -> RemoteCredentialVerifier:
    """Remote verifier wired to the identity app without a network."""
    client = httpx.AsyncClient(
        transport=httpx.ASGITransport(app=identity_app),
        base_url="http://identity",
    )
    return RemoteCredentialVerifier("http://identity", client=client)


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def register_user(client: TestClient, username: str) -> dict:
    """
    Register a user through the identity API.

    Returns:
        {"id", "username", "token", "headers"}
    """
    response = client.post(
        "/register",
        json={
            "username": username,
            "password": f"{username}-password",
            "email": f"{username}@example.com",
            "city": "Moscow",
        },
    )
    assert response.status_code == 201, response.text
    body = response.json()
    return {
        "id": body["user"]["id"],
        "username": username,
        "token": body["token"],
        "headers": auth_headers(body["token"]),
    }


# =============================================================================
# DATABASE FIXTURES
# =============================================================================
@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def engine():
    """
    SQLite in-memory engine shared by the three services.

    check_same_thread=False because FastAPI runs sync handlers in a
    threadpool.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def database(engine) -> Database:
    return Database(engine=engine)


# =============================================================================
# BROKER FIXTURES
# =============================================================================
@pytest.fixture
def user_queue() -> InMemoryDurableQueue:
    return InMemoryDurableQueue()


@pytest.fixture
def book_events() -> RecordingBroadcastChannel:
    return RecordingBroadcastChannel()


# =============================================================================
# APPLICATION FIXTURES
# =============================================================================
@pytest.fixture
def identity_app(settings, database, user_queue) -> FastAPI:
    return create_identity_app(settings, database=database, user_queue=user_queue)


@pytest.fixture
def identity_client(identity_app) -> Generator[TestClient, None, None]:
    with TestClient(identity_app) as client:
        yield client


@pytest.fixture
def catalog_app(settings, database, identity_app, book_events) -> FastAPI:
    return create_catalog_app(
        settings,
        database=database,
        verifier=make_remote_verifier(identity_app),
        broadcast=book_events,
    )


@pytest.fixture
def catalog_client(catalog_app) -> Generator[TestClient, None, None]:
    with TestClient(catalog_app) as client:
        yield client


@pytest.fixture
def exchange_app(settings, database, identity_app) -> FastAPI:
    return create_exchange_app(
        settings,
        database=database,
        verifier=make_remote_verifier(identity_app),
        broadcast=InMemoryBroadcastChannel(),
    )


@pytest.fixture
def exchange_client(exchange_app) -> Generator[TestClient, None, None]:
    with TestClient(exchange_app) as client:
        yield client


# =============================================================================
# SAMPLE USER FIXTURES
# =============================================================================
@pytest.fixture
def alice(identity_client) -> dict:
    return register_user(identity_client, "alice")


@pytest.fixture
def bob(identity_client) -> dict:
    return register_user(identity_client, "bob")


@pytest.fixture
def carol(identity_client) -> dict:
    return register_user(identity_client, "carol")
