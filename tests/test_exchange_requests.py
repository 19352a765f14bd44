"""
Exchange Negotiation Tests

Lifecycle:
    pending -> approved -> completed
    pending -> rejected

Default mode does not look at the current status, so repeating a
transition succeeds again. Strict mode only allows legal moves.
"""

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from bookcrossing.config import Settings
from bookcrossing.main import create_exchange_app
from bookcrossing.services.events import InMemoryBroadcastChannel
from tests.conftest import make_remote_verifier

NOT_FOUND = {"error": "Request not found or unauthorized action"}


def create_request(client, sender, recipient, book_id=1) -> dict:
    response = client.post(
        "/exchange-requests",
        json={"book_id": book_id, "recipient_id": recipient["id"]},
        headers=sender["headers"],
    )
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()


def transition(client, user, request_id, action):
    return client.put(
        f"/exchange-requests/{request_id}/{action}",
        headers=user["headers"],
    )


def status_of(client, user, request_id) -> str:
    requests = client.get("/exchange-requests", headers=user["headers"]).json()
    return next(r["status"] for r in requests if r["id"] == request_id)


class TestCreateAndList:
    """Tests for POST and GET /exchange-requests."""

    def test_create_request(self, exchange_client, alice, bob):
        response = exchange_client.post(
            "/exchange-requests",
            json={"book_id": 42, "recipient_id": bob["id"]},
            headers=alice["headers"],
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["book_id"] == 42
        assert data["sender_id"] == alice["id"]
        assert data["recipient_id"] == bob["id"]
        assert data["status"] == "pending"

    def test_ids_are_not_checked(self, exchange_client, alice):
        response = exchange_client.post(
            "/exchange-requests",
            json={"book_id": 12345, "recipient_id": 67890},
            headers=alice["headers"],
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["status"] == "pending"

    def test_list_includes_sent_and_received(self, exchange_client, alice, bob, carol):
        sent = create_request(exchange_client, alice, bob)
        received = create_request(exchange_client, carol, alice)
        create_request(exchange_client, bob, carol)

        response = exchange_client.get("/exchange-requests", headers=alice["headers"])

        assert response.status_code == status.HTTP_200_OK
        assert [r["id"] for r in response.json()] == [sent["id"], received["id"]]

    def test_create_without_token(self, exchange_client):
        response = exchange_client.post(
            "/exchange-requests",
            json={"book_id": 1, "recipient_id": 2},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"error": "No token provided"}


class TestTransitions:
    """Role checks and the default (permissive) status handling."""

    def test_recipient_approves(self, exchange_client, alice, bob):
        request = create_request(exchange_client, alice, bob)

        response = transition(exchange_client, bob, request["id"], "approve")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "approved"

    def test_second_approve_still_succeeds(self, exchange_client, alice, bob):
        request = create_request(exchange_client, alice, bob)
        transition(exchange_client, bob, request["id"], "approve")

        response = transition(exchange_client, bob, request["id"], "approve")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "approved"

    def test_sender_cannot_approve(self, exchange_client, alice, bob):
        request = create_request(exchange_client, alice, bob)

        response = transition(exchange_client, alice, request["id"], "approve")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == NOT_FOUND
        assert status_of(exchange_client, alice, request["id"]) == "pending"

    def test_sender_cannot_reject(self, exchange_client, alice, bob):
        request = create_request(exchange_client, alice, bob)

        response = transition(exchange_client, alice, request["id"], "reject")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == NOT_FOUND
        assert status_of(exchange_client, alice, request["id"]) == "pending"

    def test_recipient_rejects(self, exchange_client, alice, bob):
        request = create_request(exchange_client, alice, bob)

        response = transition(exchange_client, bob, request["id"], "reject")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "rejected"

    @pytest.mark.parametrize("completer", ["alice", "bob"])
    def test_either_party_completes(self, request, exchange_client, alice, bob, completer):
        exchange = create_request(exchange_client, alice, bob)
        transition(exchange_client, bob, exchange["id"], "approve")

        response = transition(
            exchange_client, request.getfixturevalue(completer), exchange["id"], "complete"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "completed"

    def test_complete_from_pending_is_allowed(self, exchange_client, alice, bob):
        request = create_request(exchange_client, alice, bob)

        response = transition(exchange_client, alice, request["id"], "complete")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "completed"

    def test_outsider_cannot_complete(self, exchange_client, alice, bob, carol):
        request = create_request(exchange_client, alice, bob)

        response = transition(exchange_client, carol, request["id"], "complete")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert status_of(exchange_client, alice, request["id"]) == "pending"

    def test_missing_request(self, exchange_client, bob):
        response = transition(exchange_client, bob, 9999, "approve")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == NOT_FOUND


class TestStrictTransitions:
    """EXCHANGE_STRICT_TRANSITIONS=true only allows legal moves."""

    @pytest.fixture
    def strict_client(self, database, identity_app):
        settings = Settings(exchange_strict_transitions=True)
        app = create_exchange_app(
            settings,
            database=database,
            verifier=make_remote_verifier(identity_app),
            broadcast=InMemoryBroadcastChannel(),
        )
        with TestClient(app) as client:
            yield client

    def test_full_lifecycle(self, strict_client, alice, bob):
        request = create_request(strict_client, alice, bob)

        assert transition(strict_client, bob, request["id"], "approve").status_code == 200
        response = transition(strict_client, alice, request["id"], "complete")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "completed"

    def test_second_approve_refused(self, strict_client, alice, bob):
        request = create_request(strict_client, alice, bob)
        transition(strict_client, bob, request["id"], "approve")

        response = transition(strict_client, bob, request["id"], "approve")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == NOT_FOUND

    def test_complete_from_pending_refused(self, strict_client, alice, bob):
        request = create_request(strict_client, alice, bob)

        response = transition(strict_client, alice, request["id"], "complete")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert status_of(strict_client, alice, request["id"]) == "pending"

    def test_reject_after_approve_refused(self, strict_client, alice, bob):
        request = create_request(strict_client, alice, bob)
        transition(strict_client, bob, request["id"], "approve")

        response = transition(strict_client, bob, request["id"], "reject")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert status_of(strict_client, bob, request["id"]) == "approved"
