"""
Catalog Service Tests

Tests for /books:
- Books are listed per owner only
- Status updates only touch the caller's own books
- Book facts are published to the broadcast channel
"""

from fastapi import status

from bookcrossing.services.events import EventType
from tests.conftest import auth_headers


def create_book(client, user, title="1984", author="George Orwell") -> dict:
    response = client.post(
        "/books",
        json={"title": title, "author": author},
        headers=user["headers"],
    )
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()


class TestCreateBook:
    """Tests for POST /books."""

    def test_create_book(self, catalog_client, alice):
        response = catalog_client.post(
            "/books",
            json={"title": "1984", "author": "George Orwell"},
            headers=alice["headers"],
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["id"] is not None
        assert data["title"] == "1984"
        assert data["author"] == "George Orwell"
        assert data["owner_id"] == alice["id"]
        assert data["status"] == "available"

    def test_create_book_missing_author(self, catalog_client, alice):
        response = catalog_client.post(
            "/books",
            json={"title": "1984"},
            headers=alice["headers"],
        )

        assert response.status_code == 422
        assert "error" in response.json()

    def test_create_book_publishes_fact(self, catalog_client, book_events, alice):
        book = create_book(catalog_client, alice)

        assert len(book_events.published) == 1
        event = book_events.published[0]
        assert event.type == EventType.BOOK_CREATED
        assert event.data["id"] == book["id"]
        assert event.data["owner_id"] == alice["id"]

    def test_create_book_without_token(self, catalog_client):
        response = catalog_client.post(
            "/books",
            json={"title": "1984", "author": "George Orwell"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"error": "No token provided"}

    def test_create_book_invalid_token(self, catalog_client):
        response = catalog_client.post(
            "/books",
            json={"title": "1984", "author": "George Orwell"},
            headers=auth_headers("forged"),
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"error": "Invalid token"}


class TestListBooks:
    """Tests for GET /books."""

    def test_list_own_books(self, catalog_client, alice):
        first = create_book(catalog_client, alice, title="1984")
        second = create_book(catalog_client, alice, title="Animal Farm")

        response = catalog_client.get("/books", headers=alice["headers"])

        assert response.status_code == status.HTTP_200_OK
        assert [b["id"] for b in response.json()] == [first["id"], second["id"]]

    def test_other_owner_never_sees_book(self, catalog_client, alice, bob):
        create_book(catalog_client, alice)

        response = catalog_client.get("/books", headers=bob["headers"])

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == []

    def test_list_without_token(self, catalog_client):
        response = catalog_client.get("/books")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestUpdateBookStatus:
    """Tests for PUT /books/{id}/status."""

    def test_owner_updates_status(self, catalog_client, book_events, alice):
        book = create_book(catalog_client, alice)

        response = catalog_client.put(
            f"/books/{book['id']}/status",
            json={"status": "exchanged"},
            headers=alice["headers"],
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "exchanged"

        event = book_events.published[-1]
        assert event.type == EventType.BOOK_STATUS_UPDATED
        assert event.data["status"] == "exchanged"

    def test_any_status_value_is_stored(self, catalog_client, alice):
        book = create_book(catalog_client, alice)

        response = catalog_client.put(
            f"/books/{book['id']}/status",
            json={"status": "lost at sea"},
            headers=alice["headers"],
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "lost at sea"

    def test_overlong_status_is_refused(self, catalog_client, book_events, alice):
        book = create_book(catalog_client, alice)

        response = catalog_client.put(
            f"/books/{book['id']}/status",
            json={"status": "x" * 21},
            headers=alice["headers"],
        )

        assert response.status_code == 422
        assert "error" in response.json()
        assert [e.type for e in book_events.published] == [EventType.BOOK_CREATED]

    def test_non_owner_cannot_update(self, catalog_client, book_events, alice, bob):
        book = create_book(catalog_client, alice)

        response = catalog_client.put(
            f"/books/{book['id']}/status",
            json={"status": "exchanged"},
            headers=bob["headers"],
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"error": "Book not found or unauthorized"}

        books = catalog_client.get("/books", headers=alice["headers"]).json()
        assert books[0]["status"] == "available"
        assert [e.type for e in book_events.published] == [EventType.BOOK_CREATED]

    def test_missing_book(self, catalog_client, alice):
        response = catalog_client.put(
            "/books/9999/status",
            json={"status": "exchanged"},
            headers=alice["headers"],
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestCatalogHealth:
    def test_health_reports_broadcast_channel(self, catalog_client):
        data = catalog_client.get("/health").json()

        assert data["service"] == "catalog"
        assert data["brokers"] == {"book_events": True}
