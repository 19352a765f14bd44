"""
Books Router (catalog service)

Endpoints:
- GET /books - List the caller's books
- POST /books - Add a book owned by the caller
- PUT /books/{book_id}/status - Change the status of one of the caller's books

Every endpoint authenticates through the identity service. After a
successful write the catalog, in the background:
1. publishes the fact to the "book_events" broadcast channel
2. pushes a notification to its live clients
"""

import logging

from fastapi import APIRouter, BackgroundTasks, status

from bookcrossing.dependencies import Broadcast, DbSession, Notifier, RemoteUser
from bookcrossing.schemas.book import BookCreate, BookResponse, BookStatusUpdate
from bookcrossing.services.catalog import create_book, list_books, update_book_status
from bookcrossing.services.events import Event, EventType

logger = logging.getLogger(__name__)

# =============================================================================
# Router Configuration
# =============================================================================

router = APIRouter(
    prefix="/books",
    tags=["Books"],
    responses={
        401: {"description": "No token provided or invalid token"},
        503: {"description": "Authentication service unavailable"},
    },
)


@router.get(
    "",
    response_model=list[BookResponse],
    summary="List my books",
)
def get_books(
    current_user: RemoteUser,
    db: DbSession,
) -> list[BookResponse]:
    books = list_books(db, owner_id=current_user.id)
    return [BookResponse.model_validate(b) for b in books]


@router.post(
    "",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a book",
)
def add_book(
    book_data: BookCreate,
    current_user: RemoteUser,
    db: DbSession,
    broadcast: Broadcast,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> BookResponse:
    """Create a book with status "available" owned by the caller."""
    book = create_book(
        db,
        owner_id=current_user.id,
        title=book_data.title,
        author=book_data.author,
    )

    response = BookResponse.model_validate(book)
    snapshot = response.model_dump(mode="json")

    background_tasks.add_task(broadcast.publish, Event(EventType.BOOK_CREATED, snapshot))
    background_tasks.add_task(notifier.notify, "book_created", {"book": snapshot})

    return response


@router.put(
    "/{book_id}/status",
    response_model=BookResponse,
    summary="Update book status",
    responses={404: {"description": "Book not found or unauthorized"}},
)
def set_book_status(
    book_id: int,
    status_data: BookStatusUpdate,
    current_user: RemoteUser,
    db: DbSession,
    broadcast: Broadcast,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> BookResponse:
    """
    Set the status of a book the caller owns.

    A book that does not exist and a book owned by someone else both
    answer 404 and leave the row untouched.
    """
    book = update_book_status(
        db,
        owner_id=current_user.id,
        book_id=book_id,
        new_status=status_data.status,
    )

    response = BookResponse.model_validate(book)
    snapshot = response.model_dump(mode="json")

    background_tasks.add_task(
        broadcast.publish, Event(EventType.BOOK_STATUS_UPDATED, snapshot)
    )
    background_tasks.add_task(notifier.notify, "book_status_updated", {"book": snapshot})

    return response
