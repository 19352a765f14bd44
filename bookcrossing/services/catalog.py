"""
Catalog Service

Book storage operations for the catalog service. Publishing facts and
live notifications is left to the router so these functions stay plain
database code.

Usage:
    from bookcrossing.services.catalog import create_book, list_books

    book = create_book(db, owner_id=1, title="1984", author="George Orwell")
    books = list_books(db, owner_id=1)
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from bookcrossing.errors import NotFoundOrUnauthorized
from bookcrossing.models.book import Book, BookStatus

logger = logging.getLogger(__name__)

BOOK_NOT_FOUND = "Book not found or unauthorized"


def list_books(db: Session, owner_id: int) -> list[Book]:
    """Return every book owned by owner_id, in storage order."""
    stmt = select(Book).where(Book.owner_id == owner_id).order_by(Book.id)
    return list(db.execute(stmt).scalars().all())


def create_book(db: Session, owner_id: int, title: str, author: str) -> Book:
    """Insert a book with status "available"."""
    book = Book(
        title=title,
        author=author,
        owner_id=owner_id,
        status=BookStatus.AVAILABLE.value,
    )

    db.add(book)
    db.commit()
    db.refresh(book)

    logger.info(f"Book {book.id} created by user {owner_id}")

    return book


def update_book_status(db: Session, owner_id: int, book_id: int, new_status: str) -> Book:
    """
    Set a book's status if the caller owns it.

    The status value is not validated.

    Raises:
        NotFoundOrUnauthorized: If no book matches (id, owner)
    """
    stmt = (
        update(Book)
        .where(Book.id == book_id, Book.owner_id == owner_id)
        .values(status=new_status)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)

    if result.rowcount == 0:
        db.rollback()
        raise NotFoundOrUnauthorized(BOOK_NOT_FOUND)

    db.commit()

    book = db.get(Book, book_id, populate_existing=True)
    logger.info(f"Book {book_id} status set to '{new_status}' by user {owner_id}")

    return book
