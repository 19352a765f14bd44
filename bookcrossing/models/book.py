"""
Book Model

A physical book offered for exchange. Owned by the catalog service.
"""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from bookcrossing.database import Base


class BookStatus(StrEnum):
    """
    Well-known book statuses.

    The status column is free-form: owners may set any string, these are
    only the values the services themselves write or expect.
    """

    AVAILABLE = "available"
    EXCHANGED = "exchanged"


class Book(Base):
    """
    Book model.

    Table: books

    owner_id is a plain integer reference into the identity service's
    users table; no foreign key is declared across the service boundary.
    Books are never physically deleted.
    """

    __tablename__ = "books"

    id: Mapped[int] = mapped_column(primary_key=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)

    author: Mapped[str] = mapped_column(Text, nullable=False)

    owner_id: Mapped[int] = mapped_column(
        Integer,
        index=True,
        nullable=False,
        comment="Id of the owning user"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=BookStatus.AVAILABLE.value,
        server_default=BookStatus.AVAILABLE.value,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"Book(id={self.id}, title='{self.title}', status='{self.status}')"
