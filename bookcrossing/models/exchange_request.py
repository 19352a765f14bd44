"""
Exchange Request Model

A proposal from one user (sender) to another (recipient) about a book.
Owned by the exchange service.
"""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from bookcrossing.database import Base


class ExchangeStatus(StrEnum):
    """
    Lifecycle of an exchange request.

        pending -> approved -> completed
        pending -> rejected
    """

    PENDING = "pending"
    APPROVED = "approved"
    COMPLETED = "completed"
    REJECTED = "rejected"


class ExchangeRequest(Base):
    """
    Exchange request model.

    Table: exchange_requests

    book_id, sender_id and recipient_id are plain integer references;
    nothing checks that the book exists or belongs to the sender.
    """

    __tablename__ = "exchange_requests"

    id: Mapped[int] = mapped_column(primary_key=True)

    book_id: Mapped[int] = mapped_column(Integer, nullable=False)

    sender_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)

    recipient_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=ExchangeStatus.PENDING.value,
        server_default=ExchangeStatus.PENDING.value,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"ExchangeRequest(id={self.id}, book_id={self.book_id}, "
            f"sender_id={self.sender_id}, recipient_id={self.recipient_id}, "
            f"status='{self.status}')"
        )
