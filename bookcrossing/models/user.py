"""
User Model

A registered member of the book exchange. Owned by the identity service.

SQLAlchemy 2.0 Features Used:
- mapped_column(): Define columns with full type support
- Mapped[]: Type hint wrapper for SQLAlchemy columns
"""

from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from bookcrossing.database import Base


class User(Base):
    """
    User model.

    Table: users

    Users are created on registration and never updated afterwards; the
    only other mutation is deletion by the user themself. Books and
    exchange requests live in other services' tables and reference users
    by plain integer id, so deletion does not cascade physically.

    Indexes:
    - username: Unique index for login lookups
    - email: Unique index
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)

    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        index=True,
        nullable=False,
        comment="Login name"
    )

    email: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        index=True,
        nullable=False,
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Bcrypt hashed password"
    )

    # -------------------------------------------------------------------------
    # Profile Fields
    # -------------------------------------------------------------------------
    full_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    city: Mapped[str | None] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="When the user registered"
    )

    def __repr__(self) -> str:
        return f"User(id={self.id}, username='{self.username}')"
