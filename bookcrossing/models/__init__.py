"""
SQLAlchemy Models Package

Each model belongs to exactly one service:
- User: identity service
- Book: catalog service
- ExchangeRequest: exchange service

Cross-service references are plain integer columns, never foreign keys.
"""

from bookcrossing.models.book import Book, BookStatus
from bookcrossing.models.exchange_request import ExchangeRequest, ExchangeStatus
from bookcrossing.models.user import User

__all__ = [
    "User",
    "Book",
    "BookStatus",
    "ExchangeRequest",
    "ExchangeStatus",
]
