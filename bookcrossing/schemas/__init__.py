"""
Pydantic Schemas Package

Request and response shapes for the three services. Models (SQLAlchemy)
describe storage; schemas describe what crosses the wire.
"""

from bookcrossing.schemas.book import BookCreate, BookResponse, BookStatusUpdate
from bookcrossing.schemas.exchange_request import (
    ExchangeRequestCreate,
    ExchangeRequestResponse,
)
from bookcrossing.schemas.token import (
    TokenUser,
    TokenValidation,
    TokenValidationRequest,
)
from bookcrossing.schemas.user import (
    LoginRequest,
    MessageResponse,
    RegisterResponse,
    TokenResponse,
    UserCreate,
    UserResponse,
)

__all__ = [
    "BookCreate",
    "BookResponse",
    "BookStatusUpdate",
    "ExchangeRequestCreate",
    "ExchangeRequestResponse",
    "TokenUser",
    "TokenValidation",
    "TokenValidationRequest",
    "LoginRequest",
    "MessageResponse",
    "RegisterResponse",
    "TokenResponse",
    "UserCreate",
    "UserResponse",
]
