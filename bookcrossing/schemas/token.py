"""
Token Validation Schemas

Wire format of POST /validate, shared by the identity service (which
answers it) and the remote credential verifier (which calls it).
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TokenValidationRequest(BaseModel):
    """
    Body of POST /validate.

    The token may be raw or carry a "Bearer " prefix. A missing or
    non-string token is simply invalid, never an error.
    """

    token: Any = Field(default=None, description="Bearer token to check")


class TokenUser(BaseModel):
    """Identity claims carried inside a token."""

    model_config = ConfigDict(extra="allow")

    id: int
    username: str


class TokenValidation(BaseModel):
    """
    Result of validating a token.

    user is only present when valid is True.
    """

    valid: bool
    user: TokenUser | None = None
