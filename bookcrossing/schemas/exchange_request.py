"""
Exchange Request Pydantic Schemas
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ExchangeRequestCreate(BaseModel):
    """
    Schema for POST /exchange-requests.

    The sender is always the caller. Neither id is checked for existence.
    """

    book_id: int = Field(..., examples=[123])
    recipient_id: int = Field(..., examples=[456])


class ExchangeRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    book_id: int
    sender_id: int
    recipient_id: int
    status: str
    created_at: datetime | None = None
