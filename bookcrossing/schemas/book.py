"""
Book Pydantic Schemas
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class BookCreate(BaseModel):
    """Schema for POST /books. The owner is always the caller."""

    title: str = Field(..., min_length=1, examples=["1984"])
    author: str = Field(..., min_length=1, examples=["George Orwell"])


class BookStatusUpdate(BaseModel):
    """
    Schema for PUT /books/{id}/status.

    Any string up to the column width is accepted; "available" and
    "exchanged" are only conventions.
    """

    status: str = Field(..., max_length=20, examples=["exchanged"])


class BookResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    author: str
    owner_id: int
    status: str
    created_at: datetime | None = None
