"""
User Pydantic Schemas

Schemas:
- UserCreate: Registration data
- LoginRequest: Username/password pair
- UserResponse: Public user data (never exposes the password hash)
- RegisterResponse / TokenResponse: Results of register and login
- MessageResponse: Plain confirmation message
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserCreate(BaseModel):
    """Schema for user registration."""

    username: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Unique login name",
        examples=["john_doe"],
    )

    password: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="Plain text password (hashed before storage)",
        examples=["securepassword123"],
    )

    email: EmailStr = Field(
        ...,
        description="Unique email address",
        examples=["john@example.com"],
    )

    full_name: str | None = Field(
        default=None,
        max_length=100,
        examples=["John Doe"],
    )

    city: str | None = Field(
        default=None,
        max_length=50,
        examples=["Moscow"],
    )


class LoginRequest(BaseModel):
    """Schema for POST /login."""

    username: str = Field(..., examples=["john_doe"])
    password: str = Field(..., examples=["securepassword123"])


class UserResponse(BaseModel):
    """
    Schema for user data in API responses.

    from_attributes=True lets it be built straight from a User model.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    full_name: str | None = None
    city: str | None = None
    created_at: datetime | None = None


class RegisterResponse(BaseModel):
    """Returned by POST /register: a token plus the created user."""

    token: str
    user: UserResponse


class TokenResponse(BaseModel):
    """Returned by POST /login."""

    token: str


class MessageResponse(BaseModel):
    message: str
