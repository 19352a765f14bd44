"""
Authentication Router (identity service)

Handles:
- Registration (username/password/email -> token + user)
- Login (username/password -> token)
- Token validation for the other services

Security:
=========
- Passwords are hashed with bcrypt before storage
- Plain text passwords are never logged or stored
- Tokens expire after one hour (ACCESS_TOKEN_EXPIRE_MINUTES)
- Login failures do not reveal whether the username exists
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Body, HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from bookcrossing.dependencies import DbSession, Notifier, TokenIssuer, UserQueue
from bookcrossing.models.user import User
from bookcrossing.schemas.token import TokenValidation, TokenValidationRequest
from bookcrossing.schemas.user import (
    LoginRequest,
    RegisterResponse,
    TokenResponse,
    UserCreate,
    UserResponse,
)
from bookcrossing.services.events import Event, EventType
from bookcrossing.services.security import hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Authentication"],
    responses={
        400: {"description": "User already exists"},
        401: {"description": "Invalid credentials"},
    },
)

USER_EXISTS = "User already exists"
INVALID_CREDENTIALS = "Invalid credentials"


# -------------------------------------------------------------------------
# Registration Endpoint
# -------------------------------------------------------------------------
@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
def register(
    user_data: UserCreate,
    db: DbSession,
    issuer: TokenIssuer,
    user_queue: UserQueue,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> RegisterResponse:
    """
    Register a new user.

    1. Rejects a username or email that is already taken
    2. Hashes the password with bcrypt
    3. Creates the user record and issues a token
    4. After the response: enqueues USER_CREATED and notifies live clients
    """
    stmt = select(User).where(
        or_(User.username == user_data.username, User.email == user_data.email)
    )
    if db.execute(stmt).first() is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=USER_EXISTS,
        )

    user = User(
        username=user_data.username,
        email=user_data.email,
        hashed_password=hash_password(user_data.password),
        full_name=user_data.full_name,
        city=user_data.city,
    )

    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=USER_EXISTS,
        )
    db.refresh(user)

    logger.info(f"New user registered: {user.username} (id={user.id})")

    user_response = UserResponse.model_validate(user)
    user_data_json = user_response.model_dump(mode="json")

    background_tasks.add_task(
        user_queue.publish, Event(EventType.USER_CREATED, user_data_json)
    )
    background_tasks.add_task(
        notifier.notify, "registration_success", {"user": user_data_json}
    )

    return RegisterResponse(
        token=issuer.issue(user.id, user.username),
        user=user_response,
    )


# -------------------------------------------------------------------------
# Login Endpoint
# -------------------------------------------------------------------------
@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login with username and password",
    description="""
    Authenticate with username and password to receive a bearer token.

    **Usage:**
    Include the token in the Authorization header:
    ```
    Authorization: Bearer <token>
    ```
    """,
)
def login(
    credentials: LoginRequest,
    db: DbSession,
    issuer: TokenIssuer,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> TokenResponse:
    """Authenticate a user. Unknown user and wrong password answer alike."""
    stmt = select(User).where(User.username == credentials.username)
    user = db.execute(stmt).scalar_one_or_none()

    if user is None or not verify_password(credentials.password, user.hashed_password):
        logger.warning(f"Login failed for username '{credentials.username}'")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS,
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"User logged in: {user.username}")

    background_tasks.add_task(
        notifier.notify,
        "authentication_success",
        {"user": UserResponse.model_validate(user).model_dump(mode="json")},
    )

    return TokenResponse(token=issuer.issue(user.id, user.username))


# -------------------------------------------------------------------------
# Token Validation Endpoint
# -------------------------------------------------------------------------
@router.post(
    "/validate",
    response_model=TokenValidation,
    response_model_exclude_none=True,
    summary="Validate a bearer token",
    description="Used by the catalog and exchange services. Never fails; "
    "an unusable token answers {\"valid\": false}.",
)
def validate(
    issuer: TokenIssuer,
    body: TokenValidationRequest | None = Body(default=None),
) -> TokenValidation:
    if body is None:
        return TokenValidation(valid=False)
    return issuer.verify(body.token)
