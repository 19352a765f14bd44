"""
FastAPI Dependencies Module

Reusable components injected into route handlers with Depends().

Everything a handler needs beyond the request itself lives on app.state
and is put there by the application factory (bookcrossing.main):
- database: the service's Database (engine + session factory)
- settings: the Settings instance the app was built with
- verifier: LocalCredentialVerifier or RemoteCredentialVerifier
- notifier: the service's LiveNotifier
- broadcast / user_queue: event fabric primitives

Tests build the apps with in-memory replacements instead of overriding
module globals.

Authentication
==============
The bearer token is read from the Authorization header, either as
"Bearer <token>" or as the raw token.

- Identity service: verifies locally. No header -> 401, bad token -> 403.
- Catalog / exchange: verify through the identity service. No header ->
  401, bad token -> 401, identity service unreachable -> 503.
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from bookcrossing.config import Settings
from bookcrossing.database import get_db
from bookcrossing.schemas.token import TokenUser
from bookcrossing.services.events import BroadcastChannel, DurableQueue
from bookcrossing.services.security import strip_bearer
from bookcrossing.services.verifier import LocalCredentialVerifier, RemoteCredentialVerifier
from bookcrossing.services.websocket import LiveNotifier

# =============================================================================
# Type Aliases with Annotated
# =============================================================================
DbSession = Annotated[Session, Depends(get_db)]


# =============================================================================
# App State Accessors
# =============================================================================
def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_notifier(request: Request) -> LiveNotifier:
    return request.app.state.notifier


def get_broadcast(request: Request) -> BroadcastChannel:
    return request.app.state.broadcast


def get_user_queue(request: Request) -> DurableQueue:
    return request.app.state.user_queue


def get_verifier(request: Request) -> LocalCredentialVerifier | RemoteCredentialVerifier:
    return request.app.state.verifier


AppSettings = Annotated[Settings, Depends(get_app_settings)]
Notifier = Annotated[LiveNotifier, Depends(get_notifier)]
Broadcast = Annotated[BroadcastChannel, Depends(get_broadcast)]
UserQueue = Annotated[DurableQueue, Depends(get_user_queue)]
TokenIssuer = Annotated[LocalCredentialVerifier, Depends(get_verifier)]


# =============================================================================
# Bearer Token Extraction
# =============================================================================
def get_bearer_token(
    authorization: str | None = Header(default=None),
) -> str | None:
    """Return the raw token from the Authorization header, if any."""
    return strip_bearer(authorization)


# =============================================================================
# Identity Service Authentication (local verification)
# =============================================================================
def get_current_user(
    token: str | None = Depends(get_bearer_token),
    verifier: LocalCredentialVerifier = Depends(get_verifier),
) -> TokenUser:
    """
    Authenticate a request to the identity service.

    Raises:
        HTTPException: 401 if no token was sent, 403 if it is invalid
    """
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access denied",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = verifier.verify(token)
    if not result.valid:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid token",
        )

    return result.user


# =============================================================================
# Catalog / Exchange Authentication (remote verification)
# =============================================================================
async def get_remote_user(
    token: str | None = Depends(get_bearer_token),
    verifier: RemoteCredentialVerifier = Depends(get_verifier),
) -> TokenUser:
    """
    Authenticate a request by asking the identity service.

    VerifierUnavailableError propagates to the app's exception handler,
    which answers 503.

    Raises:
        HTTPException: 401 if no token was sent or the token is invalid
    """
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await verifier.validate(token)
    if not result.valid or result.user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return result.user


CurrentUser = Annotated[TokenUser, Depends(get_current_user)]
RemoteUser = Annotated[TokenUser, Depends(get_remote_user)]
