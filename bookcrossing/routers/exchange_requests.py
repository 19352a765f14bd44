"""
Exchange Requests Router (exchange service)

Endpoints:
- POST /exchange-requests - Propose an exchange (caller is the sender)
- GET /exchange-requests - Requests the caller sends or receives
- PUT /exchange-requests/{request_id}/approve - Recipient approves
- PUT /exchange-requests/{request_id}/complete - Sender or recipient completes
- PUT /exchange-requests/{request_id}/reject - Recipient rejects

A transition that matches no row answers 404 "Request not found or
unauthorized action". Whether the current status is checked depends on
EXCHANGE_STRICT_TRANSITIONS (see bookcrossing.services.exchange).
"""

from collections.abc import Callable

from fastapi import APIRouter, BackgroundTasks, status
from sqlalchemy.orm import Session

from bookcrossing.config import Settings
from bookcrossing.dependencies import AppSettings, DbSession, Notifier, RemoteUser
from bookcrossing.models.exchange_request import ExchangeRequest
from bookcrossing.schemas.exchange_request import (
    ExchangeRequestCreate,
    ExchangeRequestResponse,
)
from bookcrossing.schemas.token import TokenUser
from bookcrossing.services import exchange
from bookcrossing.services.websocket import LiveNotifier

# =============================================================================
# Router Configuration
# =============================================================================

router = APIRouter(
    prefix="/exchange-requests",
    tags=["Exchange Requests"],
    responses={
        401: {"description": "No token provided or invalid token"},
        503: {"description": "Authentication service unavailable"},
    },
)

Transition = Callable[[Session, int, int, bool], ExchangeRequest]


# =============================================================================
# Helper Functions
# =============================================================================


def _respond(
    request: ExchangeRequest,
    event: str,
    notifier: LiveNotifier,
    background_tasks: BackgroundTasks,
) -> ExchangeRequestResponse:
    response = ExchangeRequestResponse.model_validate(request)
    background_tasks.add_task(
        notifier.notify, event, {"request": response.model_dump(mode="json")}
    )
    return response


def _run_transition(
    transition: Transition,
    event: str,
    request_id: int,
    current_user: TokenUser,
    db: Session,
    settings: Settings,
    notifier: LiveNotifier,
    background_tasks: BackgroundTasks,
) -> ExchangeRequestResponse:
    request = transition(
        db,
        current_user.id,
        request_id,
        settings.exchange_strict_transitions,
    )
    return _respond(request, event, notifier, background_tasks)


# =============================================================================
# Endpoints
# =============================================================================


@router.post(
    "",
    response_model=ExchangeRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an exchange request",
)
def create_exchange_request(
    request_data: ExchangeRequestCreate,
    current_user: RemoteUser,
    db: DbSession,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ExchangeRequestResponse:
    """Always stored as "pending"; the book and recipient ids are not checked."""
    request = exchange.create_request(
        db,
        sender_id=current_user.id,
        book_id=request_data.book_id,
        recipient_id=request_data.recipient_id,
    )
    return _respond(request, "exchange_request_created", notifier, background_tasks)


@router.get(
    "",
    response_model=list[ExchangeRequestResponse],
    summary="List my exchange requests",
)
def get_exchange_requests(
    current_user: RemoteUser,
    db: DbSession,
) -> list[ExchangeRequestResponse]:
    requests = exchange.list_requests_for_user(db, current_user.id)
    return [ExchangeRequestResponse.model_validate(r) for r in requests]


@router.put(
    "/{request_id}/approve",
    response_model=ExchangeRequestResponse,
    summary="Approve an exchange request",
    responses={404: {"description": "Request not found or unauthorized action"}},
)
def approve_exchange_request(
    request_id: int,
    current_user: RemoteUser,
    db: DbSession,
    settings: AppSettings,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ExchangeRequestResponse:
    return _run_transition(
        exchange.approve_request, "exchange_approved",
        request_id, current_user, db, settings, notifier, background_tasks,
    )


@router.put(
    "/{request_id}/complete",
    response_model=ExchangeRequestResponse,
    summary="Complete an exchange",
    responses={404: {"description": "Request not found or unauthorized action"}},
)
def complete_exchange_request(
    request_id: int,
    current_user: RemoteUser,
    db: DbSession,
    settings: AppSettings,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ExchangeRequestResponse:
    return _run_transition(
        exchange.complete_request, "exchange_completed",
        request_id, current_user, db, settings, notifier, background_tasks,
    )


@router.put(
    "/{request_id}/reject",
    response_model=ExchangeRequestResponse,
    summary="Reject an exchange request",
    responses={404: {"description": "Request not found or unauthorized action"}},
)
def reject_exchange_request(
    request_id: int,
    current_user: RemoteUser,
    db: DbSession,
    settings: AppSettings,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> ExchangeRequestResponse:
    return _run_transition(
        exchange.reject_request, "exchange_rejected",
        request_id, current_user, db, settings, notifier, background_tasks,
    )
