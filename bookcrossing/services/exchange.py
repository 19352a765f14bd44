"""
Exchange Negotiation Service

The exchange-request lifecycle:

    pending -> approved -> completed
    pending -> rejected

Who may move a request:
- approve, reject: the recipient only
- complete: the sender or the recipient

Every transition is a single conditional UPDATE on (id, role). When it
matches no row the caller gets NotFoundOrUnauthorized: a missing request
and a request the caller has no role on look the same.

Prior-status check
==================
By default the UPDATE does not look at the current status, so approving
an already approved (or rejected, or completed) request succeeds again.
This keeps the behaviour existing clients rely on. With strict=True
(EXCHANGE_STRICT_TRANSITIONS=true) the UPDATE also requires the legal
prior status from LEGAL_PRIOR_STATUSES, and an illegal move fails with the
same not-found-class error.

Nothing above the database serializes concurrent transitions on one
request: two simultaneous approvals both succeed, last write wins.
"""

import logging

from sqlalchemy import ColumnElement, or_, select, update
from sqlalchemy.orm import Session

from bookcrossing.errors import NotFoundOrUnauthorized
from bookcrossing.models.exchange_request import ExchangeRequest, ExchangeStatus

logger = logging.getLogger(__name__)

REQUEST_NOT_FOUND = "Request not found or unauthorized action"

LEGAL_PRIOR_STATUSES: dict[ExchangeStatus, frozenset[ExchangeStatus]] = {
    ExchangeStatus.APPROVED: frozenset({ExchangeStatus.PENDING}),
    ExchangeStatus.REJECTED: frozenset({ExchangeStatus.PENDING}),
    ExchangeStatus.COMPLETED: frozenset({ExchangeStatus.APPROVED}),
}


def create_request(db: Session, sender_id: int, book_id: int, recipient_id: int) -> ExchangeRequest:
    """
    Insert a pending request.

    The book and the recipient are not looked up: the ids are stored as
    given, whether or not they exist or the sender owns the book.
    """
    request = ExchangeRequest(
        book_id=book_id,
        sender_id=sender_id,
        recipient_id=recipient_id,
        status=ExchangeStatus.PENDING.value,
    )

    db.add(request)
    db.commit()
    db.refresh(request)

    logger.info(
        f"Exchange request {request.id} created: book {book_id} "
        f"from user {sender_id} to user {recipient_id}"
    )

    return request


def list_requests_for_user(db: Session, user_id: int) -> list[ExchangeRequest]:
    """Requests where the user is the sender or the recipient."""
    stmt = (
        select(ExchangeRequest)
        .where(
            or_(
                ExchangeRequest.sender_id == user_id,
                ExchangeRequest.recipient_id == user_id,
            )
        )
        .order_by(ExchangeRequest.id)
    )
    return list(db.execute(stmt).scalars().all())


def _transition(
    db: Session,
    request_id: int,
    target: ExchangeStatus,
    role_clause: ColumnElement[bool],
    strict: bool,
) -> ExchangeRequest:
    conditions = [ExchangeRequest.id == request_id, role_clause]
    if strict:
        allowed = [status.value for status in LEGAL_PRIOR_STATUSES[target]]
        conditions.append(ExchangeRequest.status.in_(allowed))

    stmt = (
        update(ExchangeRequest)
        .where(*conditions)
        .values(status=target.value)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)

    if result.rowcount == 0:
        db.rollback()
        raise NotFoundOrUnauthorized(REQUEST_NOT_FOUND)

    db.commit()

    request = db.get(ExchangeRequest, request_id, populate_existing=True)
    logger.info(f"Exchange request {request_id} is now {target.value}")

    return request


def approve_request(
    db: Session,
    recipient_id: int,
    request_id: int,
    strict: bool = False,
) -> ExchangeRequest:
    """Recipient approves the request."""
    return _transition(
        db,
        request_id,
        ExchangeStatus.APPROVED,
        ExchangeRequest.recipient_id == recipient_id,
        strict,
    )


def complete_request(
    db: Session,
    participant_id: int,
    request_id: int,
    strict: bool = False,
) -> ExchangeRequest:
    """Sender or recipient marks the exchange as done."""
    return _transition(
        db,
        request_id,
        ExchangeStatus.COMPLETED,
        or_(
            ExchangeRequest.sender_id == participant_id,
            ExchangeRequest.recipient_id == participant_id,
        ),
        strict,
    )


def reject_request(
    db: Session,
    recipient_id: int,
    request_id: int,
    strict: bool = False,
) -> ExchangeRequest:
    """Recipient turns the request down."""
    return _transition(
        db,
        request_id,
        ExchangeStatus.REJECTED,
        ExchangeRequest.recipient_id == recipient_id,
        strict,
    )
