"""
Users Router (identity service)

Endpoints:
- GET /users - List all users (authenticated)
- DELETE /delete-user/{user_id} - Delete an account (self only)

Business Rules:
- Password hashes are never returned
- A user can only delete their own account
- Books and exchange requests of a deleted user are left in place
"""

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, status
from sqlalchemy import select

from bookcrossing.dependencies import CurrentUser, DbSession, Notifier
from bookcrossing.models.user import User
from bookcrossing.schemas.user import MessageResponse, UserResponse

logger = logging.getLogger(__name__)

# =============================================================================
# Router Configuration
# =============================================================================

router = APIRouter(
    tags=["Users"],
    responses={
        401: {"description": "Access denied"},
        403: {"description": "Invalid token or not allowed"},
    },
)


@router.get(
    "/users",
    response_model=list[UserResponse],
    summary="List users",
)
def list_users(
    current_user: CurrentUser,
    db: DbSession,
) -> list[UserResponse]:
    stmt = select(User).order_by(User.id)
    users = db.execute(stmt).scalars().all()
    return [UserResponse.model_validate(u) for u in users]


@router.delete(
    "/delete-user/{user_id}",
    response_model=MessageResponse,
    summary="Delete own account",
    responses={404: {"description": "User not found"}},
)
def delete_user(
    user_id: int,
    current_user: CurrentUser,
    db: DbSession,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
) -> MessageResponse:
    """
    Delete the caller's own account.

    The self check comes before the lookup, so deleting someone else's id
    answers 403 whether or not that user exists.
    """
    if current_user.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not allowed to delete this user",
        )

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    db.delete(user)
    db.commit()

    logger.info(f"User {user_id} deleted their account")

    background_tasks.add_task(notifier.notify, "user_deleted", {"userId": user_id})

    return MessageResponse(message="User deleted successfully")
