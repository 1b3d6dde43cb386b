"""User profile endpoints."""

from fastapi import APIRouter, HTTPException, Query, status

from app.dependencies import CacheManagerDep, CurrentUser, CurrentUserId, DatabaseSession
from app.schemas.users import UserResponse, UserSummary, UserUpdate
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(current_user: CurrentUser):
    """Get current user's profile."""
    return UserResponse.model_validate(current_user)


@router.patch("/me", response_model=UserResponse)
async def update_current_user_profile(
    user_data: UserUpdate,
    uid: CurrentUserId,
    cache_manager: CacheManagerDep,
    db: DatabaseSession,
):
    """
    Update current user's profile.

    Only the provided fields change. A username already used by someone
    else is rejected with 409.
    """
    user_service = UserService(db, cache_manager)
    result = await user_service.update_profile(uid, user_data)
    result.raise_for_error()

    user = await user_service.get_user_by_uid(uid, use_cache=False)
    return UserResponse.model_validate(user)


@router.get("/search", response_model=list[UserSummary])
async def search_users(
    uid: CurrentUserId,
    db: DatabaseSession,
    q: str = Query(..., min_length=1, max_length=100, description="Username, name or email"),
):
    """Search other users by username, display name or email."""
    users = await UserService(db).search_users(q, uid)
    return [UserSummary.model_validate(user) for user in users]


@router.get("/bulk", response_model=list[UserResponse])
async def get_users_bulk(
    uid: CurrentUserId,
    cache_manager: CacheManagerDep,
    db: DatabaseSession,
    uids: str = Query(..., description="Comma-separated uids"),
):
    """Resolve several profiles at once. Unknown uids are left out."""
    users = await UserService(db, cache_manager).get_users_by_uids(uids.split(","))
    return [UserResponse.model_validate(user) for user in users]


@router.get("/{user_uid}", response_model=UserResponse)
async def get_user_profile(
    user_uid: str,
    uid: CurrentUserId,
    cache_manager: CacheManagerDep,
    db: DatabaseSession,
):
    """Get another user's profile."""
    user = await UserService(db, cache_manager).get_user_by_uid(user_uid)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    return UserResponse.model_validate(user)
