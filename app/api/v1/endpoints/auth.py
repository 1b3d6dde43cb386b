"""Authentication endpoints."""

from fastapi import APIRouter, status

from app.dependencies import CacheManagerDep, DatabaseSession
from app.schemas.auth import FirebaseAuthRequest, LoginResponse, SignupRequest, Token, TokenRefresh
from app.services.auth_service import AuthService

router = APIRouter()


@router.post(
    "/firebase/verify",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Firebase ID token verification",
)
async def firebase_verify(
    request: FirebaseAuthRequest,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> LoginResponse:
    """
    Exchange a Firebase ID token for API tokens.

    The web client signs in with Firebase and posts the resulting ID token.
    If the uid has no profile yet the response has ``needs_signup`` set and
    carries no tokens; the client then calls ``/auth/signup``.
    """
    return await AuthService(db, cache_manager).login(request.id_token)


@router.post(
    "/signup",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Create the caller's profile",
)
async def signup(
    request: SignupRequest,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> LoginResponse:
    """
    Create a profile for a verified Firebase identity with a chosen username.

    Signing up again with the same identity returns the existing profile.
    """
    return await AuthService(db, cache_manager).signup(request.id_token, request.username)


@router.post(
    "/refresh",
    response_model=Token,
    status_code=status.HTTP_200_OK,
    summary="Refresh access token",
)
async def refresh_token(
    request: TokenRefresh,
    db: DatabaseSession,
) -> Token:
    """Issue a new token pair from a refresh token."""
    return AuthService(db).refresh_access_token(request.refresh_token)
