"""Authentication schemas."""

from pydantic import BaseModel, Field

from app.schemas.users import UserCreate, UserResponse


class Token(BaseModel):
    """JWT token response schema."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefresh(BaseModel):
    """Token refresh request schema."""

    refresh_token: str


class FirebaseAuthRequest(BaseModel):
    """Firebase ID token authentication request."""

    id_token: str = Field(..., description="Firebase ID token from the web client")


class SignupRequest(FirebaseAuthRequest, UserCreate):
    """First sign-in: Firebase ID token plus the chosen username."""


class LoginResponse(BaseModel):
    """
    Login response.

    When the identity has no profile yet, ``needs_signup`` is set and no
    tokens are issued; the client must call the signup endpoint.
    """

    access_token: str | None = None
    refresh_token: str | None = None
    token_type: str = "bearer"
    needs_signup: bool = False
    user: UserResponse | None = None
