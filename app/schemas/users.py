"""User profile schemas for request/response validation."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProfileLink(BaseModel):
    """A titled link shown on a profile."""

    title: str = Field(..., min_length=1, max_length=100)
    url: str = Field(..., min_length=1, max_length=2048)


class IdentityInfo(BaseModel):
    """Identity data yielded by the identity provider for a uid."""

    uid: str
    email: str = ""
    display_name: str | None = None
    photo_url: str | None = None


class UserCreate(BaseModel):
    """Schema for creating a profile on first sign-up."""

    username: str = Field(..., min_length=3, max_length=32)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Usernames are trimmed and may not contain whitespace."""
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Username must be at least 3 characters long")
        if any(ch.isspace() for ch in v):
            raise ValueError("Username cannot contain spaces")
        return v


class UserUpdate(BaseModel):
    """Schema for updating a profile. Only provided fields are written."""

    username: str | None = Field(None, min_length=3, max_length=32)
    display_name: str | None = Field(None, min_length=1, max_length=100)
    pronouns: str | None = Field(None, max_length=40)
    bio: str | None = Field(None, max_length=500)
    links: list[ProfileLink] | None = None
    banner_color: str | None = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str | None) -> str | None:
        """Trim the requested username."""
        return v.strip() if v is not None else v


class UserResponse(BaseModel):
    """Full profile, returned to its owner and to other users."""

    model_config = ConfigDict(from_attributes=True)

    uid: str
    email: str
    username: str
    display_name: str
    photo_url: str | None = None
    banner_color: str
    bio: str | None = None
    pronouns: str | None = None
    links: list[ProfileLink] = Field(default_factory=list)
    created_at: datetime
    last_seen: datetime


class UserSummary(BaseModel):
    """Search result entry."""

    model_config = ConfigDict(from_attributes=True)

    uid: str
    username: str
    display_name: str
    photo_url: str | None = None
