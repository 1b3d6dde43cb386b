"""API v1 router configuration."""

from fastapi import APIRouter

from app.api.v1.endpoints import (
    auth,
    conversations,
    groups,
    health,
    images,
    messages,
    users,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, tags=["Users"])
api_router.include_router(messages.router, tags=["Messages"])
api_router.include_router(images.router, tags=["Images"])
api_router.include_router(conversations.router, tags=["Conversations"])
api_router.include_router(groups.router, tags=["Groups"])
