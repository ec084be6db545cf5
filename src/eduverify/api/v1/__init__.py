"""API v1 module."""

from fastapi import APIRouter

from eduverify.api.v1.endpoints import redemptions, students

api_router = APIRouter()

# Include routers
api_router.include_router(redemptions.router)
api_router.include_router(students.router)
