"""API v1 router."""
from fastapi import APIRouter

from app.api.v1 import auth, contests, notifications, questions

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(questions.router, prefix="/questions", tags=["Question Bank"])
api_router.include_router(contests.router, prefix="/contests", tags=["Contests"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
