"""
Dependency injection for FastAPI endpoints.
"""
from typing import Generator, Optional, cast

from fastapi import BackgroundTasks, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import decode_token
from app.db.base import SessionLocal
from app.models.user import User
from app.services.contest_repository import ContestRepository
from app.services.contest_service import ContestService
from app.services.mail import get_mail_service
from app.services.notification_service import NotificationService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_PREFIX}/auth/login")


def get_db() -> Generator:
    """
    Dependency for database session.

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    db: Session = Depends(get_db), token: str = Depends(oauth2_scheme)
) -> User:
    """
    Get current authenticated user from JWT token.

    Raises:
        HTTPException: If token is invalid or user not found
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(token)
    if payload is None:
        raise credentials_exception
    user_id: Optional[str] = payload.get("sub")
    if user_id is None or not user_id.isdigit():
        raise credentials_exception

    user = db.query(User).filter(User.id == int(user_id)).first()
    if user is None:
        raise credentials_exception

    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """
    Get current active user.

    Raises:
        HTTPException: If user is inactive
    """
    if not cast(bool, current_user.is_active):
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


def require_staff(current_user: User = Depends(get_current_active_user)) -> User:
    """Moderators and admins only."""
    if not current_user.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Moderator or admin access required",
        )
    return current_user


def require_admin(current_user: User = Depends(get_current_active_user)) -> User:
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


def get_contest_repository(db: Session = Depends(get_db)) -> ContestRepository:
    return ContestRepository(db)


def get_notification_service(
    background_tasks: BackgroundTasks, db: Session = Depends(get_db)
) -> NotificationService:
    return NotificationService(db, mail=get_mail_service(), background_tasks=background_tasks)


def get_contest_service(
    repository: ContestRepository = Depends(get_contest_repository),
    notifications: NotificationService = Depends(get_notification_service),
) -> ContestService:
    return ContestService(repository, notifications)
