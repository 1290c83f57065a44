"""
Pydantic schemas for in-app notifications.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from app.schemas.common import CamelModel


class Notification(CamelModel):
    id: int
    title: str
    message: str
    type: str
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: Optional[datetime] = None
