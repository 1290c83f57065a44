"""Schemas module."""
from app.schemas.common import Message, ErrorResponse, SuccessResponse

__all__ = [
    "Message",
    "ErrorResponse",
    "SuccessResponse",
]
