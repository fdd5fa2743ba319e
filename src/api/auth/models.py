"""
Pydantic models for authentication requests and responses.
"""
from pydantic import BaseModel, Field
from typing import Optional


class LoginResponse(BaseModel):
    """Where the browser should go to sign in."""
    url: str = Field(..., description="Identity provider sign-in URL")
    provider: str


class SessionInfo(BaseModel):
    """Current session summary."""
    email: Optional[str] = None
    user_id: Optional[str] = None
    expires_at: Optional[int] = None
    allowed: bool = Field(..., description="Whether the email is on the allow list")


class MessageResponse(BaseModel):
    """Generic message response."""
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
