"""Authentication module."""

from portal.modules.auth.router import router
from portal.modules.auth.schemas import LoginRequest, LoginResponse

__all__ = ["router", "LoginRequest", "LoginResponse"]
