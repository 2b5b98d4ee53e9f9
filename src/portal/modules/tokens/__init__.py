"""
Tokens module - single-use email verification and password reset tokens.
"""

from portal.modules.tokens.issuer import IssuedToken, TokenIssuer
from portal.modules.tokens.models import SecurityToken, TokenPurpose
from portal.modules.tokens.repository import TokenRepository

__all__ = ["IssuedToken", "SecurityToken", "TokenIssuer", "TokenPurpose", "TokenRepository"]
