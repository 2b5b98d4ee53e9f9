"""
Accounts module - portal identities and their lifecycle status.
"""

from portal.modules.accounts.models import Account, AccountRole, AccountStatus
from portal.modules.accounts.repository import AccountRepository

__all__ = ["Account", "AccountRole", "AccountStatus", "AccountRepository"]
