"""
Domain subpackage for credit accounts.
"""

from .models import (
    AccountIdentity,
    AccountNotFoundError,
    CreditAccount,
    CreditLedgerError,
    GrantResult,
)

__all__ = [
    "AccountIdentity",
    "AccountNotFoundError",
    "CreditAccount",
    "CreditLedgerError",
    "GrantResult",
]
