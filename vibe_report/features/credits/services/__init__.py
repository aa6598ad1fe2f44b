"""
Service layer for credit accounts.
"""

from .ledger_service import (
    consume_credit,
    get_account,
    grant_credit,
    has_credit,
)

__all__ = [
    "consume_credit",
    "get_account",
    "grant_credit",
    "has_credit",
]
