"""
Domain models for credit accounts.
"""

from dataclasses import dataclass
from typing import Literal

IdentityKind = Literal["user", "guest"]


class CreditLedgerError(Exception):
    """Raised when a balance cannot be read or changed."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.recoverable = recoverable


class AccountNotFoundError(CreditLedgerError):
    """Raised when a grant targets an account that does not exist."""

    def __init__(self, user_id: str):
        super().__init__(f"Account not found: {user_id}", recoverable=False)
        self.user_id = user_id


@dataclass(frozen=True, slots=True)
class AccountIdentity:
    """Who is asking: a signed-in user or an anonymous guest."""

    kind: IdentityKind
    id: str
    email: str | None = None

    @property
    def is_guest(self) -> bool:
        return self.kind == "guest"

    @property
    def lock_key(self) -> str:
        return f"{self.kind}:{self.id}"


@dataclass(frozen=True, slots=True)
class CreditAccount:
    identity: AccountIdentity
    balance: int


@dataclass(frozen=True, slots=True)
class GrantResult:
    """Outcome of crediting a confirmed payment."""

    user_id: str
    credits_added: int
    new_balance: int | None
    duplicate: bool = False
