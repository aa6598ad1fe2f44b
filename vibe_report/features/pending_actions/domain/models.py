"""
Domain models for actions deferred until the caller signs in.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

ActionName = Literal["share", "purchase"]
PENDING_ACTIONS: tuple[str, ...] = ("share", "purchase")


class PendingActionError(Exception):
    """Raised when a pending action cannot be stored or decoded."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.recoverable = recoverable


@dataclass(frozen=True, slots=True)
class PendingAction:
    action: ActionName
    params: dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str) -> "PendingAction":
        try:
            data = json.loads(raw)
            action = data["action"]
        except (ValueError, KeyError, TypeError) as e:
            raise PendingActionError(f"Corrupt pending action: {e}", recoverable=False) from e

        if action not in PENDING_ACTIONS:
            raise PendingActionError(f"Unknown pending action: {action}", recoverable=False)
        return cls(
            action=action,
            params=dict(data.get("params") or {}),
            created_at=data.get("created_at") or "",
        )
