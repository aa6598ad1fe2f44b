"""
Domain subpackage for pending actions.
"""

from .models import PENDING_ACTIONS, PendingAction, PendingActionError

__all__ = ["PENDING_ACTIONS", "PendingAction", "PendingActionError"]
