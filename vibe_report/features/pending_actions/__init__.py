"""
Pending actions feature package.

Share and purchase intents parked before sign-in and resumed once after.
"""

from .domain import PendingAction, PendingActionError  # noqa: F401
