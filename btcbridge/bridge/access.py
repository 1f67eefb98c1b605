"""
Single-owner access control for administrative bridge operations.
"""

from typing import TYPE_CHECKING, Optional

from ..exceptions import NotAuthorizedError
from .types import Account

if TYPE_CHECKING:
    from .state import BridgeState


class AccessGuard:
    """
    Owner check consulted at the top of every administrative operation.

    The owner is read from the bridge state on every call, so the guard never
    caches a stale owner.
    """

    def __init__(self, state: "BridgeState"):
        self._state = state

    @property
    def owner(self) -> Account:
        return self._state.owner

    def is_owner(self, caller: Optional[Account]) -> bool:
        return caller is not None and caller == self._state.owner

    def require_owner(self, caller: Optional[Account]) -> None:
        """Raise NotAuthorizedError unless *caller* is the owner."""
        if not self.is_owner(caller):
            raise NotAuthorizedError(f"{caller} is not the bridge owner")
