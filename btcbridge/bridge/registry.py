"""
Owner-managed account flag maps: oracle authority and recipient whitelist.

Both maps are total functions ``Account -> bool`` defaulting to False.
Revoking an entry writes False; entries are never deleted, so an absent
account and an explicitly revoked one read the same.
"""

from typing import Dict, List

from ..exceptions import InvalidRecipientError
from ..logger import get_logger
from .access import AccessGuard
from .types import Account, is_valid_account

logger = get_logger(__name__)


class AccountFlagMap:
    """Boolean flag per account, written only by the owner."""

    label = "account"

    def __init__(self, guard: AccessGuard):
        self._guard = guard
        self._flags: Dict[Account, bool] = {}

    def get(self, account: Account) -> bool:
        return self._flags.get(account, False)

    def set(self, caller: Account, account: Account, value: bool) -> None:
        """
        Write the flag for *account*.

        Raises:
            NotAuthorizedError: caller is not the owner
            InvalidRecipientError: account is null or equals the caller
        """
        self._guard.require_owner(caller)
        if not is_valid_account(account, caller):
            raise InvalidRecipientError(f"Invalid {self.label} account: {account!r}")
        self._flags[account] = bool(value)
        logger.info(f"{self.label} {account} set to {bool(value)} by {caller}")

    def enabled_accounts(self) -> List[Account]:
        return [a for a, v in self._flags.items() if v]

    # ── Snapshot / restore ────────────────────────────────────────────

    def to_dict(self) -> Dict[Account, bool]:
        return dict(self._flags)

    def load(self, flags: Dict[Account, bool]) -> None:
        self._flags = {a: bool(v) for a, v in flags.items()}

    def __len__(self) -> int:
        return len(self._flags)


class OracleRegistry(AccountFlagMap):
    """Accounts allowed to assert that a Bitcoin deposit happened."""

    label = "oracle"

    def set_oracle(self, caller: Account, oracle: Account, authorized: bool) -> None:
        self.set(caller, oracle, authorized)

    def is_authorized(self, account: Account) -> bool:
        return self.get(account)


class Whitelist(AccountFlagMap):
    """Accounts eligible to receive deposits. Withdrawers are not gated."""

    label = "whitelist"

    def set_whitelisted(self, caller: Account, account: Account, allowed: bool) -> None:
        self.set(caller, account, allowed)

    def is_whitelisted(self, account: Account) -> bool:
        return self.get(account)
