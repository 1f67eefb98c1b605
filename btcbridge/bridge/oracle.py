"""
Oracle attestation collaborator.

Real verification that a Bitcoin transaction exists and is confirmed is
outside the bridge. The engine only asks the collaborator to confirm a
deposit claimed by an already-authorized oracle; a refusal aborts the
deposit with ``OracleValidationFailedError``.
"""

from typing import Dict, Protocol, Set, Tuple, runtime_checkable

from ..logger import get_logger
from .types import Account, ExternalTxId

logger = get_logger(__name__)


@runtime_checkable
class AttestationService(Protocol):
    """Confirms (or refuses) a deposit claimed by an oracle."""

    def attest(self, oracle: Account, tx_id: ExternalTxId, amount: int) -> bool:
        ...


class MockAttestationService:
    """
    Stub attestation: every claim from an authorized oracle is accepted.

    Individual transaction ids can be marked as refused, which is how tests
    and local deployments simulate an attestation failure.
    """

    def __init__(self):
        self._refused: Set[ExternalTxId] = set()
        self._calls: Dict[ExternalTxId, Tuple[Account, int]] = {}

    def refuse(self, tx_id: ExternalTxId) -> None:
        self._refused.add(tx_id)

    def attest(self, oracle: Account, tx_id: ExternalTxId, amount: int) -> bool:
        self._calls[tx_id] = (oracle, amount)
        if tx_id in self._refused:
            logger.warning(f"Attestation refused for {tx_id[:16]}… claimed by {oracle}")
            return False
        return True

    @property
    def calls(self) -> Dict[ExternalTxId, Tuple[Account, int]]:
        return dict(self._calls)
