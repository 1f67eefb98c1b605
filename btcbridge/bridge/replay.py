"""
Replay protection keyed by the external (Bitcoin) transaction id.
"""

from typing import Iterable, List, Set

from .types import ExternalTxId


class ReplayGuard:
    """
    Write-once set of consumed transaction ids.

    ``mark_processed`` does not reject re-marking; the engine checks
    ``is_processed`` inside the same atomic transition before marking.
    """

    def __init__(self):
        self._processed: Set[ExternalTxId] = set()

    def is_processed(self, tx_id: ExternalTxId) -> bool:
        return tx_id in self._processed

    def mark_processed(self, tx_id: ExternalTxId) -> None:
        self._processed.add(tx_id)

    @property
    def count(self) -> int:
        return len(self._processed)

    # ── Snapshot / restore ────────────────────────────────────────────

    def snapshot(self) -> Set[ExternalTxId]:
        return set(self._processed)

    def to_list(self) -> List[ExternalTxId]:
        return sorted(self._processed)

    def load(self, tx_ids: Iterable[ExternalTxId]) -> None:
        self._processed = set(tx_ids)
