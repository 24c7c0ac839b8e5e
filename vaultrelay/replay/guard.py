"""
ReplayGuard — single-use enforcement for authorizations.

Within a settlement, consume() only STAGES a key. Staged keys are
visible to is_consumed() immediately, but reach the backing store only
on commit(). rollback() discards them, leaving the signature unconsumed
as if the settlement never ran.
"""

import hashlib
import logging
from typing import List, Optional

from vaultrelay.collaborators.interfaces import Transactional
from vaultrelay.core.exceptions import ReplayInvariantError
from vaultrelay.replay.store import ConsumedStore, MemoryConsumedStore

logger = logging.getLogger(__name__)


def signature_key(signature: bytes) -> str:
    """Fixed-size store key for a signature of any length."""
    return hashlib.sha256(bytes(signature)).hexdigest()


class ReplayGuard(Transactional):
    """
    Owns the consumed-signature set.

    Committed keys are permanent, so a unit of work must commit the
    guard after every other participant.
    """

    def __init__(self, store: Optional[ConsumedStore] = None):
        self.store = store if store is not None else MemoryConsumedStore()
        self._staged: List[str] = []

    def is_consumed(self, signature: bytes) -> bool:
        key = signature_key(signature)
        return key in self._staged or self.store.contains(key)

    def consume(self, signature: bytes) -> None:
        """
        Stage signature as consumed.

        Raises ReplayInvariantError if it is already consumed or staged.
        Callers check is_consumed() first in the same unit of work, so
        reaching that branch means the orchestrator is broken.
        """
        key = signature_key(signature)
        if key in self._staged or self.store.contains(key):
            raise ReplayInvariantError(
                "Signature consumed twice", {"key": key[:16]}
            )
        self._staged.append(key)

    # ── Unit of work participation ────────────────────────────

    def savepoint(self) -> int:
        return len(self._staged)

    def rollback(self, token: int) -> None:
        dropped = len(self._staged) - token
        del self._staged[token:]
        if dropped:
            logger.debug("discarded %d staged consumption(s)", dropped)

    def commit(self) -> None:
        for key in self._staged:
            self.store.add(key)
        self._staged.clear()

    def revert_commit(self) -> None:
        logger.warning("consumed keys cannot be reverted; guard must commit last")

    def __len__(self) -> int:
        return len(self.store)
