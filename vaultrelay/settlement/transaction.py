"""
UnitOfWork — explicit all-or-nothing settlement.

    with UnitOfWork([tokens, account, ledger, oracle, log, guard]):
        ...every mutation of the settlement...

On entry a savepoint is taken from every participant. If the block
raises, every participant is rolled back in reverse order and the
exception propagates unchanged. If the block completes, participants
commit in list order. When a commit fails, the participants that
already committed are asked to revert_commit(), then everyone is rolled
back and the commit error propagates.

A participant whose commit cannot be reverted (the consumed store) must
be listed last.
"""

import logging
from typing import Any, List, Sequence, Tuple

from vaultrelay.collaborators.interfaces import Transactional

logger = logging.getLogger(__name__)


class UnitOfWork:

    def __init__(self, participants: Sequence[Transactional]) -> None:
        self._participants: List[Transactional] = list(participants)
        self._savepoints:   List[Tuple[Transactional, Any]] = []

    def __enter__(self) -> "UnitOfWork":
        self._savepoints = [(p, p.savepoint()) for p in self._participants]
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self._rollback()
            logger.debug("unit of work rolled back: %s", exc_type.__name__)
            return False

        committed: List[Transactional] = []
        try:
            for participant in self._participants:
                participant.commit()
                committed.append(participant)
        except Exception as commit_exc:
            logger.warning(
                "commit failed after %d participant(s): %s",
                len(committed), commit_exc,
            )
            for participant in reversed(committed):
                participant.revert_commit()
            self._rollback()
            raise
        return False

    def _rollback(self) -> None:
        for participant, token in reversed(self._savepoints):
            participant.rollback(token)
