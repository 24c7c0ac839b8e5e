"""
vaultrelay/ledger/observations.py

Observation Log — audit trail of settlement and value-receipt events.

Contract — record() MUST, in this order:
  1. Create the Observation via Observation.create(..., prev=last)
  2. Sign it with the engine key
  3. Append it to the pending buffer

commit() appends and fsyncs every pending observation to the JSONL file
and only then advances the chain state. rollback() discards pending
observations. revert_commit() truncates the file back to where the last
commit began, for a settlement whose later participant failed to commit.
An observation is never visible outside the engine unless the
settlement that produced it completed.

With ledger_path=None the log is memory-only.
"""

import json
import logging
import os
import threading
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

from vaultrelay.collaborators.interfaces import Transactional
from vaultrelay.core.crypto import Ed25519KeyManager
from vaultrelay.core.exceptions import StoreError
from vaultrelay.core.models import GENESIS_HASH, Observation

logger = logging.getLogger(__name__)


class ObservationLog(Transactional):
    """
    Hash-chained, signed, append-only observation log.

    Chain state:
        _sequence  — next sequence number to assign
        _last      — last committed observation (or None)
        _pending   — observations recorded in the open unit of work
    """

    def __init__(
        self,
        key_manager: Ed25519KeyManager,
        ledger_path: Optional[Path] = None,
    ) -> None:
        self.key_manager = key_manager

        self._lock:      threading.Lock        = threading.Lock()
        self._sequence:  int                   = 0
        self._last:      Optional[Observation] = None
        self._pending:   List[Observation]     = []
        self._committed: List[Observation]     = []
        self._undo:      Optional[tuple]       = None

        self._ledger_file: Optional[Path] = None
        if ledger_path is not None:
            self._ledger_file = Path(ledger_path)
            self._ledger_file.parent.mkdir(parents=True, exist_ok=True)
            self._restore_state()

    # ── Public API ────────────────────────────────────────────

    def record(self, event: str, payload: Dict[str, Any]) -> Observation:
        """Create, sign and stage one observation. Visible after commit()."""
        with self._lock:
            prev = self._pending[-1] if self._pending else self._last
            observation = Observation.create(
                event=             event,
                payload=           payload,
                signer_public_key= self.key_manager.public_key_hex,
                sequence=          self._sequence + len(self._pending),
                prev=              prev,
            ).sign(self.key_manager)
            self._pending.append(observation)
            return observation

    @property
    def entries(self) -> List[Observation]:
        """Committed observations recorded by this instance."""
        return list(self._committed)

    def __len__(self) -> int:
        return self._sequence

    def get_stats(self) -> Dict[str, Any]:
        return {
            "next_sequence":    self._sequence,
            "last_record_id":   self._last.record_id if self._last else None,
            "last_causal_hash": (
                Observation.chain_hash(self._last) if self._last else GENESIS_HASH
            ),
            "ledger_file":      str(self._ledger_file) if self._ledger_file else None,
            "signer":           self.key_manager.public_key_hex,
        }

    # ── Unit of work participation ────────────────────────────

    def savepoint(self) -> int:
        return len(self._pending)

    def rollback(self, token: int) -> None:
        with self._lock:
            del self._pending[token:]

    def commit(self) -> None:
        with self._lock:
            self._undo = None
            if not self._pending:
                return
            offset = self._append(self._pending) if self._ledger_file is not None else None
            self._undo = (offset, self._sequence, self._last, len(self._committed))
            self._sequence += len(self._pending)
            self._last      = self._pending[-1]
            self._committed.extend(self._pending)
            self._pending   = []

    def revert_commit(self) -> None:
        """Truncate the file and chain state back to before the last commit()."""
        with self._lock:
            if self._undo is None:
                return
            offset, sequence, last, committed = self._undo
            self._undo = None
            if offset is not None:
                self._truncate(offset)
            self._sequence = sequence
            self._last     = last
            del self._committed[committed:]
            logger.info("observation log reverted to sequence %d", sequence)

    # ── Internal ──────────────────────────────────────────────

    def _append(self, observations: List[Observation]) -> int:
        """Append and fsync. Returns the file offset the batch starts at."""
        lines  = "".join(json.dumps(o.to_dict()) + "\n" for o in observations)
        offset = self._ledger_file.stat().st_size if self._ledger_file.exists() else 0
        try:
            with open(self._ledger_file, "a", encoding="utf-8") as f:
                f.write(lines)
                f.flush()
                os.fsync(f.fileno())
        except OSError as exc:
            self._truncate(offset)
            raise StoreError(
                f"Observation log write failed: {exc}",
                {"path": str(self._ledger_file)},
            ) from exc
        return offset

    def _truncate(self, offset: int) -> None:
        try:
            with open(self._ledger_file, "r+b") as f:
                f.truncate(offset)
                f.flush()
                os.fsync(f.fileno())
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StoreError(
                f"Observation log truncate failed: {exc}",
                {"path": str(self._ledger_file), "offset": offset},
            ) from exc

    def _restore_state(self) -> None:
        """
        Resume the chain from the last line of an existing log.
        A corrupted last line leaves state at genesis and warns.
        """
        if not self._ledger_file.exists():
            return

        last_line = None
        with open(self._ledger_file, "r", encoding="utf-8") as f:
            for line in f:
                stripped = line.strip()
                if stripped:
                    last_line = stripped

        if not last_line:
            return

        try:
            last = Observation.from_dict(json.loads(last_line))
        except (json.JSONDecodeError, KeyError, TypeError) as exc:
            warnings.warn(
                f"ObservationLog: could not restore state from {self._ledger_file}: {exc}. "
                "Run `vaultrelay audit` before settling.",
                RuntimeWarning,
                stacklevel=3,
            )
            return

        self._sequence = last.sequence + 1
        self._last     = last
        logger.info(
            "observation log resumed at sequence %d from %s",
            self._sequence, self._ledger_file,
        )
