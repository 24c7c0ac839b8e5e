"""
vaultrelay/core/time.py

Two unrelated notions of time live here:

    observation_timestamp()  — wall-clock UTC stamp for the audit log.
                               Wire format: YYYY-MM-DDTHH:MM:SS.mmmZ
    DeadlineClock            — the monotonic deadline marker (block height)
                               that authorization expiry is compared against.

Expiry NEVER reads wall-clock time. Only a DeadlineClock decides expiry.
"""

import threading
from datetime import datetime, timezone


def observation_timestamp() -> str:
    """
    Return current UTC time in observation wire format.
    Format: YYYY-MM-DDTHH:MM:SS.mmmZ  (exactly 3 fractional digits, Z suffix)
    """
    now = datetime.now(timezone.utc)
    ms  = now.microsecond // 1000
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ms:03d}Z"


class DeadlineClock:
    """Source of the current deadline marker. Subclasses implement current()."""

    def current(self) -> int:
        raise NotImplementedError


class ManualClock(DeadlineClock):
    """
    Deadline marker set explicitly by the host.

    Markers only move forward. Rewinding raises ValueError.
    """

    def __init__(self, marker: int = 0) -> None:
        if marker < 0:
            raise ValueError(f"marker must be non-negative, got {marker}")
        self._marker = marker
        self._lock   = threading.Lock()

    def current(self) -> int:
        return self._marker

    def set(self, marker: int) -> None:
        with self._lock:
            if marker < self._marker:
                raise ValueError(
                    f"deadline marker cannot move backwards: "
                    f"{self._marker} -> {marker}"
                )
            self._marker = marker

    def advance(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError(f"blocks must be non-negative, got {blocks}")
        with self._lock:
            self._marker += blocks
            return self._marker

    def __repr__(self) -> str:
        return f"ManualClock(marker={self._marker})"
