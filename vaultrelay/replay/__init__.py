"""
vaultrelay Replay Protection

ReplayGuard owns the consumed-signature set. Nothing else reads or
writes it. Entries are keyed by SHA-256 of the signature and are never
removed.
"""

from vaultrelay.replay.guard import ReplayGuard, signature_key
from vaultrelay.replay.store import (
    ConsumedStore,
    JsonlConsumedStore,
    MemoryConsumedStore,
)

__all__ = [
    "ReplayGuard",
    "signature_key",
    "ConsumedStore",
    "MemoryConsumedStore",
    "JsonlConsumedStore",
]
