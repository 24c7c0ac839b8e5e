"""
vaultrelay/core/models.py

Data model for authorizations, vault snapshots and audit observations.

═══════════════════════════════════════════════════════════════════
CONTRACTS
═══════════════════════════════════════════════════════════════════

CONTRACT 1 — Authorization
    vault_id, bid       unsigned 256-bit integers
    valid_until         non-negative deadline marker (block height)
    signature           opaque bytes, produced by the vault owner
    immutable           frozen dataclass; consumption lives in ReplayGuard

CONTRACT 2 — Signing domain
    Every authorization digest is bound to a SigningDomain
    (name, version, chain_id, engine_address). A signature produced
    for one engine deployment never verifies at another.

CONTRACT 3 — Observation chain
    causal_hash  = SHA-256(canonicalize(prev.to_chain_dict()))
    first_entry  = GENESIS_HASH ("0" * 64)
    signature    = Ed25519 over canonicalize(to_signing_dict()), hex encoded

CONTRACT 4 — Observation vocabulary
    event must be an ObservationType constant; enforced at create().
═══════════════════════════════════════════════════════════════════
"""

import hashlib
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

from vaultrelay.core.canonical import canonicalize
from vaultrelay.core.time import observation_timestamp


# ─────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────

UINT256_MAX  = 2 ** 256 - 1
GENESIS_HASH = "0" * 64

DOMAIN_NAME    = "vaultrelay.liquidation"
DOMAIN_VERSION = "1"


def check_uint256(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be int, got {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"{name} out of uint256 range: {value}")


# ─────────────────────────────────────────────────────────────
# SigningDomain
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SigningDomain:
    """Deployment context mixed into every authorization digest."""

    chain_id:       int
    engine_address: str
    name:           str = DOMAIN_NAME
    version:        str = DOMAIN_VERSION

    def to_dict(self) -> Dict[str, str]:
        return {
            "chain_id":       str(self.chain_id),
            "engine_address": self.engine_address,
            "name":           self.name,
            "version":        self.version,
        }


# ─────────────────────────────────────────────────────────────
# Authorization
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Authorization:
    """
    Signed, time-bounded, single-use permission to liquidate one vault
    for one bid.

    Created off-chain by the vault owner. Never mutated.
    """

    vault_id:    int
    bid:         int
    valid_until: int
    signature:   bytes = field(repr=False)

    def __post_init__(self) -> None:
        check_uint256("vault_id", self.vault_id)
        check_uint256("bid", self.bid)
        check_uint256("valid_until", self.valid_until)
        if not isinstance(self.signature, (bytes, bytearray)):
            raise TypeError(
                f"signature must be bytes, got {type(self.signature).__name__}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe form. Integers as decimal strings, signature as hex."""
        return {
            "vault_id":    str(self.vault_id),
            "bid":         str(self.bid),
            "valid_until": str(self.valid_until),
            "signature":   bytes(self.signature).hex(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Authorization":
        """
        Inverse of to_dict(). Accepts ints or decimal strings.
        Raises ValueError on a non-hex signature.
        """
        return cls(
            vault_id=    int(data["vault_id"]),
            bid=         int(data["bid"]),
            valid_until= int(data["valid_until"]),
            signature=   bytes.fromhex(data["signature"]),
        )


# ─────────────────────────────────────────────────────────────
# Vault snapshot
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Vault:
    """Read-only snapshot of a ledger vault. The ledger owns the live state."""

    vault_id:    int
    debt_token:  str
    debt_amount: int


# ─────────────────────────────────────────────────────────────
# Observations
# ─────────────────────────────────────────────────────────────

class ObservationType:
    """The only valid values for Observation.event."""
    SETTLEMENT_COMPLETED = "settlement_completed"
    VALUE_RECEIVED       = "value_received"


_VALID_OBSERVATION_TYPES: Set[str] = {
    ObservationType.SETTLEMENT_COMPLETED,
    ObservationType.VALUE_RECEIVED,
}


@dataclass(frozen=True)
class SettlementCompleted:
    vault_id: int
    bid:      int
    caller:   str

    def to_payload(self) -> Dict[str, str]:
        return {
            "vault_id": str(self.vault_id),
            "bid":      str(self.bid),
            "caller":   self.caller,
        }


@dataclass(frozen=True)
class ValueReceived:
    sender: str
    amount: int

    def to_payload(self) -> Dict[str, str]:
        return {
            "sender": self.sender,
            "amount": str(self.amount),
        }


@dataclass
class Observation:
    """
    One entry of the engine's audit log.

    Built with create(), then sign(). Deserialized with from_dict().
    """

    sequence:          int
    record_id:         str
    event:             str
    signer_public_key: str
    timestamp:         str
    causal_hash:       str
    payload:           Dict[str, Any]
    signature:         Optional[str] = None

    @classmethod
    def create(
        cls,
        event:             str,
        payload:           Dict[str, Any],
        signer_public_key: str,
        sequence:          int,
        prev:              Optional["Observation"] = None,
    ) -> "Observation":
        if event not in _VALID_OBSERVATION_TYPES:
            raise ValueError(
                f"Invalid observation event '{event}'. "
                f"Valid: {sorted(_VALID_OBSERVATION_TYPES)}"
            )
        if not isinstance(payload, dict):
            raise TypeError(f"payload must be dict, got {type(payload).__name__}")
        if not isinstance(sequence, int) or sequence < 0:
            raise ValueError(f"sequence must be non-negative int, got {sequence!r}")

        return cls(
            sequence=          sequence,
            record_id=         f"obs-{uuid.uuid4()}",
            event=             event,
            signer_public_key= signer_public_key,
            timestamp=         observation_timestamp(),
            causal_hash=       cls.chain_hash(prev),
            payload=           payload,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Observation":
        return cls(
            sequence=          data["sequence"],
            record_id=         data["record_id"],
            event=             data["event"],
            signer_public_key= data["signer_public_key"],
            timestamp=         data["timestamp"],
            causal_hash=       data["causal_hash"],
            payload=           data.get("payload", {}),
            signature=         data.get("signature"),
        )

    def to_signing_dict(self) -> Dict[str, Any]:
        return {
            "causal_hash":       self.causal_hash,
            "event":             self.event,
            "payload":           self.payload,
            "record_id":         self.record_id,
            "sequence":          self.sequence,
            "signer_public_key": self.signer_public_key,
            "timestamp":         self.timestamp,
        }

    # Signed surface and chained surface are the same field set.
    to_chain_dict = to_signing_dict

    def to_dict(self) -> Dict[str, Any]:
        d = self.to_signing_dict().copy()
        d["signature"] = self.signature
        return d

    @staticmethod
    def chain_hash(prev: Optional["Observation"]) -> str:
        if prev is None:
            return GENESIS_HASH
        return hashlib.sha256(canonicalize(prev.to_chain_dict())).hexdigest()

    def sign(self, key_manager) -> "Observation":
        self.signature = key_manager.sign(canonicalize(self.to_signing_dict())).hex()
        return self

    def verify_signature(self) -> bool:
        """False if unsigned, tampered, or the signature is not hex. Never raises."""
        from vaultrelay.core.crypto import Ed25519KeyManager

        if not self.signature:
            return False
        try:
            raw = bytes.fromhex(self.signature)
        except (TypeError, ValueError):
            return False
        return Ed25519KeyManager.verify_detached(
            canonicalize(self.to_signing_dict()), raw, self.signer_public_key
        )

    def verify_chain(self, prev: Optional["Observation"]) -> bool:
        return self.causal_hash == Observation.chain_hash(prev)
