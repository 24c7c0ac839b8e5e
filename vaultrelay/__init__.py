"""
vaultrelay/__init__.py

vaultrelay: relay-authorized liquidation settlement.

A searcher wins the right to liquidate a vault, the relay forwards the
vault owner's signed authorization, and the SettlementEngine verifies
it, liquidates through the vault ledger and pays the bid to the relay
as one all-or-nothing unit of work.
"""

__version__ = "0.3.0"

from vaultrelay.authority.signature import (
    SignatureAuthority,
    encode_authorization,
    sign_authorization,
)
from vaultrelay.core.crypto import Ed25519KeyManager
from vaultrelay.core.exceptions import (
    AuthorizationAlreadyUsed,
    AuthorizationError,
    ExpiredAuthorization,
    InvalidAuthorizationSignature,
    Unauthorized,
    VaultNotFound,
    VaultRelayError,
)
from vaultrelay.core.models import (
    Authorization,
    Observation,
    ObservationType,
    SigningDomain,
    Vault,
)
from vaultrelay.core.time import DeadlineClock, ManualClock
from vaultrelay.ledger.observations import ObservationLog
from vaultrelay.replay.guard import ReplayGuard
from vaultrelay.settlement.engine import SettlementEngine

__all__ = [
    # Core types
    "Authorization",
    "SigningDomain",
    "Vault",
    "Observation",
    "ObservationType",
    # Components
    "SettlementEngine",
    "SignatureAuthority",
    "ReplayGuard",
    "ObservationLog",
    "Ed25519KeyManager",
    "DeadlineClock",
    "ManualClock",
    # Errors
    "VaultRelayError",
    "AuthorizationError",
    "Unauthorized",
    "InvalidAuthorizationSignature",
    "ExpiredAuthorization",
    "AuthorizationAlreadyUsed",
    "VaultNotFound",
    # Helpers
    "encode_authorization",
    "sign_authorization",
]
