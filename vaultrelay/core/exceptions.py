"""
vaultrelay Exception Hierarchy

All exceptions inherit from VaultRelayError for easy catching.
Every settlement failure surfaces as one of these distinct types;
nothing is downgraded to a generic error.
"""


class VaultRelayError(Exception):
    """Base exception for all vaultrelay errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigError(VaultRelayError):
    """Raised when engine configuration is missing or malformed"""
    pass


class StoreError(VaultRelayError):
    """Raised when a consumed-set store or observation log cannot be read or written"""
    pass


class ReplayInvariantError(VaultRelayError):
    """
    Raised when the same signature is consumed twice.

    This is a programming error in the orchestrator, never a caller error:
    is_consumed() is always checked first within the same unit of work.
    """
    pass


# ── Authorization failures ────────────────────────────────────

class AuthorizationError(VaultRelayError):
    """Raised when a settlement is not authorized"""
    pass


class Unauthorized(AuthorizationError):
    """Raised when the caller is neither the relay nor the vault owner"""
    pass


class InvalidAuthorizationSignature(AuthorizationError):
    """Raised when the signature does not verify against the owner key"""
    pass


class ExpiredAuthorization(AuthorizationError):
    """Raised when the current deadline marker exceeds valid_until"""
    pass


class AuthorizationAlreadyUsed(AuthorizationError):
    """Raised when the signature is already present in the consumed set"""
    pass


# ── External collaborator failures ────────────────────────────

class VaultNotFound(VaultRelayError):
    """Raised by a vault ledger when the referenced vault does not exist"""
    pass


class CollaboratorError(VaultRelayError):
    """Raised by an external collaborator during settlement"""
    pass


class LedgerError(CollaboratorError):
    """Raised when the vault ledger rejects a liquidation"""
    pass


class OracleError(CollaboratorError):
    """Raised when the price oracle rejects an update payload"""
    pass


class TransferError(CollaboratorError):
    """Raised when a native value transfer fails"""
    pass


class ReentrantSettlement(VaultRelayError):
    """Raised when a collaborator calls back into the engine mid-settlement"""
    pass
