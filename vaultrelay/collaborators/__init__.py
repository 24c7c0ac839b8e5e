"""
External collaborators of the settlement engine.

interfaces.py declares what the engine calls. memory.py provides
in-process reference implementations that honour the same contracts,
including savepoint/rollback, for tests, dry runs and the CLI.
"""

from vaultrelay.collaborators.interfaces import (
    PriceOracle,
    TokenGateway,
    Transactional,
    ValueAccount,
    VaultLedger,
)
from vaultrelay.collaborators.memory import (
    InMemoryPriceOracle,
    InMemoryTokenGateway,
    InMemoryValueAccount,
    InMemoryVaultLedger,
    VaultPosition,
    encode_price_update,
)

__all__ = [
    "Transactional",
    "VaultLedger",
    "PriceOracle",
    "TokenGateway",
    "ValueAccount",
    "InMemoryVaultLedger",
    "InMemoryPriceOracle",
    "InMemoryTokenGateway",
    "InMemoryValueAccount",
    "VaultPosition",
    "encode_price_update",
]
