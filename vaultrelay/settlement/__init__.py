"""
vaultrelay Settlement Engine

Authorizes and executes third-party liquidations forwarded by the relay:

- Caller must be the relay or the vault owner
- Relay calls carry an owner-signed, unexpired, unused authorization
- Liquidation and bid payment are all-or-nothing
- A completed authorization can never be replayed
"""

from vaultrelay.settlement.engine import SettlementEngine
from vaultrelay.settlement.transaction import UnitOfWork

__all__ = ["SettlementEngine", "UnitOfWork"]
