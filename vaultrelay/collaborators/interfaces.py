"""
Collaborator contracts.

Every collaborator the engine mutates is Transactional: the engine takes
a savepoint before a settlement and hands it back to rollback() if any
later step raises. A collaborator that cannot undo its own mutations
cannot take part in an all-or-nothing settlement.
"""

from typing import Any, Sequence

from vaultrelay.core.models import Vault


class Transactional:
    """Savepoint protocol used by UnitOfWork."""

    def savepoint(self) -> Any:
        raise NotImplementedError

    def rollback(self, token: Any) -> None:
        raise NotImplementedError

    def commit(self) -> None:
        """Called once every participant has succeeded. Default: nothing to flush."""
        return None

    def revert_commit(self) -> None:
        """
        Undo the last commit() after a later participant failed to commit.
        Default: commit() flushed nothing, rollback() alone suffices.
        """
        return None


class VaultLedger(Transactional):
    """Owns vault state. The engine reads snapshots and issues liquidate."""

    @property
    def address(self) -> str:
        raise NotImplementedError

    def get_vault(self, vault_id: int) -> Vault:
        """Raises VaultNotFound if absent."""
        raise NotImplementedError

    def liquidate(self, vault_id: int) -> None:
        """Raises LedgerError on insufficient approval or invalid vault state."""
        raise NotImplementedError


class PriceOracle(Transactional):

    def update_price_feeds(self, payloads: Sequence[bytes]) -> None:
        """Raises OracleError on a rejected payload."""
        raise NotImplementedError


class TokenGateway(Transactional):
    """ERC-20 style allowances granted by the engine."""

    def approve(self, token: str, spender: str, amount: int) -> None:
        raise NotImplementedError

    def allowance(self, token: str, spender: str) -> int:
        raise NotImplementedError


class ValueAccount(Transactional):
    """The engine's native-value balance."""

    @property
    def balance(self) -> int:
        raise NotImplementedError

    def credit(self, amount: int) -> None:
        raise NotImplementedError

    def transfer(self, recipient: str, amount: int) -> None:
        """Raises TransferError if the transfer cannot complete."""
        raise NotImplementedError
