"""
In-process reference collaborators.

These model just enough of a lending ledger to exercise the engine
end to end: positions become liquidatable when the oracle marks their
collateral below the required ratio, liquidation pulls the approved
debt repayment from the engine and hands the collateral back to it.

State is plain dicts. savepoint() deep-copies, rollback() restores.
"""

import copy
import json
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from vaultrelay.collaborators.interfaces import (
    PriceOracle,
    TokenGateway,
    ValueAccount,
    VaultLedger,
)
from vaultrelay.core.exceptions import (
    LedgerError,
    OracleError,
    TransferError,
    VaultNotFound,
)
from vaultrelay.core.models import Vault

BPS = 10_000


# ── Price oracle ──────────────────────────────────────────────

def encode_price_update(token: str, price: int) -> bytes:
    """Wire form accepted by InMemoryPriceOracle.update_price_feeds()."""
    return json.dumps({"token": token, "price": str(price)}, sort_keys=True).encode()


class InMemoryPriceOracle(PriceOracle):
    """Token prices in integer quote units, updated from signed-off payloads."""

    def __init__(self, prices: Optional[Dict[str, int]] = None) -> None:
        self._prices: Dict[str, int] = dict(prices or {})
        self.updates_applied = 0

    def update_price_feeds(self, payloads: Sequence[bytes]) -> None:
        for index, payload in enumerate(payloads):
            try:
                data  = json.loads(bytes(payload).decode("utf-8"))
                token = data["token"]
                price = int(data["price"])
            except (ValueError, KeyError, TypeError) as exc:
                raise OracleError(
                    f"Malformed price update: {exc}", {"index": index}
                ) from exc
            if price <= 0:
                raise OracleError("Price must be positive", {"token": token})
            self._prices[token] = price
            self.updates_applied += 1

    def price(self, token: str) -> int:
        try:
            return self._prices[token]
        except KeyError:
            raise OracleError("No price for token", {"token": token}) from None

    def savepoint(self):
        return dict(self._prices), self.updates_applied

    def rollback(self, token) -> None:
        self._prices, self.updates_applied = dict(token[0]), token[1]


# ── Token gateway ─────────────────────────────────────────────

class InMemoryTokenGateway(TokenGateway):
    """
    Token balances plus allowances granted by one owner (the engine).
    """

    def __init__(self, owner: str) -> None:
        self.owner = owner
        self._balances:   Dict[Tuple[str, str], int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}

    def mint(self, token: str, holder: str, amount: int) -> None:
        key = (token, holder)
        self._balances[key] = self._balances.get(key, 0) + amount

    def balance_of(self, token: str, holder: str) -> int:
        return self._balances.get((token, holder), 0)

    def approve(self, token: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"allowance must be non-negative, got {amount}")
        self._allowances[(token, spender)] = amount

    def allowance(self, token: str, spender: str) -> int:
        return self._allowances.get((token, spender), 0)

    def transfer_from_owner(
        self, token: str, spender: str, recipient: str, amount: int,
    ) -> None:
        """Move owner funds on spender's allowance. Caller checks limits first."""
        allowed = self.allowance(token, spender)
        held    = self.balance_of(token, self.owner)
        if amount > allowed or amount > held:
            raise ValueError(
                f"transfer of {amount} {token} exceeds allowance {allowed} "
                f"or balance {held}"
            )
        self._allowances[(token, spender)] = allowed - amount
        self._balances[(token, self.owner)] = held - amount
        self.mint(token, recipient, amount)

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        held = self.balance_of(token, sender)
        if amount > held:
            raise ValueError(f"{sender} holds {held} {token}, cannot send {amount}")
        self._balances[(token, sender)] = held - amount
        self.mint(token, recipient, amount)

    def savepoint(self):
        return dict(self._balances), dict(self._allowances)

    def rollback(self, token) -> None:
        self._balances, self._allowances = dict(token[0]), dict(token[1])


# ── Vault ledger ──────────────────────────────────────────────

@dataclass
class VaultPosition:
    debt_token:        str
    debt_amount:       int
    collateral_token:  str
    collateral_amount: int


class InMemoryVaultLedger(VaultLedger):
    """
    Collateralized debt positions.

    A vault is liquidatable when
        collateral_amount * price(collateral) * BPS
            < debt_amount * price(debt) * min_collateral_bps
    """

    def __init__(
        self,
        address:            str,
        tokens:             InMemoryTokenGateway,
        oracle:             InMemoryPriceOracle,
        min_collateral_bps: int = 15_000,
    ) -> None:
        self._address           = address
        self.tokens             = tokens
        self.oracle             = oracle
        self.min_collateral_bps = min_collateral_bps
        self._vaults:   Dict[int, VaultPosition] = {}
        self.liquidated: List[int] = []

    @property
    def address(self) -> str:
        return self._address

    def open_vault(self, vault_id: int, position: VaultPosition) -> None:
        if vault_id in self._vaults:
            raise ValueError(f"vault {vault_id} already exists")
        self._vaults[vault_id] = position
        self.tokens.mint(position.collateral_token, self._address, position.collateral_amount)

    def __contains__(self, vault_id: int) -> bool:
        return vault_id in self._vaults

    def get_vault(self, vault_id: int) -> Vault:
        position = self._position(vault_id)
        return Vault(
            vault_id=    vault_id,
            debt_token=  position.debt_token,
            debt_amount= position.debt_amount,
        )

    def is_liquidatable(self, vault_id: int) -> bool:
        position = self._position(vault_id)
        try:
            collateral_value = position.collateral_amount * self.oracle.price(position.collateral_token)
            debt_value       = position.debt_amount * self.oracle.price(position.debt_token)
        except OracleError as exc:
            raise LedgerError(
                f"Cannot price vault: {exc.message}",
                {"vault_id": vault_id, **exc.details},
            ) from exc
        return collateral_value * BPS < debt_value * self.min_collateral_bps

    def liquidate(self, vault_id: int) -> None:
        position   = self._position(vault_id)
        liquidator = self.tokens.owner

        if not self.is_liquidatable(vault_id):
            raise LedgerError("Vault is not liquidatable", {"vault_id": vault_id})

        allowed = self.tokens.allowance(position.debt_token, self._address)
        if allowed < position.debt_amount:
            raise LedgerError(
                "Insufficient approval for debt repayment",
                {"vault_id": vault_id, "allowance": allowed, "required": position.debt_amount},
            )
        held = self.tokens.balance_of(position.debt_token, liquidator)
        if held < position.debt_amount:
            raise LedgerError(
                "Liquidator cannot cover debt repayment",
                {"vault_id": vault_id, "balance": held, "required": position.debt_amount},
            )

        self.tokens.transfer_from_owner(
            position.debt_token, self._address, self._address, position.debt_amount
        )
        self.tokens.transfer(
            position.collateral_token, self._address, liquidator, position.collateral_amount
        )
        del self._vaults[vault_id]
        self.liquidated.append(vault_id)

    def _position(self, vault_id: int) -> VaultPosition:
        try:
            return self._vaults[vault_id]
        except KeyError:
            raise VaultNotFound("Vault not found", {"vault_id": vault_id}) from None

    def savepoint(self):
        return copy.deepcopy(self._vaults), list(self.liquidated)

    def rollback(self, token) -> None:
        self._vaults, self.liquidated = copy.deepcopy(token[0]), list(token[1])


# ── Native value ──────────────────────────────────────────────

class InMemoryValueAccount(ValueAccount):
    """
    Native balance of the engine plus a record of what each recipient
    has been paid. Recipients listed in `rejecting` refuse transfers.
    """

    def __init__(self, balance: int = 0) -> None:
        self._balance = balance
        self.paid:      Dict[str, int] = {}
        self.rejecting: Set[str]       = set()

    @property
    def balance(self) -> int:
        return self._balance

    def credit(self, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"credit must be non-negative, got {amount}")
        self._balance += amount

    def transfer(self, recipient: str, amount: int) -> None:
        if recipient in self.rejecting:
            raise TransferError("Recipient rejected transfer", {"recipient": recipient})
        if amount > self._balance:
            raise TransferError(
                "Insufficient native balance",
                {"balance": self._balance, "amount": amount},
            )
        self._balance -= amount
        self.paid[recipient] = self.paid.get(recipient, 0) + amount

    def paid_to(self, recipient: str) -> int:
        return self.paid.get(recipient, 0)

    def savepoint(self):
        return self._balance, dict(self.paid)

    def rollback(self, token) -> None:
        self._balance, self.paid = token[0], dict(token[1])
