"""
Settlement engine for relay-forwarded liquidations.
"""

import logging
import threading
from typing import Optional, Sequence, Union

from vaultrelay.authority.signature import SignatureAuthority, encode_authorization
from vaultrelay.collaborators.interfaces import (
    PriceOracle,
    TokenGateway,
    ValueAccount,
    VaultLedger,
)
from vaultrelay.core.exceptions import (
    AuthorizationAlreadyUsed,
    ExpiredAuthorization,
    InvalidAuthorizationSignature,
    ReentrantSettlement,
    Unauthorized,
    VaultRelayError,
)
from vaultrelay.core.models import (
    Authorization,
    Observation,
    ObservationType,
    SettlementCompleted,
    ValueReceived,
    check_uint256,
)
from vaultrelay.core.time import DeadlineClock
from vaultrelay.ledger.observations import ObservationLog
from vaultrelay.replay.guard import ReplayGuard
from vaultrelay.settlement.transaction import UnitOfWork

logger = logging.getLogger(__name__)

UpdateData = Union[bytes, bytearray, Sequence[bytes]]


def validate_authorization(
    authority:        SignatureAuthority,
    replay_guard:     ReplayGuard,
    clock:            DeadlineClock,
    owner_public_key: str,
    vault_id:         int,
    bid:              int,
    valid_until:      int,
    signature:        bytes,
) -> None:
    """
    Relay-path authorization checks, in order: signature, expiry, replay.

    Raises the first failure. Pure read: nothing is consumed here.
    """
    message = encode_authorization(vault_id, bid)
    if not authority.verify(owner_public_key, message, valid_until, signature):
        raise InvalidAuthorizationSignature(
            "Authorization signature does not verify", {"vault_id": vault_id}
        )

    marker = clock.current()
    if marker > valid_until:
        raise ExpiredAuthorization(
            "Authorization expired",
            {"vault_id": vault_id, "valid_until": valid_until, "marker": marker},
        )

    if replay_guard.is_consumed(signature):
        raise AuthorizationAlreadyUsed(
            "Authorization already used", {"vault_id": vault_id}
        )


def _oracle_payloads(update_data: Optional[UpdateData]) -> list:
    """Normalize update_data. A single bytes value is one payload; empty means none."""
    if not update_data:
        return []
    if isinstance(update_data, (bytes, bytearray)):
        return [bytes(update_data)]
    return [bytes(p) for p in update_data if p]


class SettlementEngine:
    """
    Orchestrates one liquidation per settle() call.

    The relay and owner identities are fixed at construction. Every
    collaborator the engine mutates takes part in the same UnitOfWork,
    so a failed settlement leaves no trace: the signature stays
    unconsumed, no value leaves, no approval survives, no observation
    is written.

    Calls are serialized. A collaborator calling settle() back during a
    settlement raises ReentrantSettlement; receive() joins the running
    settlement instead.
    """

    def __init__(
        self,
        relay_address:    str,
        owner_address:    str,
        owner_public_key: str,
        authority:        SignatureAuthority,
        replay_guard:     ReplayGuard,
        ledger:           VaultLedger,
        oracle:           PriceOracle,
        tokens:           TokenGateway,
        account:          ValueAccount,
        clock:            DeadlineClock,
        observations:     ObservationLog,
    ):
        self._relay_address    = relay_address
        self._owner_address    = owner_address
        self._owner_public_key = owner_public_key

        self.authority    = authority
        self.replay_guard = replay_guard
        self.ledger       = ledger
        self.oracle       = oracle
        self.tokens       = tokens
        self.account      = account
        self.clock        = clock
        self.observations = observations

        self._lock        = threading.Lock()
        self._active_thread: Optional[int] = None

    @property
    def relay_address(self) -> str:
        return self._relay_address

    @property
    def owner_address(self) -> str:
        return self._owner_address

    @property
    def owner_public_key(self) -> str:
        return self._owner_public_key

    # ── Settlement ────────────────────────────────────────────

    def settle(
        self,
        vault_id:    int,
        bid:         int,
        valid_until: int,
        update_data: Optional[UpdateData],
        signature:   bytes,
        *,
        caller:      str,
        value:       int = 0,
    ) -> Observation:
        """
        Liquidate vault_id and pay bid to the relay.

        Args:
            vault_id:    vault to liquidate.
            bid:         native value paid to the relay, may be zero.
            valid_until: last deadline marker at which the authorization holds.
            update_data: oracle payloads to apply before reading the vault.
            signature:   owner signature; ignored when the owner calls directly.
            caller:      identity of the invoking entity.
            value:       native value attached to the call, credited first.

        Returns:
            The SettlementCompleted observation.

        Raises:
            Unauthorized, InvalidAuthorizationSignature, ExpiredAuthorization,
            AuthorizationAlreadyUsed, VaultNotFound, or any collaborator error.
            Nothing is retained when any of these is raised.
        """
        check_uint256("vault_id", vault_id)
        check_uint256("bid", bid)
        check_uint256("valid_until", valid_until)
        if value < 0:
            raise ValueError(f"attached value must be non-negative, got {value}")

        with self._exclusive():
            try:
                observation = self._settle(
                    vault_id, bid, valid_until, update_data, signature, caller, value
                )
            except VaultRelayError as exc:
                logger.warning(
                    "settlement rejected: vault=%s caller=%s error=%s: %s",
                    vault_id, caller, type(exc).__name__, exc,
                )
                raise

        logger.info(
            "settlement completed: vault=%s bid=%s caller=%s", vault_id, bid, caller
        )
        return observation

    def settle_authorization(
        self,
        authorization: Authorization,
        update_data:   Optional[UpdateData] = None,
        *,
        caller:        str,
        value:         int = 0,
    ) -> Observation:
        """settle() taking its arguments from an Authorization."""
        return self.settle(
            authorization.vault_id,
            authorization.bid,
            authorization.valid_until,
            update_data,
            authorization.signature,
            caller=caller,
            value=value,
        )

    def check_authorization(
        self,
        vault_id:    int,
        bid:         int,
        valid_until: int,
        signature:   bytes,
    ) -> None:
        """Run the relay-path authorization checks without settling."""
        validate_authorization(
            self.authority,
            self.replay_guard,
            self.clock,
            self._owner_public_key,
            vault_id, bid, valid_until, signature,
        )

    def _settle(self, vault_id, bid, valid_until, update_data, signature, caller, value):
        if caller == self._relay_address:
            via_relay = True
        elif caller == self._owner_address:
            via_relay = False
        else:
            raise Unauthorized(
                "Caller is neither relay nor vault owner", {"caller": caller}
            )

        # The consumed store cannot be undone once written, so it commits last.
        participants = [
            self.tokens,
            self.account,
            self.ledger,
            self.oracle,
            self.observations,
            self.replay_guard,
        ]
        with UnitOfWork(participants):
            if via_relay:
                self.check_authorization(vault_id, bid, valid_until, signature)
                self.replay_guard.consume(signature)

            if value:
                self.account.credit(value)

            payloads = _oracle_payloads(update_data)
            if payloads:
                logger.debug("applying %d oracle update(s)", len(payloads))
                self.oracle.update_price_feeds(payloads)

            vault = self.ledger.get_vault(vault_id)
            self.tokens.approve(vault.debt_token, self.ledger.address, vault.debt_amount)
            self.ledger.liquidate(vault_id)
            logger.debug("vault %s liquidated", vault_id)

            if bid > 0:
                self.account.transfer(self._relay_address, bid)

            return self.observations.record(
                ObservationType.SETTLEMENT_COMPLETED,
                SettlementCompleted(vault_id, bid, caller).to_payload(),
            )

    # ── Direct value receipt ──────────────────────────────────

    def receive(self, sender: str, amount: int) -> Observation:
        """
        Accept an unsolicited native transfer.

        Credits the engine balance and records ValueReceived. Touches no
        settlement state: no replay entry, no approval, no vault.

        A collaborator may send value back while a settlement is running
        on the same thread, e.g. a ledger refund during liquidate(). The
        receipt then joins that settlement's unit of work and commits or
        rolls back with it.
        """
        if amount < 0:
            raise ValueError(f"amount must be non-negative, got {amount}")

        if self._active_thread == threading.get_ident():
            observation = self._credit(sender, amount)
            logger.debug(
                "value received during settlement: sender=%s amount=%s", sender, amount
            )
            return observation

        with self._exclusive():
            with UnitOfWork([self.account, self.observations]):
                observation = self._credit(sender, amount)

        logger.info("value received: sender=%s amount=%s", sender, amount)
        return observation

    def _credit(self, sender: str, amount: int) -> Observation:
        self.account.credit(amount)
        return self.observations.record(
            ObservationType.VALUE_RECEIVED,
            ValueReceived(sender, amount).to_payload(),
        )

    # ── Internal ──────────────────────────────────────────────

    def _exclusive(self):
        if self._active_thread == threading.get_ident():
            raise ReentrantSettlement("Engine re-entered during settlement")
        return _Exclusive(self)

    def __repr__(self) -> str:
        return (
            f"SettlementEngine(relay={self._relay_address!r}, "
            f"owner={self._owner_address!r}, consumed={len(self.replay_guard)})"
        )


class _Exclusive:
    """Holds the engine lock and records the owning thread."""

    def __init__(self, engine: SettlementEngine) -> None:
        self._engine = engine

    def __enter__(self) -> None:
        self._engine._lock.acquire()
        self._engine._active_thread = threading.get_ident()

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._engine._active_thread = None
        self._engine._lock.release()
        return False
