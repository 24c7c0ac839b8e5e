"""
tests/test_settlement_engine.py

Settlement engine behaviour under honest and adversarial callers.

Properties:
    no replay            a consumed authorization always fails AuthorizationAlreadyUsed
    expiry boundary      valid_until == marker passes, marker + 1 fails
    access control       strangers are rejected even with a valid signature
    owner bypass         the owner settles without signature and never touches the consumed set
    atomicity            a failed step leaves signature, value, approvals and vault untouched
    idempotent rejection a malformed signature fails the same way every time
"""

import pytest

from vaultrelay.collaborators.memory import InMemoryVaultLedger, encode_price_update
from vaultrelay.core.exceptions import (
    AuthorizationAlreadyUsed,
    ExpiredAuthorization,
    InvalidAuthorizationSignature,
    LedgerError,
    OracleError,
    ReentrantSettlement,
    StoreError,
    TransferError,
    Unauthorized,
    VaultNotFound,
)
from vaultrelay.core.models import ObservationType
from vaultrelay.ledger.audit import audit_log
from vaultrelay.ledger.observations import ObservationLog

from conftest import LEDGER, OWNER, RELAY, V1, V2


def relay_settle(engine, authorization, update_data=b"", value=0):
    return engine.settle(
        authorization.vault_id,
        authorization.bid,
        authorization.valid_until,
        update_data,
        authorization.signature,
        caller=RELAY,
        value=value,
    )


class TestScenario:

    def test_relay_settlement_end_to_end(self, engine, sign, ledger, account, guard, tokens):
        auth = sign(V1, 5, 1000)

        obs = relay_settle(engine, auth)

        assert V1 not in ledger
        assert ledger.liquidated == [V1]
        assert account.paid_to(RELAY) == 5
        assert account.balance == 45
        assert guard.is_consumed(auth.signature)
        assert obs.event == ObservationType.SETTLEMENT_COMPLETED
        assert obs.payload == {"vault_id": "1", "bid": "5", "caller": RELAY}
        assert engine.observations.entries == [obs]
        # debt repaid to the ledger, collateral handed to the engine
        assert tokens.balance_of("TokenA", LEDGER) == 100
        assert tokens.balance_of("TokenB", engine.tokens.owner) == 120

    def test_second_identical_call_is_replay(self, engine, sign):
        auth = sign(V1, 5, 1000)
        relay_settle(engine, auth)

        with pytest.raises(AuthorizationAlreadyUsed):
            relay_settle(engine, auth)

    def test_fresh_signature_after_deadline_is_expired(self, engine, sign, clock, guard):
        auth = sign(V2, 5, 1000)
        clock.set(1001)

        with pytest.raises(ExpiredAuthorization):
            relay_settle(engine, auth)
        assert not guard.is_consumed(auth.signature)


class TestReplay:

    def test_replay_rejected_after_state_changes(self, engine, sign, clock, account):
        auth = sign(V1, 5, 1000)
        relay_settle(engine, auth)

        clock.set(1000)
        account.credit(1_000)
        engine.receive("refunder", 7)

        with pytest.raises(AuthorizationAlreadyUsed):
            relay_settle(engine, auth)

    def test_replay_check_precedes_vault_lookup(self, engine, sign):
        auth = sign(V1, 0, 1000)
        relay_settle(engine, auth)

        # V1 no longer exists; the replay error must still win
        with pytest.raises(AuthorizationAlreadyUsed):
            relay_settle(engine, auth)


class TestExpiry:

    def test_deadline_equal_to_marker_succeeds(self, engine, sign, clock):
        clock.set(1000)
        relay_settle(engine, sign(V1, 5, 1000))

    def test_one_past_deadline_fails(self, engine, sign, clock, ledger):
        clock.set(1001)
        with pytest.raises(ExpiredAuthorization) as info:
            relay_settle(engine, sign(V1, 5, 1000))
        assert info.value.details["marker"] == 1001
        assert V1 in ledger

    def test_stretched_deadline_breaks_signature(self, engine, sign):
        auth = sign(V1, 5, 1000)
        with pytest.raises(InvalidAuthorizationSignature):
            engine.settle(V1, 5, 5000, b"", auth.signature, caller=RELAY)


class TestAccessControl:

    def test_stranger_rejected_with_valid_signature(self, engine, sign, guard, ledger):
        auth = sign(V1, 5, 1000)
        with pytest.raises(Unauthorized):
            engine.settle_authorization(auth, caller="searcher-0xdead")
        assert not guard.is_consumed(auth.signature)
        assert V1 in ledger

    def test_identities_are_read_only(self, engine):
        with pytest.raises(AttributeError):
            engine.relay_address = "someone-else"
        with pytest.raises(AttributeError):
            engine.owner_address = "someone-else"


class TestOwnerBypass:

    def test_owner_settles_without_signature(self, engine, ledger, guard, account):
        engine.settle(V1, 0, 0, b"", b"", caller=OWNER)

        assert V1 not in ledger
        assert len(guard) == 0
        assert account.paid_to(RELAY) == 0

    def test_owner_ignores_expiry(self, engine, clock, ledger):
        clock.set(10_000)
        engine.settle(V1, 0, 1, b"", b"", caller=OWNER)
        assert V1 not in ledger

    def test_owner_bid_still_paid_to_relay(self, engine, account, guard):
        obs = engine.settle(V1, 3, 0, b"", b"garbage", caller=OWNER)

        assert account.paid_to(RELAY) == 3
        assert obs.payload["caller"] == OWNER
        assert not guard.is_consumed(b"garbage")


class TestSignatureRejection:

    def test_tampered_bid_rejected(self, engine, sign):
        auth = sign(V1, 5, 1000)
        with pytest.raises(InvalidAuthorizationSignature):
            engine.settle(V1, 6, 1000, b"", auth.signature, caller=RELAY)

    def test_signature_for_other_vault_rejected(self, engine, sign):
        auth = sign(V2, 5, 1000)
        with pytest.raises(InvalidAuthorizationSignature):
            engine.settle(V1, 5, 1000, b"", auth.signature, caller=RELAY)

    @pytest.mark.parametrize("signature", [b"", b"\x00" * 10, b"\x00" * 64, b"\xff" * 65])
    def test_malformed_signature_rejected_the_same_way_every_time(self, engine, guard, signature):
        for _ in range(3):
            with pytest.raises(InvalidAuthorizationSignature):
                engine.settle(V1, 5, 1000, b"", signature, caller=RELAY)
        assert not guard.is_consumed(signature)
        assert len(guard) == 0

    def test_non_bytes_signature_rejected(self, engine):
        with pytest.raises(InvalidAuthorizationSignature):
            engine.settle(V1, 5, 1000, b"", "not-bytes", caller=RELAY)


class FlakyLedger(InMemoryVaultLedger):
    """Fails the first `failures` liquidations, then behaves."""

    failures = 1

    def liquidate(self, vault_id):
        if self.failures:
            self.failures -= 1
            raise LedgerError("Ledger temporarily halted", {"vault_id": vault_id})
        super().liquidate(vault_id)


class TestAtomicity:

    @pytest.fixture
    def flaky(self, engine, tokens, oracle, ledger):
        flaky = FlakyLedger(LEDGER, tokens, oracle)
        flaky._vaults = ledger._vaults
        engine.ledger = flaky
        return flaky

    def test_failed_liquidation_leaves_no_trace(self, engine, sign, flaky, guard, account, tokens):
        auth = sign(V1, 5, 1000)
        balances_before = tokens.savepoint()

        with pytest.raises(LedgerError):
            relay_settle(engine, auth)

        assert not guard.is_consumed(auth.signature)
        assert account.balance == 50
        assert account.paid_to(RELAY) == 0
        assert tokens.allowance("TokenA", LEDGER) == 0
        assert tokens.savepoint() == balances_before
        assert V1 in flaky
        assert engine.observations.entries == []

    def test_retry_succeeds_once_failure_clears(self, engine, sign, flaky, guard, account):
        auth = sign(V1, 5, 1000)
        with pytest.raises(LedgerError):
            relay_settle(engine, auth)

        relay_settle(engine, auth)

        assert guard.is_consumed(auth.signature)
        assert account.paid_to(RELAY) == 5
        assert V1 not in flaky

    def test_failed_bid_transfer_undoes_liquidation(self, engine, sign, ledger, account, guard, tokens):
        auth = sign(V1, 5, 1000)
        account.rejecting.add(RELAY)

        with pytest.raises(TransferError):
            relay_settle(engine, auth)

        assert V1 in ledger
        assert ledger.liquidated == []
        assert tokens.balance_of("TokenA", engine.tokens.owner) == 1_000
        assert not guard.is_consumed(auth.signature)

    def test_bid_exceeding_balance_aborts(self, engine, sign, ledger, account):
        with pytest.raises(TransferError):
            relay_settle(engine, sign(V1, 51, 1000))
        assert V1 in ledger
        assert account.balance == 50

    def test_attached_value_tops_up_bid(self, engine, sign, account):
        relay_settle(engine, sign(V1, 60, 1000), value=10)
        assert account.paid_to(RELAY) == 60
        assert account.balance == 0

    def test_attached_value_returned_on_failure(self, engine, sign, account):
        with pytest.raises(TransferError):
            relay_settle(engine, sign(V1, 100, 1000), value=10)
        assert account.balance == 50

    def test_unknown_vault_propagates_not_found(self, engine, sign, guard):
        auth = sign(99, 5, 1000)
        with pytest.raises(VaultNotFound):
            relay_settle(engine, auth)
        assert not guard.is_consumed(auth.signature)

    def test_zero_bid_moves_no_value(self, engine, sign, account):
        relay_settle(engine, sign(V1, 0, 1000))
        assert account.balance == 50
        assert account.paid == {}


class TestOracleRefresh:

    def test_healthy_vault_cannot_be_liquidated(self, engine, sign, ledger):
        with pytest.raises(LedgerError):
            relay_settle(engine, sign(V2, 5, 1000))
        assert V2 in ledger

    def test_price_update_applied_before_vault_read(self, engine, sign, ledger, oracle):
        update = [encode_price_update("TokenA", 2)]
        relay_settle(engine, sign(V2, 5, 1000), update_data=update)

        assert V2 not in ledger
        assert oracle.price("TokenA") == 2

    def test_price_update_rolled_back_with_settlement(self, engine, sign, oracle):
        update = [encode_price_update("TokenA", 2)]
        with pytest.raises(VaultNotFound):
            relay_settle(engine, sign(42, 5, 1000), update_data=update)
        assert oracle.price("TokenA") == 1
        assert oracle.updates_applied == 0

    def test_malformed_update_aborts(self, engine, sign, guard):
        auth = sign(V1, 5, 1000)
        with pytest.raises(OracleError):
            relay_settle(engine, auth, update_data=b"{not json")
        assert not guard.is_consumed(auth.signature)


class ReenteringLedger(InMemoryVaultLedger):
    engine = None
    retry  = None

    def liquidate(self, vault_id):
        self.engine.settle_authorization(self.retry, caller=RELAY)


class TestReentrancy:

    def test_callback_into_engine_is_refused(self, engine, sign, tokens, oracle, ledger, guard):
        auth = sign(V1, 5, 1000)
        hostile = ReenteringLedger(LEDGER, tokens, oracle)
        hostile._vaults = ledger._vaults
        hostile.engine, hostile.retry = engine, auth
        engine.ledger = hostile

        with pytest.raises(ReentrantSettlement):
            relay_settle(engine, auth)
        assert not guard.is_consumed(auth.signature)


class RefundingLedger(InMemoryVaultLedger):
    """Sends surplus value back to the engine while liquidating."""

    engine = None
    refund = 3

    def liquidate(self, vault_id):
        super().liquidate(vault_id)
        self.engine.receive(self._address, self.refund)


class TestLedgerRefund:

    @pytest.fixture
    def refunding(self, engine, tokens, oracle, ledger):
        refunding = RefundingLedger(LEDGER, tokens, oracle)
        refunding._vaults = ledger._vaults
        refunding.engine = engine
        engine.ledger = refunding
        return refunding

    def test_refund_during_liquidation_is_accepted(self, engine, sign, refunding, account, guard):
        auth = sign(V1, 5, 1000)
        completed = relay_settle(engine, auth)

        assert account.paid_to(RELAY) == 5
        assert account.balance == 50 + 3 - 5
        assert guard.is_consumed(auth.signature)
        events = [o.event for o in engine.observations.entries]
        assert events == [ObservationType.VALUE_RECEIVED, ObservationType.SETTLEMENT_COMPLETED]
        assert completed.verify_chain(engine.observations.entries[0])

    def test_refund_rolled_back_with_failed_settlement(self, engine, sign, refunding, account, guard):
        auth = sign(V1, 5, 1000)
        account.rejecting.add(RELAY)

        with pytest.raises(TransferError):
            relay_settle(engine, auth)

        assert account.balance == 50
        assert engine.observations.entries == []
        assert V1 in refunding
        assert not guard.is_consumed(auth.signature)


class TestValueReceipt:

    def test_receive_credits_and_records(self, engine, account, guard):
        obs = engine.receive("ledger-refund", 25)

        assert account.balance == 75
        assert obs.event == ObservationType.VALUE_RECEIVED
        assert obs.payload == {"sender": "ledger-refund", "amount": "25"}
        assert len(guard) == 0

    def test_negative_amount_rejected(self, engine, account):
        with pytest.raises(ValueError):
            engine.receive("someone", -1)
        assert account.balance == 50
        assert engine.observations.entries == []

    def test_observations_chain_across_entry_points(self, engine, sign):
        first  = engine.receive("ledger-refund", 1)
        second = relay_settle(engine, sign(V1, 5, 1000))

        assert second.sequence == first.sequence + 1
        assert second.verify_chain(first)


class TestDurableCommit:

    @pytest.fixture
    def file_log(self, engine, engine_key, tmp_path):
        path = tmp_path / "observations.jsonl"
        engine.observations = ObservationLog(engine_key, path)
        return path

    def test_log_write_failure_leaves_signature_unconsumed(
        self, engine, sign, file_log, guard, ledger, account, monkeypatch,
    ):
        auth = sign(V1, 5, 1000)

        def disk_full(observations):
            raise StoreError("disk full")

        monkeypatch.setattr(engine.observations, "_append", disk_full)
        with pytest.raises(StoreError):
            relay_settle(engine, auth)

        assert not guard.is_consumed(auth.signature)
        assert V1 in ledger
        assert account.balance == 50

        monkeypatch.undo()
        relay_settle(engine, auth)
        assert guard.is_consumed(auth.signature)
        assert account.paid_to(RELAY) == 5

    def test_guard_commit_failure_truncates_log(
        self, engine, sign, file_log, guard, ledger, engine_key, monkeypatch,
    ):
        auth = sign(V1, 5, 1000)
        engine.receive("ledger-refund", 1)
        before = file_log.read_bytes()

        def store_down(key):
            raise StoreError("consumed store unavailable")

        monkeypatch.setattr(guard.store, "add", store_down)
        with pytest.raises(StoreError):
            relay_settle(engine, auth)

        assert file_log.read_bytes() == before
        assert len(engine.observations) == 1
        assert V1 in ledger

        monkeypatch.undo()
        relay_settle(engine, auth)
        summary = audit_log(file_log, expected_signer=engine_key.public_key_hex)
        assert summary.chain_valid
        assert summary.total_entries == 2
