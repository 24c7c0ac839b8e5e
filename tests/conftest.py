"""
Shared fixtures: one engine wired to in-memory collaborators.

Vault 1 owes 100 TokenA against 120 TokenB. At 1:1 prices and a 150%
requirement it is liquidatable. Vault 2 owes 100 TokenA against 200
TokenB and is healthy until TokenA reprices.
"""

import pytest

from vaultrelay.authority.signature import SignatureAuthority, sign_authorization
from vaultrelay.collaborators.memory import (
    InMemoryPriceOracle,
    InMemoryTokenGateway,
    InMemoryValueAccount,
    InMemoryVaultLedger,
    VaultPosition,
)
from vaultrelay.core.crypto import Ed25519KeyManager
from vaultrelay.core.models import SigningDomain
from vaultrelay.core.time import ManualClock
from vaultrelay.ledger.observations import ObservationLog
from vaultrelay.replay.guard import ReplayGuard
from vaultrelay.settlement.engine import SettlementEngine

RELAY  = "relay-0x7f3a"
OWNER  = "owner-0x19c2"
ENGINE = "engine-0x88d4"
LEDGER = "ledger-0x5e01"

V1 = 1
V2 = 2


@pytest.fixture
def owner_key():
    return Ed25519KeyManager.generate()


@pytest.fixture
def engine_key():
    return Ed25519KeyManager.generate()


@pytest.fixture
def domain():
    return SigningDomain(chain_id=1, engine_address=ENGINE)


@pytest.fixture
def clock():
    return ManualClock(999)


@pytest.fixture
def tokens():
    gateway = InMemoryTokenGateway(owner=ENGINE)
    gateway.mint("TokenA", ENGINE, 1_000)
    return gateway


@pytest.fixture
def oracle():
    return InMemoryPriceOracle({"TokenA": 1, "TokenB": 1})


@pytest.fixture
def ledger(tokens, oracle):
    vaults = InMemoryVaultLedger(LEDGER, tokens, oracle)
    vaults.open_vault(V1, VaultPosition("TokenA", 100, "TokenB", 120))
    vaults.open_vault(V2, VaultPosition("TokenA", 100, "TokenB", 200))
    return vaults


@pytest.fixture
def account():
    return InMemoryValueAccount(balance=50)


@pytest.fixture
def guard():
    return ReplayGuard()


@pytest.fixture
def engine(owner_key, engine_key, domain, clock, tokens, oracle, ledger, account, guard):
    return SettlementEngine(
        relay_address=    RELAY,
        owner_address=    OWNER,
        owner_public_key= owner_key.public_key_hex,
        authority=        SignatureAuthority(domain),
        replay_guard=     guard,
        ledger=           ledger,
        oracle=           oracle,
        tokens=           tokens,
        account=          account,
        clock=            clock,
        observations=     ObservationLog(engine_key),
    )


@pytest.fixture
def sign(owner_key, domain):
    """sign(vault_id, bid, valid_until) -> Authorization signed by the owner."""
    def _sign(vault_id, bid, valid_until):
        return sign_authorization(owner_key, domain, vault_id, bid, valid_until)
    return _sign
