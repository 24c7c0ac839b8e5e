"""
vaultrelay: Basic Usage Example

Demonstrates:
- Owner signs a liquidation authorization
- Relay forwards it, engine liquidates and pays the bid
- Replay and expiry rejection
- Observation log audit
"""

import tempfile
from pathlib import Path

from vaultrelay import (
    AuthorizationAlreadyUsed,
    Ed25519KeyManager,
    ExpiredAuthorization,
    ManualClock,
    ObservationLog,
    ReplayGuard,
    SettlementEngine,
    SignatureAuthority,
    SigningDomain,
    sign_authorization,
)
from vaultrelay.collaborators import (
    InMemoryPriceOracle,
    InMemoryTokenGateway,
    InMemoryValueAccount,
    InMemoryVaultLedger,
    VaultPosition,
)
from vaultrelay.ledger import audit_log
from vaultrelay.runtime import Relay

RELAY  = "relay-0x7f3a"
OWNER  = "owner-0x19c2"
ENGINE = "engine-0x88d4"
LEDGER = "ledger-0x5e01"


def main():
    print("=" * 60)
    print("vaultrelay: Basic Usage Example")
    print("=" * 60)
    print()

    workdir    = Path(tempfile.mkdtemp(prefix="vaultrelay-"))
    owner_key  = Ed25519KeyManager.generate()
    engine_key = Ed25519KeyManager.generate()
    domain     = SigningDomain(chain_id=1, engine_address=ENGINE)
    clock      = ManualClock(999)

    # 1. External collaborators
    tokens = InMemoryTokenGateway(owner=ENGINE)
    tokens.mint("TokenA", ENGINE, 1_000)
    oracle = InMemoryPriceOracle({"TokenA": 1, "TokenB": 1})
    ledger = InMemoryVaultLedger(LEDGER, tokens, oracle)
    ledger.open_vault(1, VaultPosition("TokenA", 100, "TokenB", 120))

    engine = SettlementEngine(
        relay_address=    RELAY,
        owner_address=    OWNER,
        owner_public_key= owner_key.public_key_hex,
        authority=        SignatureAuthority(domain),
        replay_guard=     ReplayGuard(),
        ledger=           ledger,
        oracle=           oracle,
        tokens=           tokens,
        account=          InMemoryValueAccount(balance=50),
        clock=            clock,
        observations=     ObservationLog(engine_key, workdir / "observations.jsonl"),
    )
    relay = Relay(engine)

    # 2. Owner authorizes vault 1 for a bid of 5 until marker 1000
    auth = sign_authorization(owner_key, domain, vault_id=1, bid=5, valid_until=1000)
    print(f"Authorization: {auth}")

    # 3. Relay forwards at marker 999
    obs = relay.submit(auth)
    print(f"Settled:       {obs.payload}")
    print(f"Relay paid:    {engine.account.paid_to(RELAY)}")
    print()

    # 4. Same authorization again
    try:
        relay.submit(auth)
    except AuthorizationAlreadyUsed as exc:
        print(f"Replay:        rejected ({exc})")

    # 5. A fresh authorization after its deadline
    ledger.open_vault(2, VaultPosition("TokenA", 100, "TokenB", 120))
    late = sign_authorization(owner_key, domain, vault_id=2, bid=5, valid_until=1000)
    clock.set(1001)
    try:
        relay.submit(late)
    except ExpiredAuthorization as exc:
        print(f"Expired:       rejected ({exc})")
    print()

    # 6. Audit the observation log
    summary = audit_log(workdir / "observations.jsonl", engine_key.public_key_hex)
    print(f"Audit:         {summary.total_entries} entries, intact={summary.chain_valid}")


if __name__ == "__main__":
    main()
