"""
Runtime context: wires an EngineConfig and the external collaborators
into a ready SettlementEngine.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from vaultrelay.authority.signature import SignatureAuthority
from vaultrelay.collaborators.interfaces import (
    PriceOracle,
    TokenGateway,
    ValueAccount,
    VaultLedger,
)
from vaultrelay.core.crypto import Ed25519KeyManager
from vaultrelay.core.exceptions import ConfigError
from vaultrelay.core.time import DeadlineClock
from vaultrelay.ledger.observations import ObservationLog
from vaultrelay.replay.guard import ReplayGuard
from vaultrelay.replay.store import JsonlConsumedStore, MemoryConsumedStore
from vaultrelay.runtime.config import EngineConfig
from vaultrelay.settlement.engine import SettlementEngine


@dataclass
class RuntimeContext:
    """Everything a host needs to run settlements."""

    config:       EngineConfig
    engine:       SettlementEngine
    engine_key:   Ed25519KeyManager

    @classmethod
    def build(
        cls,
        config:     EngineConfig,
        ledger:     VaultLedger,
        oracle:     PriceOracle,
        tokens:     TokenGateway,
        account:    ValueAccount,
        clock:      DeadlineClock,
        engine_key: Optional[Ed25519KeyManager] = None,
    ) -> "RuntimeContext":
        if ledger.address != config.ledger_address:
            raise ConfigError(
                "Vault ledger address does not match configuration",
                {"configured": config.ledger_address, "actual": ledger.address},
            )

        engine_key = engine_key or Ed25519KeyManager.generate()

        if config.consumed_store_path is not None:
            store = JsonlConsumedStore(config.consumed_store_path)
        else:
            store = MemoryConsumedStore()

        engine = SettlementEngine(
            relay_address=    config.relay_address,
            owner_address=    config.owner_address,
            owner_public_key= config.owner_public_key,
            authority=        SignatureAuthority(config.signing_domain()),
            replay_guard=     ReplayGuard(store),
            ledger=           ledger,
            oracle=           oracle,
            tokens=           tokens,
            account=          account,
            clock=            clock,
            observations=     ObservationLog(engine_key, config.observation_log_path),
        )
        return cls(config=config, engine=engine, engine_key=engine_key)

    @classmethod
    def from_config(
        cls,
        config_file: Path,
        ledger:      VaultLedger,
        oracle:      PriceOracle,
        tokens:      TokenGateway,
        account:     ValueAccount,
        clock:       DeadlineClock,
        key_path:    Optional[Path] = None,
    ) -> "RuntimeContext":
        """
        Build from a YAML file. The engine's observation-signing key is
        loaded from key_path, or generated and saved there if absent.
        """
        config = EngineConfig.from_yaml(config_file)

        engine_key = None
        if key_path is not None:
            key_path = Path(key_path)
            if key_path.exists():
                engine_key = Ed25519KeyManager.from_file(key_path)
            else:
                engine_key = Ed25519KeyManager.generate()
                engine_key.save(key_path)

        return cls.build(config, ledger, oracle, tokens, account, clock, engine_key)

    def __repr__(self) -> str:
        return (
            f"RuntimeContext(engine={self.config.engine_address!r}, "
            f"observations={len(self.engine.observations)})"
        )
