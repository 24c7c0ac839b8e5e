"""
Engine configuration, loaded from YAML.

Example:

    relay_address:        relay-0x7f3a
    owner_address:        owner-0x19c2
    owner_public_key:     3b6a27bc...   # 64 hex chars
    ledger_address:       ledger-0x5e01
    engine_address:       engine-0x88d4
    chain_id:             1
    consumed_store_path:  .vaultrelay/consumed.jsonl
    observation_log_path: .vaultrelay/observations.jsonl
    log_level:            INFO
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from vaultrelay.core.crypto import is_public_key_hex
from vaultrelay.core.exceptions import ConfigError
from vaultrelay.core.models import SigningDomain

_REQUIRED = (
    "relay_address",
    "owner_address",
    "owner_public_key",
    "ledger_address",
    "engine_address",
    "chain_id",
)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class EngineConfig:
    relay_address:        str
    owner_address:        str
    owner_public_key:     str
    ledger_address:       str
    engine_address:       str
    chain_id:             int
    consumed_store_path:  Optional[Path] = None
    observation_log_path: Optional[Path] = None
    log_level:            str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping")

        missing = [k for k in _REQUIRED if data.get(k) in (None, "")]
        if missing:
            raise ConfigError("Missing required configuration", {"keys": ",".join(missing)})

        public_key = str(data["owner_public_key"]).lower()
        if not is_public_key_hex(public_key):
            raise ConfigError("owner_public_key must be 64 hex characters")

        try:
            chain_id = int(data["chain_id"])
        except (TypeError, ValueError):
            raise ConfigError("chain_id must be an integer", {"chain_id": data["chain_id"]}) from None

        log_level = str(data.get("log_level", "INFO")).upper()
        if log_level not in _LOG_LEVELS:
            raise ConfigError("Unknown log_level", {"log_level": log_level})

        if data["relay_address"] == data["owner_address"]:
            raise ConfigError("relay_address and owner_address must differ")

        def _path(key: str) -> Optional[Path]:
            value = data.get(key)
            return Path(value) if value else None

        return cls(
            relay_address=        str(data["relay_address"]),
            owner_address=        str(data["owner_address"]),
            owner_public_key=     public_key,
            ledger_address=       str(data["ledger_address"]),
            engine_address=       str(data["engine_address"]),
            chain_id=             chain_id,
            consumed_store_path=  _path("consumed_store_path"),
            observation_log_path= _path("observation_log_path"),
            log_level=            log_level,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "EngineConfig":
        path = Path(path)
        if not path.exists():
            raise ConfigError("Config file not found", {"path": str(path)})
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid YAML: {exc}", {"path": str(path)}) from exc
        return cls.from_dict(data or {})

    def signing_domain(self) -> SigningDomain:
        return SigningDomain(chain_id=self.chain_id, engine_address=self.engine_address)

    def configure_logging(self) -> None:
        logging.basicConfig(
            level=  getattr(logging, self.log_level),
            format= "%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
