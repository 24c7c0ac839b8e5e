"""
vaultrelay sign / check — owner-side signing and relay-side validation.

Exit codes for check:
    0  Authorization would be accepted
    1  Authorization rejected (reason printed)
    2  Error  (bad config, unreadable file)
"""

import json
import sys
from pathlib import Path

import click

from vaultrelay.authority.signature import SignatureAuthority, sign_authorization
from vaultrelay.core.crypto import Ed25519KeyManager
from vaultrelay.core.exceptions import AuthorizationError, ConfigError, StoreError
from vaultrelay.core.models import UINT256_MAX, Authorization
from vaultrelay.core.time import ManualClock
from vaultrelay.replay.guard import ReplayGuard
from vaultrelay.replay.store import JsonlConsumedStore, MemoryConsumedStore
from vaultrelay.runtime.config import EngineConfig
from vaultrelay.settlement.engine import validate_authorization

_CONFIG = click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="Engine YAML configuration.",
)


@click.command("sign")
@_CONFIG
@click.option("--key", "key_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), required=True)
@click.option("--vault-id", type=click.IntRange(min=0, max=UINT256_MAX), required=True)
@click.option("--bid", type=click.IntRange(min=0, max=UINT256_MAX), required=True)
@click.option("--valid-until", type=click.IntRange(min=0, max=UINT256_MAX), required=True, help="Last valid deadline marker.")
def sign_command(config_path: Path, key_path: Path, vault_id: int, bid: int, valid_until: int) -> None:
    """Sign an authorization and print it as JSON."""
    try:
        config = EngineConfig.from_yaml(config_path)
        key    = Ed25519KeyManager.from_file(key_path)
    except (ConfigError, ValueError) as exc:
        raise click.ClickException(str(exc))

    if key.public_key_hex != config.owner_public_key:
        click.echo("warning: key does not match configured owner_public_key", err=True)

    try:
        authorization = sign_authorization(
            key, config.signing_domain(), vault_id, bid, valid_until
        )
    except (TypeError, ValueError) as exc:
        raise click.ClickException(str(exc))
    click.echo(json.dumps(authorization.to_dict(), indent=2))


@click.command("check")
@_CONFIG
@click.option(
    "--authorization", "authorization_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="Authorization JSON as printed by `vaultrelay sign`.",
)
@click.option("--marker", type=click.IntRange(min=0), required=True, help="Current deadline marker.")
def check_command(config_path: Path, authorization_path: Path, marker: int) -> None:
    """Validate signature, expiry and replay status without settling."""
    try:
        config        = EngineConfig.from_yaml(config_path)
        authorization = Authorization.from_dict(json.loads(authorization_path.read_text()))
        if config.consumed_store_path is not None:
            store = JsonlConsumedStore(config.consumed_store_path)
        else:
            store = MemoryConsumedStore()
    except (ConfigError, StoreError, ValueError, KeyError, TypeError) as exc:
        click.echo(f"error: {exc}", err=True)
        sys.exit(2)

    try:
        validate_authorization(
            SignatureAuthority(config.signing_domain()),
            ReplayGuard(store),
            ManualClock(marker),
            config.owner_public_key,
            authorization.vault_id,
            authorization.bid,
            authorization.valid_until,
            authorization.signature,
        )
    except AuthorizationError as exc:
        click.echo(f"REJECTED {type(exc).__name__}: {exc}")
        sys.exit(1)

    click.echo(
        f"VALID vault={authorization.vault_id} bid={authorization.bid} "
        f"valid_until={authorization.valid_until}"
    )
