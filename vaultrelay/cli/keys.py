"""
vaultrelay keygen — create an owner key.
"""

from pathlib import Path

import click

from vaultrelay.core.crypto import Ed25519KeyManager


@click.command("keygen")
@click.option(
    "--out", "out_path",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="Where to write the PEM private key.",
)
@click.option("--force", is_flag=True, help="Overwrite an existing key file.")
def keygen_command(out_path: Path, force: bool) -> None:
    """Generate an Ed25519 key and print its public key hex."""
    if out_path.exists() and not force:
        raise click.ClickException(f"{out_path} exists; pass --force to overwrite")
    key = Ed25519KeyManager.generate()
    key.save(out_path)
    click.echo(key.public_key_hex)
