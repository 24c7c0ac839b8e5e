"""
vaultrelay/cli/__init__.py

vaultrelay CLI — root Click command group.

Registered in pyproject.toml as:

    [project.scripts]
    vaultrelay = "vaultrelay.cli:cli"

Adding a new command:
    1. Create vaultrelay/cli/your_command.py with a @click.command()
    2. Import it here
    3. cli.add_command(your_command)
"""

import logging

import click

from vaultrelay.cli.audit import audit_command
from vaultrelay.cli.authorize import check_command, sign_command
from vaultrelay.cli.keys import keygen_command


@click.group()
@click.version_option(package_name="vaultrelay")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
def cli(log_level: str) -> None:
    """
    vaultrelay — relay-authorized liquidation settlement.

    \b
    Commands:
      keygen    Create an Ed25519 owner key.
      sign      Sign a liquidation authorization as the vault owner.
      check     Validate an authorization the way the engine would.
      audit     Verify an observation log — chain and signatures.
    """
    logging.basicConfig(
        level=  getattr(logging, log_level.upper()),
        format= "%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


cli.add_command(keygen_command)
cli.add_command(sign_command)
cli.add_command(check_command)
cli.add_command(audit_command)
