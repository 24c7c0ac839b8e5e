"""
vaultrelay audit — verify an observation log.

Exit codes:
    0  Log intact (chain + signatures)
    1  Log has violations
    2  Error  (file missing, malformed JSON)
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from vaultrelay.ledger.audit import audit_log


@click.command("audit")
@click.argument("log_path", type=click.Path(path_type=Path))
@click.option("--signer", default=None, help="Expected engine public key hex.")
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"]),
    default="human",
    show_default=True,
)
def audit_command(log_path: Path, signer: Optional[str], fmt: str) -> None:
    """Verify chain linkage and signatures of an observation log."""
    try:
        summary = audit_log(log_path, expected_signer=signer)
    except (FileNotFoundError, ValueError) as exc:
        click.echo(f"error: {exc}", err=True)
        sys.exit(2)

    if fmt == "json":
        click.echo(json.dumps(summary.to_dict(), indent=2))
    else:
        click.echo(f"Log:         {log_path}")
        click.echo(f"Entries:     {summary.total_entries}")
        for event, count in sorted(summary.event_counts.items()):
            click.echo(f"  {event:<22} {count}")
        click.echo(f"Bids paid:   {summary.settled_bid_total}")
        if summary.chain_valid:
            click.echo("Status:      INTACT")
        else:
            click.echo(f"Status:      {len(summary.violations)} violation(s)")
            for v in summary.violations:
                click.echo(f"  [{v.at_sequence}] {v.violation_type}: {v.detail}")

    sys.exit(0 if summary.chain_valid else 1)
