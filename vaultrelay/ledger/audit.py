"""
vaultrelay/ledger/audit.py

Offline verification of an observation log.

Per entry, in file order:
    1. sequence == position          → "sequence_gap"
    2. causal_hash matches previous  → "chain_break"
    3. signature verifies            → "invalid_signature"
    4. signer matches expected key   → "foreign_signer"  (only if given)
    5. settlement bid is an integer  → "malformed_payload"

Malformed JSON or missing fields raise ValueError: a log that cannot be
parsed has no meaningful chain to report on.
"""

import json
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from vaultrelay.core.models import Observation, ObservationType


@dataclass
class AuditViolation:
    at_sequence:    int
    record_id:      str
    violation_type: str
    detail:         str


@dataclass
class AuditSummary:
    total_entries:     int
    chain_valid:       bool
    violations:        List[AuditViolation]
    event_counts:      Dict[str, int]
    settled_bid_total: int
    first_timestamp:   Optional[str]
    last_timestamp:    Optional[str]

    def to_dict(self) -> dict:
        return {
            "total_entries":     self.total_entries,
            "chain_valid":       self.chain_valid,
            "violations":        [v.__dict__ for v in self.violations],
            "event_counts":      self.event_counts,
            "settled_bid_total": str(self.settled_bid_total),
            "first_timestamp":   self.first_timestamp,
            "last_timestamp":    self.last_timestamp,
        }


def load_observations(path: Path) -> List[Observation]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Observation log not found: {path}")

    observations: List[Observation] = []
    with open(path, "r", encoding="utf-8") as f:
        for line_num, raw in enumerate(f, 1):
            raw = raw.strip()
            if not raw:
                continue
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ValueError(f"Malformed JSON at line {line_num}: {e}") from e
            try:
                observations.append(Observation.from_dict(data))
            except KeyError as e:
                raise ValueError(f"Missing field at line {line_num}: {e}") from e
    return observations


def audit_observations(
    observations:    List[Observation],
    expected_signer: Optional[str] = None,
) -> AuditSummary:
    violations: List[AuditViolation] = []
    counts:     Dict[str, int]       = defaultdict(int)
    bid_total = 0

    for i, obs in enumerate(observations):
        prev = observations[i - 1] if i > 0 else None

        if obs.sequence != i:
            violations.append(AuditViolation(
                i, obs.record_id, "sequence_gap",
                f"Expected sequence {i}, got {obs.sequence}",
            ))

        if not obs.verify_chain(prev):
            expected = Observation.chain_hash(prev)
            violations.append(AuditViolation(
                obs.sequence, obs.record_id, "chain_break",
                f"causal_hash mismatch: expected ...{expected[-12:]}, "
                f"got ...{str(obs.causal_hash)[-12:]}",
            ))

        if not obs.verify_signature():
            violations.append(AuditViolation(
                obs.sequence, obs.record_id, "invalid_signature",
                f"Signature invalid (signer: {str(obs.signer_public_key)[:16]}...)",
            ))
        elif expected_signer and obs.signer_public_key != expected_signer:
            violations.append(AuditViolation(
                obs.sequence, obs.record_id, "foreign_signer",
                f"Signed by {obs.signer_public_key[:16]}..., "
                f"expected {expected_signer[:16]}...",
            ))

        counts[obs.event] += 1
        if obs.event == ObservationType.SETTLEMENT_COMPLETED:
            try:
                bid_total += int(obs.payload.get("bid", 0))
            except (TypeError, ValueError):
                violations.append(AuditViolation(
                    obs.sequence, obs.record_id, "malformed_payload",
                    f"Non-numeric bid: {obs.payload.get('bid')!r}",
                ))

    return AuditSummary(
        total_entries=     len(observations),
        chain_valid=       not violations,
        violations=        violations,
        event_counts=      dict(counts),
        settled_bid_total= bid_total,
        first_timestamp=   observations[0].timestamp if observations else None,
        last_timestamp=    observations[-1].timestamp if observations else None,
    )


def audit_log(path: Path, expected_signer: Optional[str] = None) -> AuditSummary:
    """Load and audit an observation log file."""
    return audit_observations(load_observations(path), expected_signer)
