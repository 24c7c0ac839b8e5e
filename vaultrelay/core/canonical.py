"""
vaultrelay: Canonical JSON Encoding — RFC 8785 (JCS)

This is the ONLY canonicalization permitted in vaultrelay.
Authorization digests, observation signatures and chain hashes
MUST all go through this module.

RFC 8785: https://www.rfc-editor.org/rfc/rfc8785

uint256 quantities are carried as decimal strings inside canonical
dicts. JCS serializes numbers as IEEE-754 doubles, which cannot hold
values above 2**53 exactly.
"""

import hashlib

try:
    import jcs as _jcs
except ImportError as exc:
    raise ImportError(
        "vaultrelay requires the 'jcs' package for RFC 8785 compliance.\n"
        "Install with: pip install jcs\n"
        f"Original error: {exc}"
    ) from exc


def canonicalize(obj: dict) -> bytes:
    """
    Encode a dict to RFC 8785 canonical JSON bytes.

    Output is deterministic regardless of key insertion order.
    All values must be JSON-primitive (str, int, float, bool, None, list, dict).

    Returns:
        UTF-8 encoded canonical JSON bytes, suitable for signing.
    """
    return _jcs.canonicalize(obj)


def canonical_hash(obj: dict) -> str:
    """
    SHA-256 of the RFC 8785 canonical form.

    Used for observation chaining.

    Returns:
        Lowercase hex-encoded SHA-256 digest (64 characters).
    """
    return hashlib.sha256(canonicalize(obj)).hexdigest()
