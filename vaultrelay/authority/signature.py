"""
Owner signature verification for liquidation authorizations.

Digest layout (RFC 8785 canonical JSON):

    {
      "deadline": "<valid_until as decimal>",
      "domain":   SigningDomain.to_dict(),
      "message":  "<hex of encode_authorization(vault_id, bid)>"
    }

The message is the 64-byte big-endian pair (vault_id, bid). The deadline
is bound into the digest next to it, so a relay cannot stretch an
authorization's lifetime without invalidating the signature.
"""

import logging

from vaultrelay.core.canonical import canonicalize
from vaultrelay.core.crypto import Ed25519KeyManager
from vaultrelay.core.models import Authorization, SigningDomain, check_uint256

logger = logging.getLogger(__name__)


def encode_authorization(vault_id: int, bid: int) -> bytes:
    """Canonical message bytes: vault_id and bid as two 32-byte big-endian words."""
    check_uint256("vault_id", vault_id)
    check_uint256("bid", bid)
    return vault_id.to_bytes(32, "big") + bid.to_bytes(32, "big")


def _digest(domain: SigningDomain, message: bytes, deadline: int) -> bytes:
    return canonicalize({
        "deadline": str(deadline),
        "domain":   domain.to_dict(),
        "message":  bytes(message).hex(),
    })


class SignatureAuthority:
    """
    Verifies owner signatures within one signing domain.

    Injected into SettlementEngine so verification can be tested or
    substituted on its own.
    """

    def __init__(self, domain: SigningDomain):
        self.domain = domain

    def verify(
        self,
        signer:    str,
        message:   bytes,
        deadline:  int,
        signature: bytes,
    ) -> bool:
        """
        Return True iff signature is the signer's Ed25519 signature over
        the canonical digest of (domain, message, deadline).

        Args:
            signer:    64-char hex public key of the vault owner.
            message:   encode_authorization(vault_id, bid).
            deadline:  valid_until of the authorization.
            signature: raw signature bytes, expected 64 long.

        Returns False for any malformed argument.
        """
        if not isinstance(message, (bytes, bytearray)):
            return False
        if isinstance(deadline, bool) or not isinstance(deadline, int) or deadline < 0:
            return False

        ok = Ed25519KeyManager.verify_detached(
            _digest(self.domain, message, deadline), signature, signer
        )
        if not ok:
            logger.debug("signature rejected for signer %s...", str(signer)[:16])
        return ok

    def verify_authorization(self, signer: str, authorization: Authorization) -> bool:
        """verify() applied to an Authorization."""
        return self.verify(
            signer,
            encode_authorization(authorization.vault_id, authorization.bid),
            authorization.valid_until,
            authorization.signature,
        )

    def __repr__(self) -> str:
        return (
            f"SignatureAuthority(chain_id={self.domain.chain_id}, "
            f"engine={self.domain.engine_address!r})"
        )


def sign_authorization(
    key:         Ed25519KeyManager,
    domain:      SigningDomain,
    vault_id:    int,
    bid:         int,
    valid_until: int,
) -> Authorization:
    """Produce an owner-signed Authorization. Used by owners, tooling and tests."""
    message   = encode_authorization(vault_id, bid)
    signature = key.sign(_digest(domain, message, valid_until))
    return Authorization(
        vault_id=    vault_id,
        bid=         bid,
        valid_until= valid_until,
        signature=   signature,
    )
