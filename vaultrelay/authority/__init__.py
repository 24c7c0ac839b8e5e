"""
vaultrelay Signature Authority

Decides whether an authorization was signed by the vault owner.
Stateless. Never raises on malformed input — an unverifiable
signature is a normal outcome, not an error.
"""

from vaultrelay.authority.signature import (
    SignatureAuthority,
    encode_authorization,
    sign_authorization,
)

__all__ = ["SignatureAuthority", "encode_authorization", "sign_authorization"]
