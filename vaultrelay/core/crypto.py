"""
vaultrelay/core/crypto.py

Owner and engine key material — Ed25519.

Key contracts:
    public_key_hex          : @property → 64-char lowercase hex  (NO parentheses)
    sign(data)              : bytes → raw 64-byte signature
    verify_detached(...)    : @staticmethod — verifies with ONLY a pubkey hex string

Authorizations carry their signature as opaque bytes, so this layer never
re-encodes signatures. Callers that need text (CLI, JSON) use .hex().
"""

from pathlib import Path

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_pem_private_key,
)


SIGNATURE_LENGTH      = 64
PUBLIC_KEY_HEX_LENGTH = 64


class Ed25519KeyManager:
    """
    Ed25519 key manager for vault owners and the settlement engine.

    Public surface:
        Ed25519KeyManager.generate()                        → new random key
        Ed25519KeyManager.from_file(path)                   → load PEM private key
        Ed25519KeyManager.from_private_bytes(seed)          → load from raw 32-byte seed
        Ed25519KeyManager.verify_detached(data, sig, hex)   → @staticmethod, no instance needed

        key.public_key_hex          (@property) → 64-char lowercase hex
        key.sign(data: bytes)                   → raw 64-byte signature
        key.save(path)                          → write PEM private key
    """

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key:    Ed25519PrivateKey = private_key
        self._public_key:     Ed25519PublicKey  = private_key.public_key()
        self._public_key_hex: str = (
            self._public_key
            .public_bytes(Encoding.Raw, PublicFormat.Raw)
            .hex()
        )

    # ── Construction ──────────────────────────────────────────

    @classmethod
    def generate(cls) -> "Ed25519KeyManager":
        """Generate a new random Ed25519 key pair."""
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_file(cls, path: Path) -> "Ed25519KeyManager":
        """
        Load an Ed25519 private key from a PEM file.
        Raises FileNotFoundError if path does not exist.
        Raises ValueError if the file is not a valid Ed25519 PEM key.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Key file not found: {path}")
        try:
            private_key = load_pem_private_key(path.read_bytes(), password=None)
        except (ValueError, TypeError) as exc:
            raise ValueError(
                f"Failed to load Ed25519 key from {path}: {exc}"
            ) from exc
        if not isinstance(private_key, Ed25519PrivateKey):
            raise ValueError(
                f"Key file {path} does not contain an Ed25519 private key"
            )
        return cls(private_key)

    @classmethod
    def from_private_bytes(cls, seed: bytes) -> "Ed25519KeyManager":
        """
        Load an Ed25519 key from a raw 32-byte seed.
        Raises ValueError if seed is not exactly 32 bytes.
        """
        if len(seed) != 32:
            raise ValueError(
                f"Ed25519 seed must be 32 bytes, got {len(seed)}"
            )
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    # ── Public Key ────────────────────────────────────────────

    @property
    def public_key_hex(self) -> str:
        """64-character lowercase hex string of the Ed25519 public key."""
        return self._public_key_hex

    # ── Signing ───────────────────────────────────────────────

    def sign(self, data: bytes) -> bytes:
        """
        Sign data with Ed25519. Returns the raw 64-byte signature.

        Caller is responsible for canonicalization.
        """
        return self._private_key.sign(data)

    # ── Verification ──────────────────────────────────────────

    @staticmethod
    def verify_detached(
        data:           bytes,
        signature:      bytes,
        public_key_hex: str,
    ) -> bool:
        """
        Verify an Ed25519 signature using ONLY a public key hex string.

        Returns:
            True if the signature is valid over data with the given public key.
            False for ANY failure — wrong key, wrong type, wrong length,
            corrupted signature. Never raises.
        """
        if not isinstance(signature, (bytes, bytearray)):
            return False
        if len(signature) != SIGNATURE_LENGTH:
            return False
        if (
            not isinstance(public_key_hex, str)
            or len(public_key_hex) != PUBLIC_KEY_HEX_LENGTH
        ):
            return False

        try:
            pub = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
            pub.verify(bytes(signature), data)
        except (InvalidSignature, ValueError, TypeError):
            return False
        return True

    # ── Persistence ───────────────────────────────────────────

    def save(self, path: Path) -> None:
        """
        Write the private key to disk as a PEM file.
        Creates parent directories if needed.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        pem = self._private_key.private_bytes(
            encoding=             Encoding.PEM,
            format=               PrivateFormat.PKCS8,
            encryption_algorithm= NoEncryption(),
        )
        path.write_bytes(pem)

    def __repr__(self) -> str:
        return (
            f"Ed25519KeyManager(public_key_hex={self._public_key_hex[:16]}...)"
        )


def is_public_key_hex(value) -> bool:
    """True iff value is a 64-char hex string."""
    if not isinstance(value, str) or len(value) != PUBLIC_KEY_HEX_LENGTH:
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True
