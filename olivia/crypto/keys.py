"""X25519 key agreement with the MXE network key."""

from __future__ import annotations

from dataclasses import dataclass, field

import nacl.bindings
from nacl.exceptions import CryptoError
from nacl.public import PrivateKey

from ..errors import KeyAgreementFailure

X25519_KEY_BYTES = 32


@dataclass(frozen=True)
class EncryptionKeypair:
    """Ephemeral single-use keypair. Never derived from wallet key material."""

    private_key: bytes = field(repr=False)
    public_key: bytes


def generate_encryption_keypair() -> EncryptionKeypair:
    private_key = PrivateKey.generate()
    return EncryptionKeypair(
        private_key=bytes(private_key),
        public_key=bytes(private_key.public_key),
    )


def validate_public_key(public_key: bytes) -> bytes:
    if not isinstance(public_key, (bytes, bytearray)):
        raise KeyAgreementFailure(
            f"Network public key must be bytes, got {type(public_key).__name__}"
        )
    if len(public_key) != X25519_KEY_BYTES:
        raise KeyAgreementFailure(
            f"Network public key must be {X25519_KEY_BYTES} bytes, got {len(public_key)}"
        )
    return bytes(public_key)


def derive_shared_secret(private_key: bytes, network_public_key: bytes) -> bytes:
    """Compute ``X25519(private_key, network_public_key)``.

    Raises ``KeyAgreementFailure`` for malformed keys, including low-order
    points that would yield an all-zero secret.
    """
    if len(private_key) != X25519_KEY_BYTES:
        raise KeyAgreementFailure(
            f"Private key must be {X25519_KEY_BYTES} bytes, got {len(private_key)}"
        )
    public_key = validate_public_key(network_public_key)
    try:
        return nacl.bindings.crypto_scalarmult(private_key, public_key)
    except CryptoError as exc:
        raise KeyAgreementFailure(f"Key agreement failed: {exc}") from exc


__all__ = [
    "X25519_KEY_BYTES",
    "EncryptionKeypair",
    "generate_encryption_keypair",
    "validate_public_key",
    "derive_shared_secret",
]
