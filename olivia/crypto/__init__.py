"""Key agreement, Rescue encryption and computation offsets."""

from .cipher import (
    CIPHERTEXT_BYTES,
    FIELD_PRIME,
    NONCE_BYTES,
    EncryptedPrediction,
    RescueCipher,
    encrypt_prediction,
    generate_nonce,
    nonce_to_int,
)
from .keys import (
    X25519_KEY_BYTES,
    EncryptionKeypair,
    derive_shared_secret,
    generate_encryption_keypair,
)
from .offsets import generate_computation_offset

__all__ = [
    "CIPHERTEXT_BYTES",
    "FIELD_PRIME",
    "NONCE_BYTES",
    "X25519_KEY_BYTES",
    "EncryptedPrediction",
    "EncryptionKeypair",
    "RescueCipher",
    "derive_shared_secret",
    "encrypt_prediction",
    "generate_computation_offset",
    "generate_encryption_keypair",
    "generate_nonce",
    "nonce_to_int",
]
