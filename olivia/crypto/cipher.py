"""
Rescue counter-mode encryption of MXE inputs.

Plaintexts are integers in ``[0, p)`` with ``p = 2**255 - 19``. The cipher key
is derived from the X25519 shared secret with the Rescue-Prime hash, and
block ``i`` of the keystream is the Rescue encryption of ``[nonce, i, 0, 0,
0]``. Each ciphertext element is serialized as 32 little-endian bytes, the
``[u8; 32]`` layout the on-chain program stores. One shared secret must never
be used twice with the same nonce.
"""

from __future__ import annotations

import math
import secrets
from dataclasses import dataclass, field
from typing import List, Sequence

from ..errors import EncryptionFailed, KeyAgreementFailure
from .keys import derive_shared_secret, generate_encryption_keypair
from .rescue import (
    BLOCK_SIZE,
    CIPHER,
    FIELD_PRIME,
    RescueDesc,
    counter_blocks,
    derive_cipher_key,
)

CIPHERTEXT_BYTES = 32
NONCE_BYTES = 16
SHARED_SECRET_BYTES = 32


def generate_nonce() -> bytes:
    return secrets.token_bytes(NONCE_BYTES)


def nonce_to_int(nonce: bytes) -> int:
    """Read a nonce as the little-endian u128 the program expects."""
    return int.from_bytes(nonce, "little")


class RescueCipher:
    def __init__(self, shared_secret: bytes):
        if len(shared_secret) != SHARED_SECRET_BYTES:
            raise KeyAgreementFailure(
                f"Shared secret must be {SHARED_SECRET_BYTES} bytes, got {len(shared_secret)}"
            )
        self._desc = RescueDesc(CIPHER, key=derive_cipher_key(shared_secret))

    def __repr__(self) -> str:
        return "RescueCipher(<redacted>)"

    def _keystream(self, nonce: bytes, count: int) -> List[int]:
        if len(nonce) != NONCE_BYTES:
            raise EncryptionFailed(
                f"Nonce must be {NONCE_BYTES} bytes, got {len(nonce)}"
            )
        stream = []
        for block in counter_blocks(nonce_to_int(nonce), math.ceil(count / BLOCK_SIZE)):
            stream.extend(self._desc.permute(block))
        return stream[:count]

    def encrypt_raw(self, plaintext: Sequence[int], nonce: bytes) -> List[int]:
        for value in plaintext:
            if not 0 <= value < FIELD_PRIME:
                raise EncryptionFailed("Plaintext element outside the field")
        stream = self._keystream(nonce, len(plaintext))
        return [(value + k) % FIELD_PRIME for value, k in zip(plaintext, stream)]

    def encrypt(self, plaintext: Sequence[int], nonce: bytes) -> List[bytes]:
        return [
            value.to_bytes(CIPHERTEXT_BYTES, "little")
            for value in self.encrypt_raw(plaintext, nonce)
        ]

    def decrypt_raw(self, ciphertext: Sequence[int], nonce: bytes) -> List[int]:
        stream = self._keystream(nonce, len(ciphertext))
        return [(value - k) % FIELD_PRIME for value, k in zip(ciphertext, stream)]

    def decrypt(self, ciphertext: Sequence[bytes], nonce: bytes) -> List[int]:
        for block in ciphertext:
            if len(block) != CIPHERTEXT_BYTES:
                raise EncryptionFailed(
                    f"Ciphertext element must be {CIPHERTEXT_BYTES} bytes, got {len(block)}"
                )
        return self.decrypt_raw(
            [int.from_bytes(block, "little") for block in ciphertext], nonce
        )


@dataclass(frozen=True)
class EncryptedPrediction:
    ciphertext: bytes
    public_key: bytes
    nonce: bytes = field(repr=False)

    @property
    def nonce_value(self) -> int:
        return nonce_to_int(self.nonce)


def encrypt_prediction(prediction: bool, network_public_key: bytes) -> EncryptedPrediction:
    """
    Encrypt a yes/no prediction for the MXE.

    A fresh ephemeral keypair and nonce are drawn for every call. Only the
    ciphertext, the ephemeral public key and the nonce leave this function;
    the private key and shared secret go out of scope with it.

    Raises:
        KeyAgreementFailure: the network public key is malformed
    """
    if not isinstance(prediction, bool):
        raise TypeError("prediction must be a bool")

    keypair = generate_encryption_keypair()
    shared_secret = derive_shared_secret(keypair.private_key, network_public_key)
    cipher = RescueCipher(shared_secret)
    nonce = generate_nonce()
    ciphertext = cipher.encrypt([1 if prediction else 0], nonce)
    return EncryptedPrediction(
        ciphertext=ciphertext[0],
        public_key=keypair.public_key,
        nonce=nonce,
    )


__all__ = [
    "FIELD_PRIME",
    "CIPHERTEXT_BYTES",
    "NONCE_BYTES",
    "RescueCipher",
    "EncryptedPrediction",
    "encrypt_prediction",
    "generate_nonce",
    "nonce_to_int",
]
