"""
Rescue over the Curve25519 base field ``p = 2**255 - 19``.

Two instances share one permutation:

* the Rescue block cipher (state of 5 elements, key schedule driven by the
  key), used in counter mode to encrypt inputs for the MXE;
* the Rescue-Prime sponge hash (state of 12, rate 7, capacity 5, digest of
  5), used to turn an X25519 shared secret into a cipher key.

Round counts follow the Rescue and Rescue-Prime papers
(https://eprint.iacr.org/2019/426, https://eprint.iacr.org/2020/1143). Round
constants are sampled from SHAKE256 with 16 bytes of oversampling per field
element. The MDS matrix is the Cauchy matrix ``1 / (i + j)`` for
``i, j = 1..m``.
"""

from __future__ import annotations

import hashlib
import math
from functools import lru_cache
from typing import List, Sequence, Tuple

FIELD_PRIME = 2**255 - 19

BLOCK_SIZE = 5
HASH_STATE_SIZE = 12
HASH_CAPACITY = 5
HASH_RATE = HASH_STATE_SIZE - HASH_CAPACITY
HASH_DIGEST_LENGTH = 5

SECURITY_LEVEL_BLOCK_CIPHER = 128
SECURITY_LEVEL_HASH_FUNCTION = 256

CIPHER_CONSTANTS_SEED = b"encrypt everything, compute anything"

CIPHER = "cipher"
HASH = "hash"

Vector = List[int]
Matrix = List[List[int]]


def _alpha_and_inverse(p: int) -> Tuple[int, int]:
    """Smallest prime ``alpha`` with ``gcd(alpha, p - 1) == 1`` and its inverse."""
    for alpha in (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47):
        if (p - 1) % alpha != 0:
            return alpha, pow(alpha, -1, p - 1)
    raise ValueError(f"No small S-box exponent for p = {p}")


def _cipher_rounds(p: int, alpha: int, m: int) -> int:
    l0 = math.ceil(
        (2 * SECURITY_LEVEL_BLOCK_CIPHER)
        / ((m + 1) * (math.log2(p) - math.log2(alpha - 1)))
    )
    if alpha == 3:
        l1 = math.ceil((SECURITY_LEVEL_BLOCK_CIPHER + 2) / (4 * m))
    else:
        l1 = math.ceil((SECURITY_LEVEL_BLOCK_CIPHER + 3) / (5.5 * m))
    return 2 * max(l0, l1, 5)


def _hash_rounds(alpha: int, m: int, capacity: int) -> int:
    # Groebner basis bound, floored at 5 and with a 50% margin.
    rate = m - capacity
    target = 2**SECURITY_LEVEL_HASH_FUNCTION

    def dcon(n: int) -> int:
        return math.floor(0.5 * (alpha - 1) * m * (n - 1) + 2.0)

    def v(n: int) -> int:
        return m * (n - 1) + rate

    l1 = 1
    tmp = math.comb(v(l1) + dcon(l1), v(l1))
    while tmp * tmp <= target and l1 <= 23:
        l1 += 1
        tmp = math.comb(v(l1) + dcon(l1), v(l1))
    return math.ceil(1.5 * max(5, l1))


def _cauchy_matrix(p: int, m: int) -> Matrix:
    return [[pow(i + j, -1, p) for j in range(1, m + 1)] for i in range(1, m + 1)]


def _mat_vec(p: int, matrix: Matrix, vector: Sequence[int]) -> Vector:
    return [sum(a * b for a, b in zip(row, vector)) % p for row in matrix]


def _vec_add(p: int, left: Sequence[int], right: Sequence[int]) -> Vector:
    return [(a + b) % p for a, b in zip(left, right)]


def _is_invertible(p: int, matrix: Matrix) -> bool:
    rows = [list(row) for row in matrix]
    size = len(rows)
    for col in range(size):
        pivot = next((r for r in range(col, size) if rows[r][col] % p), None)
        if pivot is None:
            return False
        rows[col], rows[pivot] = rows[pivot], rows[col]
        inverse = pow(rows[col][col], -1, p)
        for r in range(col + 1, size):
            factor = rows[r][col] * inverse % p
            if factor:
                rows[r] = [(a - factor * b) % p for a, b in zip(rows[r], rows[col])]
    return True


class _ShakeStream:
    """Sequential reads from one SHAKE256 output stream."""

    def __init__(self, seed: bytes):
        self._seed = seed
        self._buffer = b""
        self._position = 0

    def read(self, length: int) -> bytes:
        end = self._position + length
        if end > len(self._buffer):
            size = max(end, 2 * len(self._buffer))
            self._buffer = hashlib.shake_256(self._seed).digest(size)
        chunk = self._buffer[self._position : end]
        self._position = end
        return chunk

    def field_element(self, p: int) -> int:
        byte_length = math.ceil(p.bit_length() / 8) + 16
        return int.from_bytes(self.read(byte_length), "little") % p


def _cipher_round_constants(p: int, m: int, n_rounds: int) -> List[Vector]:
    stream = _ShakeStream(CIPHER_CONSTANTS_SEED)
    elements = [stream.field_element(p) for _ in range(m * m + 2 * m)]
    matrix = [elements[row * m : (row + 1) * m] for row in range(m)]
    initial = elements[m * m : m * m + m]
    affine = elements[m * m + m :]

    while not _is_invertible(p, matrix):
        resampled = [stream.field_element(p) for _ in range(m * m)]
        matrix = [resampled[row * m : (row + 1) * m] for row in range(m)]

    constants = [initial]
    for r in range(2 * n_rounds):
        constants.append(_vec_add(p, _mat_vec(p, matrix, constants[r]), affine))
    return constants


def _hash_round_constants(p: int, m: int, capacity: int, n_rounds: int) -> List[Vector]:
    seed = f"Rescue-XLIX({p},{m},{capacity},{SECURITY_LEVEL_HASH_FUNCTION})"
    stream = _ShakeStream(seed.encode("ascii"))
    elements = [stream.field_element(p) for _ in range(2 * m * n_rounds)]
    # A leading zero vector gives the odd number of keys the permutation takes.
    constants = [[0] * m]
    for r in range(2 * n_rounds):
        constants.append(elements[r * m : (r + 1) * m])
    return constants


class RescueDesc:
    """
    One Rescue instance: S-box exponents, MDS matrix and round keys.

    The block cipher applies ``x ** (1 / alpha)`` in even half-rounds and
    ``x ** alpha`` in odd ones; Rescue-Prime uses the opposite order.
    """

    def __init__(
        self,
        mode: str,
        *,
        key: Sequence[int] = (),
        capacity: int = HASH_CAPACITY,
        m: int = HASH_STATE_SIZE,
    ):
        self.p = FIELD_PRIME
        self.mode = mode
        if mode == CIPHER:
            if len(key) < 2:
                raise ValueError("Rescue cipher key needs at least 2 elements")
            self.m = len(key)
        elif mode == HASH:
            self.m = m
        else:
            raise ValueError(f"Unknown Rescue mode {mode!r}")

        self.alpha, self.alpha_inverse = _alpha_and_inverse(self.p)
        self.mds = _cauchy_matrix(self.p, self.m)

        if mode == CIPHER:
            self.n_rounds = _cipher_rounds(self.p, self.alpha, self.m)
            constants = _cipher_round_constants(self.p, self.m, self.n_rounds)
            key_vector = [k % self.p for k in key]
            self.round_keys = self._permutation(constants, key_vector)
        else:
            self.n_rounds = _hash_rounds(self.alpha, self.m, capacity)
            self.round_keys = _hash_round_constants(
                self.p, self.m, capacity, self.n_rounds
            )

    def _permutation(
        self, subkeys: Sequence[Sequence[int]], state: Sequence[int]
    ) -> List[Vector]:
        if self.mode == CIPHER:
            even, odd = self.alpha_inverse, self.alpha
        else:
            even, odd = self.alpha, self.alpha_inverse
        states = [_vec_add(self.p, state, subkeys[0])]
        for r in range(len(subkeys) - 1):
            exponent = even if r % 2 == 0 else odd
            powered = [pow(x, exponent, self.p) for x in states[r]]
            mixed = _mat_vec(self.p, self.mds, powered)
            states.append(_vec_add(self.p, mixed, subkeys[r + 1]))
        return states

    def permute(self, state: Sequence[int]) -> Vector:
        if len(state) != self.m:
            raise ValueError(f"Rescue state must have {self.m} elements, got {len(state)}")
        return self._permutation(self.round_keys, state)[-1]


@lru_cache(maxsize=1)
def _hash_desc() -> RescueDesc:
    return RescueDesc(HASH, m=HASH_STATE_SIZE, capacity=HASH_CAPACITY)


class RescuePrimeHash:
    """Rescue-Prime sponge with rate 7 and capacity 5, truncated to 5 elements."""

    rate = HASH_RATE
    digest_length = HASH_DIGEST_LENGTH

    def __init__(self):
        self.desc = _hash_desc()

    def digest(self, message: Sequence[int]) -> Vector:
        p = self.desc.p
        padded = [value % p for value in message] + [1]
        while len(padded) % self.rate:
            padded.append(0)

        state = [0] * self.desc.m
        for start in range(0, len(padded), self.rate):
            block = padded[start : start + self.rate] + [0] * (self.desc.m - self.rate)
            state = self.desc.permute(_vec_add(p, state, block))
        return state[: self.digest_length]


def derive_cipher_key(shared_secret: bytes) -> Vector:
    """
    One-step key derivation (NIST SP 800-56C rev. 2, section 4, option 1).

    With a single repetition the hashed input is ``counter || Z`` with
    ``counter = 1`` and no fixed info; ``Z`` is the shared secret read as a
    little-endian field element.
    """
    counter = 1
    z = int.from_bytes(shared_secret, "little") % FIELD_PRIME
    return RescuePrimeHash().digest([counter, z])


def counter_blocks(nonce: int, n_blocks: int) -> List[Vector]:
    return [[nonce, index] + [0] * (BLOCK_SIZE - 2) for index in range(n_blocks)]


__all__ = [
    "BLOCK_SIZE",
    "FIELD_PRIME",
    "RescueDesc",
    "RescuePrimeHash",
    "counter_blocks",
    "derive_cipher_key",
]
