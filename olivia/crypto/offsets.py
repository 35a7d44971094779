"""Computation offsets: random correlation ids for off-chain computations."""

import secrets

OFFSET_BYTES = 8


def generate_computation_offset() -> int:
    # Collisions between in-flight offsets are not checked.
    return int.from_bytes(secrets.token_bytes(OFFSET_BYTES), "big")


__all__ = ["OFFSET_BYTES", "generate_computation_offset"]
