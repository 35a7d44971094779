"""Fetching the MXE network public key used for key agreement."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from solders.pubkey import Pubkey

from ..errors import KeyUnavailable
from ..solana.rpc import SolanaRPCClient
from .accounts import ARCIUM_PROGRAM_ID, mxe_address

logger = logging.getLogger(__name__)

MXE_KEY_MAX_RETRIES = 10
MXE_KEY_RETRY_DELAY = 0.5
MXE_KEY_BYTES = 32

ACCOUNT_DISCRIMINATOR_BYTES = 8
# Borsh tags of the runtime's SetUnset<[u8; 32]> enum.
KEY_SET = 0
KEY_UNSET = 1


def decode_mxe_public_key(data: bytes) -> Optional[bytes]:
    """
    Decode the X25519 key from raw MXE account data.

    The account starts with the Anchor discriminator, then ``cluster:
    Option<u32>``, then ``x25519_pubkey: SetUnset<[u8; 32]>``. Only the
    ``Set`` variant carries a usable key; ``Unset`` means keygen has not
    finished and yields ``None``.

    Raises:
        ValueError: the data is truncated or carries an unknown tag
    """
    cursor = ACCOUNT_DISCRIMINATOR_BYTES
    if len(data) < cursor + 1:
        raise ValueError(f"MXE account data too short ({len(data)} bytes)")

    cluster_tag = data[cursor]
    cursor += 1
    if cluster_tag == 1:
        cursor += 4
    elif cluster_tag != 0:
        raise ValueError(f"Invalid Option tag {cluster_tag} for MXE cluster")

    if len(data) < cursor + 1:
        raise ValueError(f"MXE account data too short ({len(data)} bytes)")
    key_tag = data[cursor]
    cursor += 1
    if key_tag == KEY_UNSET:
        return None
    if key_tag != KEY_SET:
        raise ValueError(f"Invalid SetUnset tag {key_tag} for MXE x25519 key")

    key = data[cursor : cursor + MXE_KEY_BYTES]
    if len(key) != MXE_KEY_BYTES:
        raise ValueError(f"MXE account data too short ({len(data)} bytes)")
    return bytes(key)


class MXEKeySource(ABC):
    @abstractmethod
    async def fetch(self, program_id: Pubkey) -> Optional[bytes]:
        """Return the published key, or ``None`` while it is not yet available."""
        raise NotImplementedError


class RpcMXEKeySource(MXEKeySource):
    """Reads the X25519 key out of the MXE account of ``program_id``."""

    def __init__(
        self,
        rpc: SolanaRPCClient,
        *,
        arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID,
    ):
        self.rpc = rpc
        self.arcium_program_id = arcium_program_id

    async def fetch(self, program_id: Pubkey) -> Optional[bytes]:
        address = mxe_address(program_id, self.arcium_program_id)
        info = await self.rpc.get_account_info(address)
        if info is None:
            logger.debug(f"MXE account {address} does not exist yet")
            return None
        key = decode_mxe_public_key(info.data)
        if key is None:
            logger.debug(f"MXE account {address} has no x25519 key set yet")
        return key


async def fetch_mxe_public_key_with_retry(
    source: MXEKeySource,
    program_id: Pubkey,
    *,
    max_retries: int = MXE_KEY_MAX_RETRIES,
    retry_delay: float = MXE_KEY_RETRY_DELAY,
) -> bytes:
    """
    Fetch the MXE public key, retrying with a fixed delay.

    Both a missing key and a failed fetch count as a failed attempt. There is
    no sleep after the last attempt, so the total wait is bounded by
    ``(max_retries - 1) * retry_delay`` plus the fetch time.

    Raises:
        KeyUnavailable: no key after ``max_retries`` attempts
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    for attempt in range(1, max_retries + 1):
        try:
            key = await source.fetch(program_id)
            if key:
                if attempt > 1:
                    logger.info(
                        f"MXE public key fetched on attempt {attempt}/{max_retries}"
                    )
                return bytes(key)
            logger.info(
                f"MXE public key not yet available (attempt {attempt}/{max_retries})"
            )
        except Exception as exc:
            logger.warning(
                f"Attempt {attempt}/{max_retries} failed to fetch MXE public key: {exc}"
            )

        if attempt < max_retries:
            logger.debug(f"Retrying in {retry_delay}s...")
            await asyncio.sleep(retry_delay)

    logger.error(f"MXE public key unavailable after {max_retries} attempts")
    raise KeyUnavailable(f"Failed to fetch MXE public key after {max_retries} attempts")


class MXEKeyCache:
    """
    Read-mostly holder for the network key of one client session.

    Concurrent cold reads may each fetch; the results are identical, so the
    last write wins without harm.
    """

    def __init__(self, key: Optional[bytes] = None):
        self._key = key

    @property
    def key(self) -> Optional[bytes]:
        return self._key

    def invalidate(self) -> None:
        self._key = None

    async def get(
        self,
        source: MXEKeySource,
        program_id: Pubkey,
        *,
        max_retries: int = MXE_KEY_MAX_RETRIES,
        retry_delay: float = MXE_KEY_RETRY_DELAY,
    ) -> bytes:
        if self._key is not None:
            return self._key
        key = await fetch_mxe_public_key_with_retry(
            source, program_id, max_retries=max_retries, retry_delay=retry_delay
        )
        self._key = key
        return key


__all__ = [
    "MXE_KEY_MAX_RETRIES",
    "MXE_KEY_RETRY_DELAY",
    "MXEKeySource",
    "RpcMXEKeySource",
    "MXEKeyCache",
    "decode_mxe_public_key",
    "fetch_mxe_public_key_with_retry",
]
