import asyncio
import time
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from olivia.arcium.mxe import (
    MXEKeyCache,
    MXEKeySource,
    RpcMXEKeySource,
    decode_mxe_public_key,
    fetch_mxe_public_key_with_retry,
)
from olivia.errors import KeyUnavailable, RPCError
from olivia.solana.rpc import AccountInfo

NETWORK_KEY = bytes(range(1, 33))


class ScriptedKeySource(MXEKeySource):
    """Returns (or raises) the scripted results in order, repeating the last."""

    def __init__(self, results: List):
        self.results = results
        self.calls = 0

    async def fetch(self, program_id) -> Optional[bytes]:
        result = self.results[min(self.calls, len(self.results) - 1)]
        self.calls += 1
        if isinstance(result, Exception):
            raise result
        return result


def test_retry_bound_when_key_never_arrives(program_id):
    source = ScriptedKeySource([RPCError("node down")])

    started = time.monotonic()
    with pytest.raises(KeyUnavailable):
        asyncio.run(
            fetch_mxe_public_key_with_retry(
                source, program_id, max_retries=4, retry_delay=0.05
            )
        )
    elapsed = time.monotonic() - started

    assert source.calls == 4
    assert elapsed >= 3 * 0.05


def test_succeeds_on_third_attempt(program_id):
    source = ScriptedKeySource([None, None, NETWORK_KEY])

    started = time.monotonic()
    key = asyncio.run(
        fetch_mxe_public_key_with_retry(source, program_id, max_retries=10, retry_delay=0.05)
    )
    elapsed = time.monotonic() - started

    assert key == NETWORK_KEY
    assert source.calls == 3
    assert 2 * 0.05 <= elapsed < 2 * 0.05 + 0.5


def test_first_success_needs_no_sleep(program_id):
    source = ScriptedKeySource([NETWORK_KEY])

    started = time.monotonic()
    key = asyncio.run(
        fetch_mxe_public_key_with_retry(source, program_id, max_retries=3, retry_delay=1.0)
    )

    assert key == NETWORK_KEY
    assert time.monotonic() - started < 0.5


def test_max_retries_must_be_positive(program_id):
    with pytest.raises(ValueError):
        asyncio.run(
            fetch_mxe_public_key_with_retry(
                ScriptedKeySource([NETWORK_KEY]), program_id, max_retries=0
            )
        )


def _rpc_with_account(data: Optional[bytes]):
    rpc = MagicMock()
    if data is None:
        rpc.get_account_info = AsyncMock(return_value=None)
    else:
        rpc.get_account_info = AsyncMock(
            return_value=AccountInfo(lamports=1, owner="11111111111111111111111111111111", data=data)
        )
    return rpc


DISCRIMINATOR = b"\xaa" * 8


def _mxe_account(cluster: bytes, key: bytes) -> bytes:
    return DISCRIMINATOR + cluster + key + b"\x00\x00\x00\x00" * 3 + b"\x00" + b"\xff"


@pytest.mark.parametrize(
    "cluster",
    [b"\x00", b"\x01" + (3).to_bytes(4, "little")],
    ids=["no-cluster", "cluster-set"],
)
def test_decode_reads_set_key_after_cluster(cluster):
    data = _mxe_account(cluster, b"\x00" + NETWORK_KEY)
    assert decode_mxe_public_key(data) == NETWORK_KEY


def test_decode_unset_key_is_unavailable():
    data = _mxe_account(b"\x00", b"\x01" + NETWORK_KEY + b"\x00\x00\x00\x00")
    assert decode_mxe_public_key(data) is None


@pytest.mark.parametrize(
    "data",
    [
        DISCRIMINATOR,
        DISCRIMINATOR + b"\x07",
        DISCRIMINATOR + b"\x00\x05" + NETWORK_KEY,
        DISCRIMINATOR + b"\x00\x00" + NETWORK_KEY[:16],
    ],
    ids=["truncated", "bad-option-tag", "bad-key-tag", "short-key"],
)
def test_decode_rejects_malformed_account(data):
    with pytest.raises(ValueError):
        decode_mxe_public_key(data)


def test_rpc_source_decodes_account(program_id):
    rpc = _rpc_with_account(_mxe_account(b"\x01" + bytes(4), b"\x00" + NETWORK_KEY))

    assert asyncio.run(RpcMXEKeySource(rpc).fetch(program_id)) == NETWORK_KEY


@pytest.mark.parametrize(
    "data",
    [None, _mxe_account(b"\x00", b"\x01" + bytes(32) + bytes(4))],
    ids=["missing-account", "unset-key"],
)
def test_rpc_source_reports_unavailable_key(program_id, data):
    source = RpcMXEKeySource(_rpc_with_account(data))
    assert asyncio.run(source.fetch(program_id)) is None


def test_malformed_account_counts_as_failed_attempt(program_id):
    source = RpcMXEKeySource(_rpc_with_account(DISCRIMINATOR))

    with pytest.raises(KeyUnavailable):
        asyncio.run(
            fetch_mxe_public_key_with_retry(source, program_id, max_retries=2, retry_delay=0.01)
        )


def test_key_cache_fetches_once(program_id):
    source = ScriptedKeySource([NETWORK_KEY])
    cache = MXEKeyCache()

    async def _twice():
        first = await cache.get(source, program_id, retry_delay=0.01)
        second = await cache.get(source, program_id, retry_delay=0.01)
        return first, second

    assert asyncio.run(_twice()) == (NETWORK_KEY, NETWORK_KEY)
    assert source.calls == 1

    cache.invalidate()
    assert cache.key is None
