import asyncio
import base64
import time
from typing import List, Optional

import pytest

from olivia.arcium.accounts import ARCIUM_PROGRAM_ID
from olivia.arcium.finalization import (
    FINALIZE_EVENT_DISCRIMINATOR,
    FinalizationSource,
    RpcFinalizationSource,
    await_computation_finalization,
    decode_finalize_events,
)
from olivia.errors import FinalizationRejected, FinalizationTimeout, RPCError

from rpc_mocks import build_rpc, rpc_router


def finalize_log(offset: int, program_id) -> str:
    raw = FINALIZE_EVENT_DISCRIMINATOR + offset.to_bytes(8, "little") + bytes(program_id)
    return "Program data: " + base64.b64encode(raw).decode()


class ScriptedFinalization(FinalizationSource):
    def __init__(self, results: List):
        self.results = results
        self.polls = 0
        self.released = []

    async def poll(self, computation_offset, program_id, commitment) -> Optional[str]:
        result = self.results[min(self.polls, len(self.results) - 1)]
        self.polls += 1
        if isinstance(result, Exception):
            raise result
        return result

    def release(self, computation_offset) -> None:
        self.released.append(computation_offset)


def test_decode_finalize_events_skips_unrelated_lines(program_id):
    logs = [
        f"Program {ARCIUM_PROGRAM_ID} invoke [1]",
        "Program log: Instruction: Callback",
        "Program data: not-base64!!",
        "Program data: " + base64.b64encode(b"\x00" * 48).decode(),
        finalize_log(77, program_id),
    ]

    assert decode_finalize_events(logs) == [(77, program_id)]


def _finalization_rpc(program_id, transactions, calls=None):
    return build_rpc(
        rpc_router(
            {
                "getSignaturesForAddress": [
                    {"signature": signature, "slot": 1, "err": None}
                    for signature in transactions
                ],
                "getTransaction": lambda params: transactions[params[0]],
            },
            calls,
        )
    )


def test_rpc_source_finds_finalize_transaction(program_id):
    transactions = {
        "queue-sig": {"meta": {"err": None, "logMessages": ["Program log: queued"]}},
        "final-sig": {"meta": {"err": None, "logMessages": [finalize_log(9, program_id)]}},
    }
    source = RpcFinalizationSource(_finalization_rpc(program_id, transactions))

    assert asyncio.run(source.poll(9, program_id, "confirmed")) == "final-sig"
    assert source._checked == {}


def test_rpc_source_ignores_other_offsets_and_remembers_checked(program_id):
    calls = []
    transactions = {
        "other": {"meta": {"err": None, "logMessages": [finalize_log(8, program_id)]}},
    }
    source = RpcFinalizationSource(_finalization_rpc(program_id, transactions, calls))

    async def _poll_twice():
        first = await source.poll(9, program_id, "confirmed")
        second = await source.poll(9, program_id, "confirmed")
        return first, second

    assert asyncio.run(_poll_twice()) == (None, None)
    assert [call["method"] for call in calls].count("getTransaction") == 1


def test_rpc_source_reports_rejection_with_reason(program_id):
    transactions = {
        "failed": {
            "meta": {
                "err": {"InstructionError": [0, {"Custom": 6000}]},
                "logMessages": [
                    f"Program {ARCIUM_PROGRAM_ID} invoke [1]",
                    "Program log: AnchorError occurred. Error Code: AbortedComputation. "
                    "Error Number: 6000. Error Message: The computation was aborted.",
                    finalize_log(9, program_id),
                ],
            }
        }
    }
    source = RpcFinalizationSource(_finalization_rpc(program_id, transactions))

    with pytest.raises(FinalizationRejected) as exc_info:
        asyncio.run(source.poll(9, program_id, "confirmed"))
    assert exc_info.value.reason == "The computation was aborted"
    assert "aborted" in str(exc_info.value)
    assert source._checked == {}


def test_waiter_times_out_without_finalization(program_id):
    source = ScriptedFinalization([None])

    started = time.monotonic()
    with pytest.raises(FinalizationTimeout):
        asyncio.run(
            await_computation_finalization(
                source, 1, program_id, timeout=0.3, poll_interval=0.02
            )
        )
    elapsed = time.monotonic() - started

    assert 0.3 <= elapsed < 1.5
    assert source.polls > 1
    assert source.released == [1]


def test_waiter_survives_transient_rpc_errors(program_id):
    source = ScriptedFinalization([RPCError("timeout"), None, "final-sig"])

    signature = asyncio.run(
        await_computation_finalization(source, 1, program_id, timeout=1.0, poll_interval=0.01)
    )

    assert signature == "final-sig"
    assert source.polls == 3
    assert source.released == [1]


def test_waiter_propagates_rejection_immediately(program_id):
    source = ScriptedFinalization([FinalizationRejected("bad payload", reason="bad payload")])

    started = time.monotonic()
    with pytest.raises(FinalizationRejected):
        asyncio.run(
            await_computation_finalization(source, 1, program_id, timeout=5.0, poll_interval=0.01)
        )
    assert time.monotonic() - started < 1.0


def test_rpc_source_keeps_no_state_for_settled_offsets(program_id):
    transactions = {
        "final-9": {"meta": {"err": None, "logMessages": [finalize_log(9, program_id)]}},
        "final-10": {"meta": {"err": None, "logMessages": [finalize_log(10, program_id)]}},
    }
    source = RpcFinalizationSource(_finalization_rpc(program_id, transactions))

    async def _settle_both():
        return (
            await source.poll(9, program_id, "confirmed"),
            await source.poll(10, program_id, "confirmed"),
            await source.poll(11, program_id, "confirmed"),
        )

    assert asyncio.run(_settle_both()) == ("final-9", "final-10", None)
    assert set(source._checked) == {11}

    source.release(11)
    assert source._checked == {}
