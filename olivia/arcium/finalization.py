"""
Waiting for an off-chain computation to be finalized on-chain.

The MPC runtime finalizes a computation with a transaction that touches the
computation account and emits ``FinalizeComputationEvent`` (an Anchor event,
logged as ``Program data: <base64>``) naming the computation offset and the
requesting program. The program's callback runs in that same transaction, so
a failed finalize transaction means the computation was rejected.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from solders.pubkey import Pubkey

from ..errors import FinalizationRejected, FinalizationTimeout, RPCError
from ..solana.rpc import SolanaRPCClient
from .accounts import ARCIUM_PROGRAM_ID, computation_address

logger = logging.getLogger(__name__)

FINALIZE_EVENT_NAME = "FinalizeComputationEvent"
FINALIZE_EVENT_DISCRIMINATOR = hashlib.sha256(
    f"event:{FINALIZE_EVENT_NAME}".encode()
).digest()[:8]
PROGRAM_DATA_PREFIX = "Program data: "

DEFAULT_FINALIZATION_TIMEOUT = 60.0
DEFAULT_POLL_INTERVAL = 1.0


def decode_finalize_events(logs: Iterable[str]) -> List[Tuple[int, Pubkey]]:
    """Return ``(computation_offset, program_id)`` for each finalize event in ``logs``."""
    events: List[Tuple[int, Pubkey]] = []
    for line in logs:
        if not line.startswith(PROGRAM_DATA_PREFIX):
            continue
        try:
            raw = base64.b64decode(line[len(PROGRAM_DATA_PREFIX) :], validate=True)
        except (binascii.Error, ValueError):
            continue
        if len(raw) < 48 or raw[:8] != FINALIZE_EVENT_DISCRIMINATOR:
            continue
        offset = int.from_bytes(raw[8:16], "little")
        events.append((offset, Pubkey.from_bytes(raw[16:48])))
    return events


def _rejection_reason(err: Any, logs: List[str]) -> str:
    for line in logs:
        if "Error Message:" in line:
            return line.split("Error Message:", 1)[1].strip().rstrip(".")
    for line in logs:
        if "failed:" in line:
            return line.split("failed:", 1)[1].strip()
    return str(err)


class FinalizationSource(ABC):
    @abstractmethod
    async def poll(
        self, computation_offset: int, program_id: Pubkey, commitment: str
    ) -> Optional[str]:
        """
        Return the finalization signature once the computation is finalized,
        ``None`` while it is still pending.

        Raises:
            FinalizationRejected: the computation network reported failure
        """
        raise NotImplementedError

    def release(self, computation_offset: int) -> None:
        """Drop any state kept for ``computation_offset`` once nobody waits on it."""


class RpcFinalizationSource(FinalizationSource):
    def __init__(
        self,
        rpc: SolanaRPCClient,
        *,
        arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID,
        signature_limit: int = 20,
    ):
        self.rpc = rpc
        self.arcium_program_id = arcium_program_id
        self.signature_limit = signature_limit
        self._checked: Dict[int, Set[str]] = {}

    async def poll(
        self, computation_offset: int, program_id: Pubkey, commitment: str
    ) -> Optional[str]:
        account = computation_address(
            program_id, computation_offset, self.arcium_program_id
        )
        checked = self._checked.setdefault(computation_offset, set())
        infos = await self.rpc.get_signatures_for_address(
            account, limit=self.signature_limit, commitment=commitment
        )

        for info in infos:
            if info.signature in checked:
                continue
            transaction = await self.rpc.get_transaction(
                info.signature, commitment=commitment
            )
            if transaction is None:
                continue
            checked.add(info.signature)

            meta = transaction.get("meta") or {}
            logs = list(meta.get("logMessages") or [])
            err = meta.get("err")
            matched = any(
                offset == computation_offset and event_program == program_id
                for offset, event_program in decode_finalize_events(logs)
            )

            if err is not None and (matched or self._invokes_runtime(logs)):
                self.release(computation_offset)
                reason = _rejection_reason(err, logs)
                raise FinalizationRejected(
                    f"Computation {computation_offset} was rejected: {reason}",
                    reason=reason,
                )
            if matched:
                self.release(computation_offset)
                return info.signature
        return None

    def release(self, computation_offset: int) -> None:
        self._checked.pop(computation_offset, None)

    def _invokes_runtime(self, logs: List[str]) -> bool:
        marker = f"Program {self.arcium_program_id} invoke"
        return any(line.startswith(marker) for line in logs)


async def await_computation_finalization(
    source: FinalizationSource,
    computation_offset: int,
    program_id: Pubkey,
    *,
    commitment: str = "confirmed",
    timeout: float = DEFAULT_FINALIZATION_TIMEOUT,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> str:
    """
    Wait until the computation identified by ``computation_offset`` finalizes.

    RPC failures while polling are treated as transient and polling continues
    until ``timeout``.

    Raises:
        FinalizationTimeout: not finalized within ``timeout`` seconds
        FinalizationRejected: the computation network reported failure
    """

    async def _wait() -> str:
        while True:
            try:
                signature = await source.poll(computation_offset, program_id, commitment)
            except RPCError as exc:
                logger.warning(
                    f"Polling finalization of computation {computation_offset} failed: {exc}"
                )
                signature = None
            if signature:
                return signature
            await asyncio.sleep(poll_interval)

    logger.info(
        f"Waiting for computation {computation_offset} to finalize "
        f"(commitment={commitment}, timeout={timeout}s)"
    )
    try:
        signature = await asyncio.wait_for(_wait(), timeout)
    except asyncio.TimeoutError as exc:
        logger.error(
            f"Computation {computation_offset} not finalized after {timeout}s"
        )
        raise FinalizationTimeout(
            f"Computation {computation_offset} was not finalized within {timeout}s"
        ) from exc
    finally:
        source.release(computation_offset)

    logger.info(f"Computation {computation_offset} finalized: {signature}")
    return signature


__all__ = [
    "FINALIZE_EVENT_DISCRIMINATOR",
    "FinalizationSource",
    "RpcFinalizationSource",
    "await_computation_finalization",
    "decode_finalize_events",
]
