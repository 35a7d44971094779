"""
Idempotent initialization of the MPC infrastructure a market program needs.

Each step probes for its account before building the creation instruction, so
running initialization twice is a no-op the second time. "Account already in
use" is accepted as success here, and only after a re-probe confirms the
account exists.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from ..arcium.accounts import ARCIUM_PROGRAM_ID, cluster_address, comp_def_address, mxe_address
from ..errors import AccountAlreadyInUse, NetworkUnavailable, RPCError
from ..solana.rpc import SolanaRPCClient
from ..solana.transaction import TransactionSender
from .instructions import COMP_DEF_BUILDERS, CircuitName, build_init_mxe_instruction

logger = logging.getLogger(__name__)

ALREADY_INITIALIZED = "Already Initialized"


def load_cluster_address(
    path: Union[str, Path],
    default_offset: int = 0,
    arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID,
) -> Pubkey:
    """Cluster account from a localnet artifact (``{"pubkey": ...}``), else derived."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return Pubkey.from_string(json.load(f)["pubkey"])
    except (OSError, ValueError, KeyError, TypeError) as exc:
        logger.warning(
            f"Could not load cluster account from {path} ({exc}); "
            f"deriving cluster {default_offset}"
        )
        return cluster_address(default_offset, arcium_program_id)


async def _send_unless_exists(
    rpc: SolanaRPCClient,
    sender: TransactionSender,
    address: Pubkey,
    label: str,
    build,
    payer: Keypair,
) -> str:
    if await rpc.account_exists(address):
        logger.info(f"{label} already exists and is initialized.")
        return ALREADY_INITIALIZED

    logger.info(f"Initializing {label} at {address}...")
    try:
        signature = await sender.send([build()], payer)
    except AccountAlreadyInUse:
        if await rpc.account_exists(address):
            logger.info(f"{label} was initialized concurrently; treating as done.")
            return ALREADY_INITIALIZED
        raise
    logger.info(f"{label} initialization signature: {signature}")
    return signature


async def ensure_comp_def(
    rpc: SolanaRPCClient,
    sender: TransactionSender,
    program_id: Pubkey,
    circuit: CircuitName,
    payer: Keypair,
    *,
    arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID,
) -> str:
    """Make sure the computation definition for ``circuit`` exists."""
    builder = COMP_DEF_BUILDERS[circuit]
    address = comp_def_address(program_id, circuit.offset, arcium_program_id)
    logger.info(f"{circuit.value} CompDef PDA: {address}")
    return await _send_unless_exists(
        rpc,
        sender,
        address,
        f"{circuit.value} CompDef",
        lambda: builder(program_id, payer.pubkey(), arcium_program_id),
        payer,
    )


async def ensure_comp_defs(
    rpc: SolanaRPCClient,
    sender: TransactionSender,
    program_id: Pubkey,
    payer: Keypair,
    *,
    circuits: Iterable[CircuitName] = tuple(CircuitName),
    arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID,
) -> Dict[CircuitName, Union[str, BaseException]]:
    """
    Ensure every circuit's computation definition concurrently.

    One circuit failing does not cancel the others; its entry in the result
    holds the exception instead of a signature.
    """
    circuits = list(circuits)
    results = await asyncio.gather(
        *(
            ensure_comp_def(
                rpc, sender, program_id, circuit, payer, arcium_program_id=arcium_program_id
            )
            for circuit in circuits
        ),
        return_exceptions=True,
    )
    outcome: Dict[CircuitName, Union[str, BaseException]] = {}
    for circuit, result in zip(circuits, results):
        if isinstance(result, BaseException):
            logger.error(f"Error initializing {circuit.value}: {result}")
        outcome[circuit] = result
    return outcome


async def ensure_mxe(
    rpc: SolanaRPCClient,
    sender: TransactionSender,
    program_id: Pubkey,
    payer: Keypair,
    *,
    cluster_offset: int = 0,
    cluster: Optional[Pubkey] = None,
    arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID,
) -> str:
    """
    Make sure the MXE account of ``program_id`` exists.

    Raises:
        NetworkUnavailable: the Arcium program is not deployed on the cluster
    """
    address = mxe_address(program_id, arcium_program_id)
    logger.info(f"MXE address for {program_id}: {address}")

    try:
        deployed = await rpc.account_exists(arcium_program_id)
    except RPCError as exc:
        logger.warning(f"Could not verify Arcium program deployment: {exc}")
        deployed = True
    if not deployed:
        raise NetworkUnavailable(
            f"Arcium program {arcium_program_id} is not deployed on this cluster"
        )

    return await _send_unless_exists(
        rpc,
        sender,
        address,
        "MXE account",
        lambda: build_init_mxe_instruction(
            program_id,
            payer.pubkey(),
            cluster_offset=cluster_offset,
            cluster=cluster,
            arcium_program_id=arcium_program_id,
        ),
        payer,
    )


__all__ = [
    "ALREADY_INITIALIZED",
    "ensure_comp_def",
    "ensure_comp_defs",
    "ensure_mxe",
    "load_cluster_address",
]
