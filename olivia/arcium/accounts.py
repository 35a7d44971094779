"""
Arcium runtime account derivations.

These rules belong to the MPC runtime, not to this client: every address
below is a program-derived address of the Arcium program and has to match the
runtime's own derivation byte for byte. They are kept in this one module and
called everywhere else through these functions.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, fields
from typing import Dict, Optional

from solders.pubkey import Pubkey

from ..config import DEFAULT_ARCIUM_PROGRAM_ID

ARCIUM_PROGRAM_ID = Pubkey.from_string(DEFAULT_ARCIUM_PROGRAM_ID)

MXE_SEED = b"MXEAccount"
MEMPOOL_SEED = b"Mempool"
EXECPOOL_SEED = b"Execpool"
COMPUTATION_SEED = b"ComputationAccount"
COMP_DEF_SEED = b"ComputationDefinitionAccount"
CLUSTER_SEED = b"Cluster"
FEE_POOL_SEED = b"FeePool"
CLOCK_SEED = b"ClockAccount"

# Offset of the MXE keygen computation definition.
MXE_KEYGEN_COMP_DEF_OFFSET = 1


def comp_def_offset(circuit_name: str) -> int:
    """First four bytes of ``sha256(circuit_name)`` read as little-endian u32."""
    digest = hashlib.sha256(circuit_name.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "little")


def _pda(seeds, arcium_program_id: Pubkey) -> Pubkey:
    address, _bump = Pubkey.find_program_address(seeds, arcium_program_id)
    return address


def mxe_address(program_id: Pubkey, arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID) -> Pubkey:
    return _pda([MXE_SEED, bytes(program_id)], arcium_program_id)


def mempool_address(
    program_id: Pubkey, arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID
) -> Pubkey:
    return _pda([MEMPOOL_SEED, bytes(program_id)], arcium_program_id)


def execpool_address(
    program_id: Pubkey, arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID
) -> Pubkey:
    return _pda([EXECPOOL_SEED, bytes(program_id)], arcium_program_id)


def computation_address(
    program_id: Pubkey,
    computation_offset: int,
    arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID,
) -> Pubkey:
    return _pda(
        [COMPUTATION_SEED, bytes(program_id), computation_offset.to_bytes(8, "little")],
        arcium_program_id,
    )


def comp_def_address(
    program_id: Pubkey, offset: int, arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID
) -> Pubkey:
    return _pda(
        [COMP_DEF_SEED, bytes(program_id), offset.to_bytes(4, "little")],
        arcium_program_id,
    )


def cluster_address(offset: int, arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID) -> Pubkey:
    return _pda([CLUSTER_SEED, offset.to_bytes(4, "little")], arcium_program_id)


def fee_pool_address(arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID) -> Pubkey:
    return _pda([FEE_POOL_SEED], arcium_program_id)


def clock_address(arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID) -> Pubkey:
    return _pda([CLOCK_SEED], arcium_program_id)


@dataclass(frozen=True)
class ArciumAccounts:
    """Runtime accounts one queued computation must reference."""

    mxe: Pubkey
    mempool: Pubkey
    executing_pool: Pubkey
    computation: Pubkey
    comp_def: Pubkey
    cluster: Pubkey
    fee_pool: Pubkey
    clock: Pubkey
    arcium_program: Pubkey

    @classmethod
    def for_computation(
        cls,
        program_id: Pubkey,
        computation_offset: int,
        circuit_name: str,
        *,
        cluster: Optional[Pubkey] = None,
        cluster_offset: int = 0,
        arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID,
    ) -> "ArciumAccounts":
        return cls(
            mxe=mxe_address(program_id, arcium_program_id),
            mempool=mempool_address(program_id, arcium_program_id),
            executing_pool=execpool_address(program_id, arcium_program_id),
            computation=computation_address(
                program_id, computation_offset, arcium_program_id
            ),
            comp_def=comp_def_address(
                program_id, comp_def_offset(circuit_name), arcium_program_id
            ),
            cluster=(
                cluster
                if cluster is not None
                else cluster_address(cluster_offset, arcium_program_id)
            ),
            fee_pool=fee_pool_address(arcium_program_id),
            clock=clock_address(arcium_program_id),
            arcium_program=arcium_program_id,
        )

    def as_strings(self) -> Dict[str, str]:
        return {f.name: str(getattr(self, f.name)) for f in fields(self)}


__all__ = [
    "ARCIUM_PROGRAM_ID",
    "MXE_KEYGEN_COMP_DEF_OFFSET",
    "ArciumAccounts",
    "comp_def_offset",
    "mxe_address",
    "mempool_address",
    "execpool_address",
    "computation_address",
    "comp_def_address",
    "cluster_address",
    "fee_pool_address",
    "clock_address",
]
