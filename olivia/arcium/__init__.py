"""Arcium MPC runtime: account derivations, network key and finalization."""

from .accounts import (
    ARCIUM_PROGRAM_ID,
    ArciumAccounts,
    cluster_address,
    comp_def_address,
    comp_def_offset,
    computation_address,
    execpool_address,
    mempool_address,
    mxe_address,
)
from .finalization import (
    FinalizationSource,
    RpcFinalizationSource,
    await_computation_finalization,
)
from .mxe import (
    MXEKeyCache,
    MXEKeySource,
    RpcMXEKeySource,
    decode_mxe_public_key,
    fetch_mxe_public_key_with_retry,
)

__all__ = [
    "ARCIUM_PROGRAM_ID",
    "ArciumAccounts",
    "FinalizationSource",
    "MXEKeyCache",
    "MXEKeySource",
    "RpcFinalizationSource",
    "RpcMXEKeySource",
    "await_computation_finalization",
    "cluster_address",
    "comp_def_address",
    "comp_def_offset",
    "computation_address",
    "decode_mxe_public_key",
    "execpool_address",
    "fetch_mxe_public_key_with_retry",
    "mempool_address",
    "mxe_address",
]
