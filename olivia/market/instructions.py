"""
Instruction builders for the prediction market program and the Arcium runtime.

Anchor instructions are an 8-byte discriminator, ``sha256("global:<name>")[:8]``,
followed by the Borsh-encoded arguments (little-endian integers, u32-length
prefixed strings, fixed arrays as raw bytes).
"""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Callable, Dict, Optional

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID

from ..arcium.accounts import (
    ARCIUM_PROGRAM_ID,
    MXE_KEYGEN_COMP_DEF_OFFSET,
    ArciumAccounts,
    cluster_address,
    comp_def_address,
    comp_def_offset,
    computation_address,
    execpool_address,
    mempool_address,
    mxe_address,
)
from ..crypto.cipher import CIPHERTEXT_BYTES, EncryptedPrediction
from .addresses import BetAddresses, signer_address


def anchor_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"global:{name}".encode("utf-8")).digest()[:8]


def encode_u32(value: int) -> bytes:
    return value.to_bytes(4, "little")


def encode_u64(value: int) -> bytes:
    return value.to_bytes(8, "little")


def encode_i64(value: int) -> bytes:
    return value.to_bytes(8, "little", signed=True)


def encode_u128(value: int) -> bytes:
    return value.to_bytes(16, "little")


def encode_string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return encode_u32(len(raw)) + raw


def encode_fixed(value: bytes, length: int) -> bytes:
    if len(value) != length:
        raise ValueError(f"expected {length} bytes, got {len(value)}")
    return bytes(value)


def _computation_metas(payer: Pubkey, sign_pda: Pubkey, arcium: ArciumAccounts):
    """Account prefix shared by every instruction that queues a computation."""
    return [
        AccountMeta(payer, is_signer=True, is_writable=True),
        AccountMeta(sign_pda, is_signer=False, is_writable=True),
        AccountMeta(arcium.mxe, is_signer=False, is_writable=False),
        AccountMeta(arcium.mempool, is_signer=False, is_writable=True),
        AccountMeta(arcium.executing_pool, is_signer=False, is_writable=True),
        AccountMeta(arcium.computation, is_signer=False, is_writable=True),
        AccountMeta(arcium.comp_def, is_signer=False, is_writable=False),
        AccountMeta(arcium.cluster, is_signer=False, is_writable=True),
        AccountMeta(arcium.fee_pool, is_signer=False, is_writable=True),
        AccountMeta(arcium.clock, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(arcium.arcium_program, is_signer=False, is_writable=False),
    ]


def build_place_bet_instruction(
    program_id: Pubkey,
    bettor: Pubkey,
    addresses: BetAddresses,
    *,
    computation_offset: int,
    market_id: int,
    amount_lamports: int,
    encrypted: EncryptedPrediction,
) -> Instruction:
    data = b"".join(
        [
            anchor_discriminator("place_bet"),
            encode_u64(computation_offset),
            encode_u64(market_id),
            encode_u64(amount_lamports),
            encode_fixed(encrypted.ciphertext, CIPHERTEXT_BYTES),
            encode_fixed(encrypted.public_key, 32),
            encode_u128(encrypted.nonce_value),
        ]
    )
    accounts = _computation_metas(bettor, addresses.signer, addresses.arcium)
    accounts += [
        AccountMeta(addresses.market, is_signer=False, is_writable=True),
        AccountMeta(addresses.bet, is_signer=False, is_writable=True),
    ]
    return Instruction(program_id, data, accounts)


def build_create_market_instruction(
    program_id: Pubkey,
    creator: Pubkey,
    market: Pubkey,
    arcium: ArciumAccounts,
    *,
    computation_offset: int,
    market_id: int,
    question: str,
    description: str,
    resolution_deadline: int,
    min_stake: int,
    nonce: int,
) -> Instruction:
    data = b"".join(
        [
            anchor_discriminator("create_market"),
            encode_u64(computation_offset),
            encode_u64(market_id),
            encode_string(question),
            encode_string(description),
            encode_i64(resolution_deadline),
            encode_u64(min_stake),
            encode_u128(nonce),
        ]
    )
    accounts = _computation_metas(creator, signer_address(program_id), arcium)
    accounts.append(AccountMeta(market, is_signer=False, is_writable=True))
    return Instruction(program_id, data, accounts)


class CircuitName(str, Enum):
    INITIALIZE_MARKET = "initialize_market"
    PLACE_BET = "place_bet"
    DISTRIBUTE_REWARDS = "distribute_rewards"

    @property
    def offset(self) -> int:
        return comp_def_offset(self.value)


def _init_comp_def_instruction(
    instruction_name: str,
    circuit: CircuitName,
    program_id: Pubkey,
    payer: Pubkey,
    arcium_program_id: Pubkey,
) -> Instruction:
    accounts = [
        AccountMeta(payer, is_signer=True, is_writable=True),
        AccountMeta(mxe_address(program_id, arcium_program_id), is_signer=False, is_writable=True),
        AccountMeta(
            comp_def_address(program_id, circuit.offset, arcium_program_id),
            is_signer=False,
            is_writable=True,
        ),
        AccountMeta(arcium_program_id, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(program_id, anchor_discriminator(instruction_name), accounts)


def build_init_initialize_market_comp_def(
    program_id: Pubkey, payer: Pubkey, arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID
) -> Instruction:
    return _init_comp_def_instruction(
        "init_initialize_market_comp_def",
        CircuitName.INITIALIZE_MARKET,
        program_id,
        payer,
        arcium_program_id,
    )


def build_init_place_bet_comp_def(
    program_id: Pubkey, payer: Pubkey, arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID
) -> Instruction:
    return _init_comp_def_instruction(
        "init_place_bet_comp_def",
        CircuitName.PLACE_BET,
        program_id,
        payer,
        arcium_program_id,
    )


def build_init_distribute_rewards_comp_def(
    program_id: Pubkey, payer: Pubkey, arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID
) -> Instruction:
    return _init_comp_def_instruction(
        "init_distribute_rewards_comp_def",
        CircuitName.DISTRIBUTE_REWARDS,
        program_id,
        payer,
        arcium_program_id,
    )


CompDefBuilder = Callable[[Pubkey, Pubkey, Pubkey], Instruction]

COMP_DEF_BUILDERS: Dict[CircuitName, CompDefBuilder] = {
    CircuitName.INITIALIZE_MARKET: build_init_initialize_market_comp_def,
    CircuitName.PLACE_BET: build_init_place_bet_comp_def,
    CircuitName.DISTRIBUTE_REWARDS: build_init_distribute_rewards_comp_def,
}

# Arcium runtime mempool sizes, Borsh enum variant indices.
MEMPOOL_SIZE_TINY = 0


def build_init_mxe_instruction(
    program_id: Pubkey,
    payer: Pubkey,
    *,
    cluster_offset: int = 0,
    cluster: Optional[Pubkey] = None,
    mempool_size: int = MEMPOOL_SIZE_TINY,
    arcium_program_id: Pubkey = ARCIUM_PROGRAM_ID,
) -> Instruction:
    """``init_mxe`` of the Arcium runtime for ``program_id`` with ``payer`` as authority."""
    if cluster is None:
        cluster = cluster_address(cluster_offset, arcium_program_id)
    data = b"".join(
        [
            anchor_discriminator("init_mxe"),
            encode_u32(cluster_offset),
            bytes([mempool_size]),
        ]
    )
    accounts = [
        AccountMeta(payer, is_signer=True, is_writable=True),
        AccountMeta(mxe_address(program_id, arcium_program_id), is_signer=False, is_writable=True),
        AccountMeta(mempool_address(program_id, arcium_program_id), is_signer=False, is_writable=True),
        AccountMeta(execpool_address(program_id, arcium_program_id), is_signer=False, is_writable=True),
        AccountMeta(cluster, is_signer=False, is_writable=True),
        AccountMeta(
            comp_def_address(program_id, MXE_KEYGEN_COMP_DEF_OFFSET, arcium_program_id),
            is_signer=False,
            is_writable=True,
        ),
        AccountMeta(
            computation_address(program_id, 0, arcium_program_id),
            is_signer=False,
            is_writable=True,
        ),
        AccountMeta(payer, is_signer=False, is_writable=False),
        AccountMeta(program_id, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(arcium_program_id, data, accounts)


__all__ = [
    "COMP_DEF_BUILDERS",
    "CircuitName",
    "anchor_discriminator",
    "build_create_market_instruction",
    "build_init_distribute_rewards_comp_def",
    "build_init_initialize_market_comp_def",
    "build_init_mxe_instruction",
    "build_init_place_bet_comp_def",
    "build_place_bet_instruction",
    "encode_string",
    "encode_u64",
    "encode_u128",
]
