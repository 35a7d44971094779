"""Creating a prediction market."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from ..arcium.accounts import ArciumAccounts
from ..arcium.finalization import FinalizationSource, await_computation_finalization
from ..arcium.mxe import MXEKeySource
from ..context import ClientContext
from ..crypto.cipher import generate_nonce, nonce_to_int
from ..crypto.offsets import generate_computation_offset
from ..errors import AccountAlreadyInUse
from ..solana.transaction import TransactionSender
from .addresses import market_address
from .instructions import CircuitName, build_create_market_instruction
from .setup import ALREADY_INITIALIZED

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketCreation:
    market_id: int
    market: Pubkey
    signature: str
    computation_offset: Optional[int] = None
    finalization_signature: Optional[str] = None

    @property
    def already_initialized(self) -> bool:
        return self.signature == ALREADY_INITIALIZED


async def create_market(
    context: ClientContext,
    sender: TransactionSender,
    key_source: MXEKeySource,
    finalization: FinalizationSource,
    creator: Keypair,
    *,
    market_id: int,
    question: str,
    description: str,
    resolution_deadline: int,
    min_stake: int,
    computation_offset: Optional[int] = None,
) -> MarketCreation:
    """
    Create market ``market_id`` and wait for its ``initialize_market``
    computation to finalize.

    An existing market account is left alone and reported with
    ``ALREADY_INITIALIZED`` as its signature. Otherwise the MXE key is fetched
    before building the transaction, so a network without a published key
    fails before anything is sent.
    """
    market = market_address(context.program_id, market_id)
    if await sender.rpc.account_exists(market):
        logger.info(f"Market {market_id} already exists at {market}")
        return MarketCreation(
            market_id=market_id, market=market, signature=ALREADY_INITIALIZED
        )

    await context.key_cache.get(
        key_source,
        context.program_id,
        max_retries=context.mxe_key_max_retries,
        retry_delay=context.mxe_key_retry_delay,
    )

    if computation_offset is None:
        computation_offset = generate_computation_offset()
    logger.info(f"Market ID: {market_id}, PDA: {market}")

    arcium = ArciumAccounts.for_computation(
        context.program_id,
        computation_offset,
        CircuitName.INITIALIZE_MARKET.value,
        cluster=context.cluster,
        arcium_program_id=context.arcium_program_id,
    )
    instruction = build_create_market_instruction(
        context.program_id,
        creator.pubkey(),
        market,
        arcium,
        computation_offset=computation_offset,
        market_id=market_id,
        question=question,
        description=description,
        resolution_deadline=resolution_deadline,
        min_stake=min_stake,
        nonce=nonce_to_int(generate_nonce()),
    )

    try:
        signature = await sender.send(
            [instruction], creator, commitment=context.commitment
        )
    except AccountAlreadyInUse:
        if await sender.rpc.account_exists(market):
            logger.info(f"Market {market_id} was created concurrently at {market}")
            return MarketCreation(
                market_id=market_id, market=market, signature=ALREADY_INITIALIZED
            )
        raise
    logger.info(f"Create market TX signature: {signature}")

    finalization_signature = await await_computation_finalization(
        finalization,
        computation_offset,
        context.program_id,
        commitment=context.commitment,
        timeout=context.finalization_timeout,
        poll_interval=context.finalization_poll_interval,
    )
    return MarketCreation(
        market_id=market_id,
        market=market,
        computation_offset=computation_offset,
        signature=signature,
        finalization_signature=finalization_signature,
    )


__all__ = ["MarketCreation", "create_market"]
