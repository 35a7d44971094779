"""Program-derived addresses owned by the prediction market program."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Union

from solders.pubkey import Pubkey

from ..arcium.accounts import ArciumAccounts

MARKET_SEED = b"market"
BET_SEED = b"bet"
SIGNER_SEED = b"SignerAccount"

U64_MAX = 2**64 - 1


def encode_market_id(market_id: int) -> bytes:
    if not 0 <= market_id <= U64_MAX:
        raise ValueError(f"market_id must fit in a u64, got {market_id}")
    return market_id.to_bytes(8, "little")


def derive_address(
    program_id: Pubkey, seed_tag: Union[str, bytes], *discriminators: bytes
) -> Pubkey:
    """Canonical (highest bump) program address for ``seed_tag`` + ``discriminators``."""
    tag = seed_tag.encode("utf-8") if isinstance(seed_tag, str) else seed_tag
    address, _bump = Pubkey.find_program_address([tag, *discriminators], program_id)
    return address


def market_address(program_id: Pubkey, market_id: int) -> Pubkey:
    return derive_address(program_id, MARKET_SEED, encode_market_id(market_id))


def bet_address(program_id: Pubkey, market_id: int, bettor: Pubkey) -> Pubkey:
    return derive_address(
        program_id, BET_SEED, encode_market_id(market_id), bytes(bettor)
    )


def signer_address(program_id: Pubkey) -> Pubkey:
    return derive_address(program_id, SIGNER_SEED)


@dataclass(frozen=True)
class BetAddresses:
    """Every address a ``place_bet`` instruction references."""

    market: Pubkey
    bet: Pubkey
    signer: Pubkey
    arcium: ArciumAccounts

    @classmethod
    def derive(
        cls,
        program_id: Pubkey,
        market_id: int,
        bettor: Pubkey,
        arcium: ArciumAccounts,
    ) -> "BetAddresses":
        return cls(
            market=market_address(program_id, market_id),
            bet=bet_address(program_id, market_id, bettor),
            signer=signer_address(program_id),
            arcium=arcium,
        )

    def as_strings(self) -> Dict[str, str]:
        addresses = {
            "market": str(self.market),
            "bet": str(self.bet),
            "signer": str(self.signer),
        }
        addresses.update(self.arcium.as_strings())
        return addresses


__all__ = [
    "MARKET_SEED",
    "BET_SEED",
    "SIGNER_SEED",
    "BetAddresses",
    "bet_address",
    "derive_address",
    "encode_market_id",
    "market_address",
    "signer_address",
]
