import hashlib

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from olivia.arcium.accounts import (
    ARCIUM_PROGRAM_ID,
    ArciumAccounts,
    cluster_address,
    comp_def_address,
    comp_def_offset,
    computation_address,
    mxe_address,
)
from olivia.config import DEFAULT_PROGRAM_ID
from olivia.market.addresses import (
    BetAddresses,
    bet_address,
    derive_address,
    encode_market_id,
    market_address,
    signer_address,
)


def test_market_address_is_deterministic(program_id):
    assert market_address(program_id, 7) == market_address(program_id, 7)
    assert market_address(program_id, 7) != market_address(program_id, 8)


def test_bet_address_matches_independent_derivation(program_id, bettor):
    # prediction=yes, amount=1.5 SOL, market 42: the bet account only depends
    # on market id and bettor.
    derived = bet_address(program_id, 42, bettor.pubkey())

    expected, _ = Pubkey.find_program_address(
        [b"bet", (42).to_bytes(8, "little"), bytes(bettor.pubkey())], program_id
    )
    assert derived == expected
    assert bet_address(program_id, 42, bettor.pubkey()) == derived


def test_bet_address_differs_per_bettor(program_id, bettor):
    other = Keypair.from_seed(bytes([9] * 32))
    assert bet_address(program_id, 42, bettor.pubkey()) != bet_address(
        program_id, 42, other.pubkey()
    )


def test_derive_address_accepts_str_or_bytes_tags(program_id):
    discriminator = encode_market_id(3)
    assert derive_address(program_id, "market", discriminator) == derive_address(
        program_id, b"market", discriminator
    )
    assert derive_address(program_id, "market", discriminator) == market_address(program_id, 3)


def test_signer_address_uses_signer_seed(program_id):
    expected, _ = Pubkey.find_program_address([b"SignerAccount"], program_id)
    assert signer_address(program_id) == expected


@pytest.mark.parametrize("market_id", [-1, 2**64])
def test_encode_market_id_rejects_out_of_range(market_id):
    with pytest.raises(ValueError):
        encode_market_id(market_id)


def test_comp_def_offset_is_sha256_prefix_little_endian():
    digest = hashlib.sha256(b"place_bet").digest()
    assert comp_def_offset("place_bet") == int.from_bytes(digest[:4], "little")
    assert comp_def_offset("place_bet") != comp_def_offset("initialize_market")


def test_runtime_addresses_use_runtime_seeds(program_id):
    expected_mxe, _ = Pubkey.find_program_address(
        [b"MXEAccount", bytes(program_id)], ARCIUM_PROGRAM_ID
    )
    expected_computation, _ = Pubkey.find_program_address(
        [b"ComputationAccount", bytes(program_id), (5).to_bytes(8, "little")],
        ARCIUM_PROGRAM_ID,
    )
    expected_cluster, _ = Pubkey.find_program_address(
        [b"Cluster", (0).to_bytes(4, "little")], ARCIUM_PROGRAM_ID
    )

    assert mxe_address(program_id) == expected_mxe
    assert computation_address(program_id, 5) == expected_computation
    assert cluster_address(0) == expected_cluster


def test_arcium_accounts_follow_offset_and_circuit(program_id):
    first = ArciumAccounts.for_computation(program_id, 1, "place_bet")
    second = ArciumAccounts.for_computation(program_id, 2, "place_bet")
    market = ArciumAccounts.for_computation(program_id, 1, "initialize_market")

    assert first.computation != second.computation
    assert first.mxe == second.mxe
    assert first.comp_def == comp_def_address(program_id, comp_def_offset("place_bet"))
    assert market.comp_def != first.comp_def
    assert first.arcium_program == ARCIUM_PROGRAM_ID


def test_arcium_accounts_cluster_override(program_id):
    override = Keypair.from_seed(bytes([3] * 32)).pubkey()
    accounts = ArciumAccounts.for_computation(program_id, 1, "place_bet", cluster=override)
    assert accounts.cluster == override


def test_bet_addresses_as_strings(program_id, bettor):
    arcium = ArciumAccounts.for_computation(program_id, 11, "place_bet")
    addresses = BetAddresses.derive(program_id, 42, bettor.pubkey(), arcium)

    strings = addresses.as_strings()

    assert strings["bet"] == str(bet_address(program_id, 42, bettor.pubkey()))
    assert strings["market"] == str(market_address(program_id, 42))
    assert strings["computation"] == str(computation_address(program_id, 11))
    assert set(strings) >= {"signer", "mxe", "mempool", "executing_pool", "cluster", "comp_def"}


# Base58 values recorded from an independent derivation.
PINNED_BETTOR = "FAe4sisG95oZ42w7buUn5qEE4TAnfTTFPiguZUHmhiF"
PINNED_ADDRESSES = {
    "market": "HbQGzPsC5xMBKhgAeQWhUWfvckxrnZ9mJUDSoE5dbyFY",
    "bet": "3RGnKFTZ4nCHX9N86FS4dx75x6DsrY4B66PqXrALR9C7",
    "signer": "98n7ZEnbnfQQJ6sCJVwHnfN5XnWVCKENZY9y1U6MTah9",
    "comp_def": "Fb8s822j4Hq2nJGY5q3iJu7PSSEg2KHcP1yPbPmEd1T1",
    "computation": "C5m825tmK7Kg6pxdXFobyQvuQX8RjF3R2rVN55B7yczM",
    "cluster": "GgSqqAyH7AVY3Umcv8NvncrjFaNJuQLmxzxFxPoPW2Yd",
    "mxe": "5utsZY4WwrsrASoPtTmqSJf72TWi9N8XUGt1u6ytgpmi",
}


def test_addresses_match_recorded_values():
    program_id = Pubkey.from_string(DEFAULT_PROGRAM_ID)
    bettor = Keypair.from_seed(bytes(range(32))).pubkey()
    assert str(bettor) == PINNED_BETTOR
    assert comp_def_offset("place_bet") == 3635143201

    derived = {
        "market": market_address(program_id, 42),
        "bet": bet_address(program_id, 42, bettor),
        "signer": signer_address(program_id),
        "comp_def": comp_def_address(program_id, comp_def_offset("place_bet")),
        "computation": computation_address(program_id, 5),
        "cluster": cluster_address(0),
        "mxe": mxe_address(program_id),
    }

    assert {name: str(address) for name, address in derived.items()} == PINNED_ADDRESSES
