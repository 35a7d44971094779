import json

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from olivia.arcium.accounts import cluster_address
from olivia.config import DEFAULT_PROGRAM_ID, ClientSettings
from olivia.context import ClientContext
from olivia.solana.keypair import load_keypair


def test_settings_defaults(monkeypatch):
    monkeypatch.delenv("OLIVIA_MXE_KEY_MAX_RETRIES", raising=False)
    settings = ClientSettings(_env_file=None)

    assert settings.program_id == DEFAULT_PROGRAM_ID
    assert settings.mxe_key_max_retries == 10
    assert settings.mxe_key_retry_delay == 0.5
    assert settings.status_display_delay == 3.0


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("OLIVIA_RPC_URL", "https://api.devnet.solana.com")
    monkeypatch.setenv("OLIVIA_FINALIZATION_TIMEOUT", "5")
    monkeypatch.setenv("OLIVIA_CLUSTER_OFFSET", "3")

    settings = ClientSettings(_env_file=None)

    assert settings.rpc_url == "https://api.devnet.solana.com"
    assert settings.finalization_timeout == 5.0
    assert settings.cluster_offset == 3


def test_context_from_settings(monkeypatch):
    monkeypatch.setenv("OLIVIA_CLUSTER_OFFSET", "3")
    monkeypatch.setenv("OLIVIA_FINALIZATION_TIMEOUT", "5")
    settings = ClientSettings(_env_file=None)

    context = ClientContext.from_settings(settings)

    assert context.program_id == Pubkey.from_string(settings.program_id)
    assert context.cluster == cluster_address(3, context.arcium_program_id)
    assert context.finalization_timeout == 5.0
    assert context.network_public_key is None


def test_load_keypair_round_trip(tmp_path):
    keypair = Keypair.from_seed(bytes([1] * 32))
    path = tmp_path / "id.json"
    path.write_text(json.dumps(list(bytes(keypair))))

    assert load_keypair(path).pubkey() == keypair.pubkey()


def test_load_keypair_rejects_wrong_shape(tmp_path):
    path = tmp_path / "id.json"
    path.write_text(json.dumps([1, 2, 3]))

    with pytest.raises(ValueError):
        load_keypair(path)
