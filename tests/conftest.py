import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from olivia.arcium.accounts import ARCIUM_PROGRAM_ID, cluster_address
from olivia.config import DEFAULT_PROGRAM_ID
from olivia.context import ClientContext


@pytest.fixture
def program_id() -> Pubkey:
    return Pubkey.from_string(DEFAULT_PROGRAM_ID)


@pytest.fixture
def bettor() -> Keypair:
    return Keypair.from_seed(bytes(range(32)))


@pytest.fixture
def context(program_id) -> ClientContext:
    return ClientContext(
        program_id=program_id,
        arcium_program_id=ARCIUM_PROGRAM_ID,
        cluster=cluster_address(0),
        mxe_key_max_retries=3,
        mxe_key_retry_delay=0.01,
        finalization_timeout=1.0,
        finalization_poll_interval=0.01,
        status_display_delay=0.05,
    )
