"""
Olivia - confidential prediction market client.

Configuration management. Values come from ``OLIVIA_*`` environment
variables or a local ``.env`` file.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

DEFAULT_RPC_URL = "http://127.0.0.1:8899"
DEFAULT_PROGRAM_ID = "3vttzXAnNXM1SGdMWQgVBJWEkEFmtExhX5hDgEGv9qux"
DEFAULT_ARCIUM_PROGRAM_ID = "BKck65TgoKRokMjQM3datB9oRwJ8rAj2jxPXvHXUvcL6"


class ClientSettings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="OLIVIA_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Network
    rpc_url: str = DEFAULT_RPC_URL
    commitment: str = "confirmed"
    rpc_timeout: float = 30.0
    rpc_max_retries: int = 2
    rpc_backoff_seconds: float = 0.5

    # Programs
    program_id: str = DEFAULT_PROGRAM_ID
    arcium_program_id: str = DEFAULT_ARCIUM_PROGRAM_ID
    cluster_offset: int = 0
    cluster_artifact_path: Path = Path("artifacts/cluster_acc_0.json")
    idl_path: Optional[str] = "target/idl/prediction_market.json"

    # MXE key
    mxe_key_max_retries: int = 10
    mxe_key_retry_delay: float = 0.5

    # Finalization
    finalization_timeout: float = 60.0
    finalization_poll_interval: float = 1.0

    # Presentation
    status_display_delay: float = 3.0

    # Wallet
    keypair_path: Path = Path("~/.config/solana/id.json")

    # Logging
    log_level: str = "INFO"


# Entrypoints only; library code takes explicit values.
settings = ClientSettings()
