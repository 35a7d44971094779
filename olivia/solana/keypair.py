"""Solana CLI keypair files (JSON array of 64 secret key bytes)."""

import json
import logging
from pathlib import Path
from typing import Union

from solders.keypair import Keypair

logger = logging.getLogger(__name__)


def load_keypair(path: Union[str, Path]) -> Keypair:
    keypair_path = Path(path).expanduser()
    with open(keypair_path, "r", encoding="utf-8") as f:
        secret = json.load(f)
    if not isinstance(secret, list) or len(secret) != 64:
        raise ValueError(f"{keypair_path} is not a 64-byte Solana keypair file")
    keypair = Keypair.from_bytes(bytes(secret))
    logger.debug(f"Loaded keypair {keypair.pubkey()} from {keypair_path}")
    return keypair


__all__ = ["load_keypair"]
