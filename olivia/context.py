"""Explicit per-session client context passed through the call chain."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from solders.pubkey import Pubkey

from .arcium.accounts import cluster_address
from .arcium.mxe import MXEKeyCache
from .config import ClientSettings

logger = logging.getLogger(__name__)


@dataclass
class ClientContext:
    program_id: Pubkey
    arcium_program_id: Pubkey
    cluster: Pubkey
    commitment: str = "confirmed"
    key_cache: MXEKeyCache = field(default_factory=MXEKeyCache)
    mxe_key_max_retries: int = 10
    mxe_key_retry_delay: float = 0.5
    finalization_timeout: float = 60.0
    finalization_poll_interval: float = 1.0
    status_display_delay: float = 3.0

    @property
    def network_public_key(self) -> Optional[bytes]:
        return self.key_cache.key

    @classmethod
    def from_settings(
        cls, settings: ClientSettings, *, cluster: Optional[Pubkey] = None
    ) -> "ClientContext":
        arcium_program_id = Pubkey.from_string(settings.arcium_program_id)
        if cluster is None:
            cluster = cluster_address(settings.cluster_offset, arcium_program_id)
        context = cls(
            program_id=Pubkey.from_string(settings.program_id),
            arcium_program_id=arcium_program_id,
            cluster=cluster,
            commitment=settings.commitment,
            mxe_key_max_retries=settings.mxe_key_max_retries,
            mxe_key_retry_delay=settings.mxe_key_retry_delay,
            finalization_timeout=settings.finalization_timeout,
            finalization_poll_interval=settings.finalization_poll_interval,
            status_display_delay=settings.status_display_delay,
        )
        logger.debug(
            f"Client context: program={context.program_id} "
            f"arcium={context.arcium_program_id} cluster={context.cluster}"
        )
        return context


__all__ = ["ClientContext"]
