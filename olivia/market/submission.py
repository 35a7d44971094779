"""
Confidential bet submission.

``BetSubmitter`` drives one bet from user confirmation to finalization:

    idle -> encrypting -> signing -> submitting -> waiting -> success | error

Every transition replaces the single observable ``BetStatus`` and publishes it
on the submitter's status channel. Each call builds a fresh
``SubmissionAttempt`` (keypair, nonce, computation offset); nothing carries
over from one attempt to the next except the network key cache held by the
client context.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from ..arcium.accounts import ArciumAccounts
from ..arcium.finalization import (
    FinalizationSource,
    RpcFinalizationSource,
    await_computation_finalization,
)
from ..arcium.mxe import MXEKeySource, RpcMXEKeySource
from ..context import ClientContext
from ..crypto.cipher import EncryptedPrediction, encrypt_prediction
from ..crypto.offsets import generate_computation_offset
from ..errors import (
    EncryptionFailed,
    InterfaceNotLoaded,
    InvalidAmount,
    KeyAgreementFailure,
    NetworkUnavailable,
    OliviaError,
    WalletNotConnected,
)
from ..events import Channel
from ..solana.rpc import SolanaRPCClient
from ..solana.transaction import TransactionSender
from .addresses import U64_MAX, BetAddresses
from .idl import ProgramInterface
from .instructions import CircuitName, build_place_bet_instruction

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000
SOL_DECIMALS = 9
UNEXPECTED_ERROR = "UnexpectedError"


class SubmissionStatus(str, Enum):
    IDLE = "idle"
    ENCRYPTING = "encrypting"
    SIGNING = "signing"
    SUBMITTING = "submitting"
    WAITING = "waiting"
    SUCCESS = "success"
    ERROR = "error"


TERMINAL_STATUSES = frozenset({SubmissionStatus.SUCCESS, SubmissionStatus.ERROR})


class BetStatus(BaseModel):
    """What the presentation layer renders. Replaced, never mutated."""

    model_config = ConfigDict(frozen=True)

    status: SubmissionStatus = SubmissionStatus.IDLE
    message: str = ""
    signature: Optional[str] = None
    finalization_signature: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    addresses: Dict[str, str] = Field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


StatusChannel = Channel[BetStatus]


class BetRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    market_id: int = Field(ge=0, le=U64_MAX)
    prediction: StrictBool
    amount: Decimal

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value):
        # Floats go through str() so 1.1 stays 1.1 and not its binary expansion.
        if isinstance(value, float):
            return str(value)
        return value

    @property
    def is_whole_lamports(self) -> bool:
        scaled = self.amount * LAMPORTS_PER_SOL
        return scaled == scaled.to_integral_value()

    @property
    def lamports(self) -> int:
        if not self.is_whole_lamports:
            raise InvalidAmount(
                f"Bet amount has more than {SOL_DECIMALS} decimal places: {self.amount}"
            )
        return int(self.amount * LAMPORTS_PER_SOL)


@dataclass
class SubmissionAttempt:
    """
    State of one bet from confirmation to a terminal status.

    Only public material is kept: the ephemeral private key and shared secret
    never leave ``encrypt_prediction``.
    """

    request: BetRequest
    bettor: Pubkey
    status: BetStatus
    encrypted: Optional[EncryptedPrediction] = None
    computation_offset: Optional[int] = None
    addresses: Optional[BetAddresses] = None

    @property
    def ephemeral_public_key(self) -> Optional[bytes]:
        return self.encrypted.public_key if self.encrypted else None

    @property
    def nonce(self) -> Optional[bytes]:
        return self.encrypted.nonce if self.encrypted else None


class BetSubmitter:
    def __init__(
        self,
        context: ClientContext,
        *,
        rpc: Optional[SolanaRPCClient],
        signer: Optional[Keypair],
        interface: Optional[ProgramInterface],
        key_source: Optional[MXEKeySource] = None,
        sender: Optional[TransactionSender] = None,
        finalization: Optional[FinalizationSource] = None,
        channel: Optional[StatusChannel] = None,
        auto_reset: bool = True,
    ):
        self.context = context
        self.rpc = rpc
        self.signer = signer
        self.interface = interface
        self.channel = channel if channel is not None else StatusChannel("bet-status")
        self.auto_reset = auto_reset

        if rpc is not None:
            key_source = key_source or RpcMXEKeySource(
                rpc, arcium_program_id=context.arcium_program_id
            )
            sender = sender or TransactionSender(rpc, commitment=context.commitment)
            finalization = finalization or RpcFinalizationSource(
                rpc, arcium_program_id=context.arcium_program_id
            )
        self.key_source = key_source
        self.sender = sender
        self.finalization = finalization

        self._status = BetStatus()
        self._task: Optional[asyncio.Task] = None
        self._reset_task: Optional[asyncio.Task] = None

    @property
    def status(self) -> BetStatus:
        return self._status

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    def _publish(self, status: BetStatus) -> BetStatus:
        self._status = status
        self.channel.publish(status)
        return status

    def _transition(
        self, attempt: SubmissionAttempt, status: SubmissionStatus, message: str, **changes
    ) -> BetStatus:
        logger.info(f"Bet on market {attempt.request.market_id}: {status.value} - {message}")
        attempt.status = attempt.status.model_copy(
            update={"status": status, "message": message, **changes}
        )
        return self._publish(attempt.status)

    def _fail(self, attempt: SubmissionAttempt, exc: BaseException) -> BetStatus:
        code = getattr(exc, "code", UNEXPECTED_ERROR)
        cause = exc.__cause__ or exc
        return self._transition(
            attempt,
            SubmissionStatus.ERROR,
            f"{code}: {exc}",
            error=f"{type(cause).__name__}: {cause}",
            error_code=code,
        )

    def _check_preconditions(self, request: BetRequest) -> None:
        if self.signer is None:
            raise WalletNotConnected("Wallet not connected")
        if self.interface is None:
            raise InterfaceNotLoaded("Program interface not loaded")
        self.interface.require("place_bet")
        if self.rpc is None or None in (self.key_source, self.sender, self.finalization):
            raise NetworkUnavailable("No connection to the cluster")
        if request.amount <= 0:
            raise InvalidAmount(f"Bet amount must be positive, got {request.amount}")
        if request.lamports > U64_MAX:
            raise InvalidAmount(f"Bet amount too large: {request.amount}")

    async def place_bet(self, request: BetRequest) -> BetStatus:
        """
        Run one bet to a terminal status and return it.

        Errors never escape: they end the attempt in ``error`` with the
        error's code. Cancellation propagates.
        """
        self._cancel_reset()
        bettor = self.signer.pubkey() if self.signer is not None else Pubkey.default()
        attempt = SubmissionAttempt(request=request, bettor=bettor, status=BetStatus())

        try:
            self._check_preconditions(request)
            result = await self._run(attempt)
        except asyncio.CancelledError:
            logger.info(f"Bet on market {request.market_id} abandoned")
            raise
        except OliviaError as exc:
            logger.error(f"Bet on market {request.market_id} failed: {exc}")
            result = self._fail(attempt, exc)
        except Exception as exc:
            logger.exception(f"Unexpected error placing bet on market {request.market_id}")
            result = self._fail(attempt, exc)

        if self.auto_reset:
            self._schedule_reset(result)
        return result

    async def _run(self, attempt: SubmissionAttempt) -> BetStatus:
        context = self.context
        request = attempt.request

        self._transition(attempt, SubmissionStatus.ENCRYPTING, "Encrypting prediction...")
        network_key = await context.key_cache.get(
            self.key_source,
            context.program_id,
            max_retries=context.mxe_key_max_retries,
            retry_delay=context.mxe_key_retry_delay,
        )
        try:
            attempt.encrypted = encrypt_prediction(request.prediction, network_key)
        except (KeyAgreementFailure, EncryptionFailed) as exc:
            context.key_cache.invalidate()
            raise EncryptionFailed(f"Failed to encrypt prediction: {exc}") from exc

        self._transition(attempt, SubmissionStatus.SIGNING, "Preparing transaction...")
        attempt.computation_offset = generate_computation_offset()
        arcium = ArciumAccounts.for_computation(
            context.program_id,
            attempt.computation_offset,
            CircuitName.PLACE_BET.value,
            cluster=context.cluster,
            arcium_program_id=context.arcium_program_id,
        )
        attempt.addresses = BetAddresses.derive(
            context.program_id, request.market_id, attempt.bettor, arcium
        )
        instruction = build_place_bet_instruction(
            context.program_id,
            attempt.bettor,
            attempt.addresses,
            computation_offset=attempt.computation_offset,
            market_id=request.market_id,
            amount_lamports=request.lamports,
            encrypted=attempt.encrypted,
        )
        logger.debug(
            f"Computation offset {attempt.computation_offset}, bet account "
            f"{attempt.addresses.bet}"
        )

        self._transition(
            attempt,
            SubmissionStatus.SUBMITTING,
            "Submitting transaction...",
            addresses=attempt.addresses.as_strings(),
        )
        signature = await self.sender.send([instruction], self.signer)

        self._transition(
            attempt,
            SubmissionStatus.WAITING,
            "Waiting for the MPC computation to finalize...",
            signature=signature,
        )
        finalization_signature = await await_computation_finalization(
            self.finalization,
            attempt.computation_offset,
            context.program_id,
            commitment=context.commitment,
            timeout=context.finalization_timeout,
            poll_interval=context.finalization_poll_interval,
        )
        return self._transition(
            attempt,
            SubmissionStatus.SUCCESS,
            "Bet placed",
            finalization_signature=finalization_signature,
        )

    def start(self, request: BetRequest) -> asyncio.Task:
        """Run ``place_bet`` as a task. Must be called from a running event loop."""
        if self.in_flight:
            raise RuntimeError("A bet submission is already in progress")
        self._task = asyncio.get_running_loop().create_task(self.place_bet(request))
        return self._task

    def reset(self) -> BetStatus:
        """
        Stop caring about the in-flight attempt and return to idle.

        A transaction already sent is not undone.
        """
        if self.in_flight:
            self._task.cancel()
        self._task = None
        self._cancel_reset()
        return self._publish(BetStatus())

    def dismiss(self) -> BetStatus:
        """Clear a terminal status immediately."""
        if not self._status.is_terminal:
            return self._status
        self._cancel_reset()
        return self._publish(BetStatus())

    def _cancel_reset(self) -> None:
        if self._reset_task is not None and not self._reset_task.done():
            self._reset_task.cancel()
        self._reset_task = None

    def _schedule_reset(self, terminal: BetStatus) -> None:
        delay = self.context.status_display_delay

        async def _reset_later() -> None:
            await asyncio.sleep(delay)
            if self._status is terminal:
                self._publish(BetStatus())

        self._reset_task = asyncio.get_running_loop().create_task(_reset_later())


__all__ = [
    "LAMPORTS_PER_SOL",
    "BetRequest",
    "BetStatus",
    "BetSubmitter",
    "StatusChannel",
    "SubmissionAttempt",
    "SubmissionStatus",
]
