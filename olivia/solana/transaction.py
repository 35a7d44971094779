"""Compile, sign, submit and confirm transactions."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.transaction import Transaction

from ..errors import (
    AccountAlreadyInUse,
    InsufficientFunds,
    RPCError,
    SimulationFailure,
    SubmissionError,
)
from .rpc import SolanaRPCClient

logger = logging.getLogger(__name__)


def classify_submission_error(message: str, logs: Iterable[str] = ()) -> SubmissionError:
    """Map node error text to the submission error taxonomy."""
    logs = list(logs)
    haystack = " ".join([message, *logs]).lower()

    if "insufficient funds" in haystack or "insufficient lamports" in haystack:
        return InsufficientFunds(message, logs=logs)
    if "already in use" in haystack:
        return AccountAlreadyInUse(message, logs=logs)
    if "simulation failed" in haystack:
        return SimulationFailure(message, logs=logs)
    return SubmissionError(message, logs=logs)


class TransactionSender:
    def __init__(
        self,
        rpc: SolanaRPCClient,
        *,
        commitment: str = "confirmed",
        confirm_timeout: float = 30.0,
    ):
        self.rpc = rpc
        self.commitment = commitment
        self.confirm_timeout = confirm_timeout

    async def send(
        self,
        instructions: Sequence[Instruction],
        signer: Keypair,
        *,
        extra_signers: Sequence[Keypair] = (),
        commitment: Optional[str] = None,
    ) -> str:
        """
        Sign ``instructions`` with ``signer`` as fee payer and submit them.

        Returns the transaction signature once the network has accepted the
        transaction at ``commitment``. This acknowledges inclusion only.

        Raises:
            SubmissionError: the node rejected or failed the transaction
            RPCError: the node could not be reached
        """
        commitment = commitment or self.commitment
        blockhash_str, _ = await self.rpc.get_latest_blockhash(commitment=commitment)
        blockhash = Hash.from_string(blockhash_str)

        message = Message.new_with_blockhash(list(instructions), signer.pubkey(), blockhash)
        transaction = Transaction([signer, *extra_signers], message, blockhash)

        try:
            signature = await self.rpc.send_transaction(
                bytes(transaction), preflight_commitment=commitment
            )
        except RPCError as exc:
            logger.error(f"Transaction rejected by node: {exc}")
            for line in exc.logs:
                logger.debug(f"  {line}")
            raise classify_submission_error(str(exc), exc.logs) from exc

        logger.info(f"Transaction submitted: {signature}")
        try:
            await self.rpc.confirm_transaction(
                signature, commitment=commitment, timeout=self.confirm_timeout
            )
        except SubmissionError as exc:
            raise classify_submission_error(str(exc)) from exc
        return signature


__all__ = ["TransactionSender", "classify_submission_error"]
