from __future__ import annotations

import asyncio
import base64
import itertools
import logging
from types import TracebackType
from typing import Any, Dict, List, Optional, Sequence, Type, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from solders.pubkey import Pubkey

from ..errors import RPCError, SubmissionError

logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "http://127.0.0.1:8899"

RETRY_STATUS_CODES = {429}
RETRY_STATUS_CODES.update(range(500, 600))

RPC_MAX_RETRIES = 2
RPC_BACKOFF_SECONDS = 0.5

COMMITMENT_SATISFIED_BY = {
    "processed": ("processed", "confirmed", "finalized"),
    "confirmed": ("confirmed", "finalized"),
    "finalized": ("finalized",),
}

AddressLike = Union[Pubkey, str]


class AccountInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    lamports: int
    owner: str
    data: bytes = b""
    executable: bool = False
    rent_epoch: Optional[int] = Field(default=None, alias="rentEpoch")

    @field_validator("data", mode="before")
    @classmethod
    def _decode_data(cls, value):
        if isinstance(value, (list, tuple)) and value:
            encoded, encoding = value[0], value[1] if len(value) > 1 else "base64"
            if encoding != "base64":
                raise ValueError(f"Unsupported account data encoding: {encoding}")
            return base64.b64decode(encoded)
        if value in (None, ""):
            return b""
        return value


class SignatureInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    signature: str
    slot: Optional[int] = None
    err: Optional[Any] = None
    confirmation_status: Optional[str] = Field(
        default=None, alias="confirmationStatus"
    )


def _address(value: AddressLike) -> str:
    return str(value)


class SolanaRPCClient:
    """Async JSON-RPC client for a Solana cluster."""

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        *,
        timeout: float = 30.0,
        max_retries: int = RPC_MAX_RETRIES,
        backoff_seconds: float = RPC_BACKOFF_SECONDS,
        commitment: str = "confirmed",
        session: Optional[httpx.AsyncClient] = None,
    ):
        self.rpc_url = (rpc_url or DEFAULT_RPC_URL).rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.commitment = commitment
        self._session = session or httpx.AsyncClient(timeout=self.timeout)
        self._owns_session = session is None
        self._ids = itertools.count(1)

    async def __aenter__(self) -> "SolanaRPCClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session:
            await self._session.aclose()

    async def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        response = await self._post_with_retries(method, payload)
        try:
            body = response.json()
        except ValueError as exc:
            raise RPCError(f"{method}: node returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise RPCError(f"{method}: unexpected response format")

        error = body.get("error")
        if error:
            data = error.get("data") or {}
            logs = data.get("logs") if isinstance(data, dict) else None
            raise RPCError(
                f"{method} failed: {error.get('message', error)}",
                rpc_code=error.get("code"),
                logs=logs,
            )
        return body.get("result")

    async def _post_with_retries(
        self, method: str, payload: Dict[str, Any]
    ) -> httpx.Response:
        attempt = 0
        max_attempts = self.max_retries + 1

        while attempt < max_attempts:
            attempt += 1
            try:
                response = await self._session.post(self.rpc_url, json=payload)
            except httpx.HTTPError as exc:
                logger.warning(
                    f"RPC {method} request failed (attempt {attempt}/{max_attempts}): {exc}"
                )
                if attempt >= max_attempts:
                    logger.error(f"RPC {method} exhausted all {max_attempts} attempts")
                    raise RPCError(
                        f"Failed to reach RPC node at {self.rpc_url}"
                    ) from exc
                await self._sleep_backoff(attempt)
                continue

            if response.status_code == 200:
                if attempt > 1:
                    logger.info(
                        f"RPC {method} succeeded on attempt {attempt}/{max_attempts}"
                    )
                return response

            if response.status_code in RETRY_STATUS_CODES and attempt < max_attempts:
                logger.warning(
                    f"RPC {method} transient error (status={response.status_code}, "
                    f"attempt {attempt}/{max_attempts}), retrying..."
                )
                await self._sleep_backoff(attempt)
                continue

            logger.error(
                f"RPC {method} failed with status {response.status_code}: {response.text}"
            )
            raise RPCError(
                f"RPC {method} failed with status {response.status_code}"
            )
        raise RPCError(f"Exhausted retries for RPC {method}")

    async def _sleep_backoff(self, attempt: int) -> None:
        delay = min(30.0, self.backoff_seconds * (2 ** (attempt - 1)))
        await asyncio.sleep(delay)

    async def get_account_info(
        self, address: AddressLike, *, commitment: Optional[str] = None
    ) -> Optional[AccountInfo]:
        result = await self.call(
            "getAccountInfo",
            [
                _address(address),
                {"encoding": "base64", "commitment": commitment or self.commitment},
            ],
        )
        value = (result or {}).get("value")
        if value is None:
            return None
        try:
            return AccountInfo.model_validate(value)
        except ValidationError as exc:
            raise RPCError(f"Invalid account info for {address}: {exc}") from exc

    async def account_exists(
        self, address: AddressLike, *, commitment: Optional[str] = None
    ) -> bool:
        return await self.get_account_info(address, commitment=commitment) is not None

    async def get_latest_blockhash(
        self, *, commitment: Optional[str] = None
    ) -> tuple[str, int]:
        result = await self.call(
            "getLatestBlockhash", [{"commitment": commitment or self.commitment}]
        )
        value = (result or {}).get("value") or {}
        blockhash = value.get("blockhash")
        if not blockhash:
            raise RPCError("getLatestBlockhash returned no blockhash")
        return blockhash, int(value.get("lastValidBlockHeight", 0))

    async def send_transaction(
        self,
        raw_transaction: bytes,
        *,
        skip_preflight: bool = False,
        preflight_commitment: Optional[str] = None,
    ) -> str:
        encoded = base64.b64encode(raw_transaction).decode("ascii")
        signature = await self.call(
            "sendTransaction",
            [
                encoded,
                {
                    "encoding": "base64",
                    "skipPreflight": skip_preflight,
                    "preflightCommitment": preflight_commitment or self.commitment,
                },
            ],
        )
        if not isinstance(signature, str):
            raise RPCError("sendTransaction returned no signature")
        return signature

    async def get_signature_statuses(
        self, signatures: Sequence[str]
    ) -> List[Optional[Dict[str, Any]]]:
        result = await self.call(
            "getSignatureStatuses",
            [list(signatures), {"searchTransactionHistory": False}],
        )
        return list((result or {}).get("value") or [])

    async def confirm_transaction(
        self,
        signature: str,
        *,
        commitment: Optional[str] = None,
        timeout: float = 30.0,
        poll_interval: float = 0.5,
    ) -> Dict[str, Any]:
        """Poll until ``signature`` reaches ``commitment`` or raise."""
        target = commitment or self.commitment
        accepted = COMMITMENT_SATISFIED_BY.get(target, ("confirmed", "finalized"))
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            statuses = await self.get_signature_statuses([signature])
            status = statuses[0] if statuses else None
            if status:
                if status.get("err") is not None:
                    raise SubmissionError(
                        f"Transaction {signature} failed: {status['err']}"
                    )
                if status.get("confirmationStatus") in accepted:
                    return status
            if loop.time() >= deadline:
                raise RPCError(
                    f"Transaction {signature} not {target} after {timeout}s"
                )
            await asyncio.sleep(poll_interval)

    async def get_signatures_for_address(
        self,
        address: AddressLike,
        *,
        limit: int = 20,
        commitment: Optional[str] = None,
    ) -> List[SignatureInfo]:
        result = await self.call(
            "getSignaturesForAddress",
            [
                _address(address),
                {"limit": limit, "commitment": commitment or self.commitment},
            ],
        )
        infos: List[SignatureInfo] = []
        for item in result or []:
            try:
                infos.append(SignatureInfo.model_validate(item))
            except ValidationError as exc:
                raise RPCError(f"Invalid signature info: {exc}") from exc
        return infos

    async def get_transaction(
        self, signature: str, *, commitment: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        return await self.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "commitment": commitment or self.commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )


__all__ = [
    "AccountInfo",
    "SignatureInfo",
    "SolanaRPCClient",
    "RETRY_STATUS_CODES",
]
