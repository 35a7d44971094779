"""Exception hierarchy for the confidential bet client.

Every error carries a stable ``code`` that the submission status object
reports to the presentation layer. Precondition errors are raised before any
I/O; cryptographic and submission errors are never retried.
"""

from typing import Optional


class OliviaError(RuntimeError):
    """Base class for all client errors."""

    code = "UnexpectedError"


# Preconditions


class PreconditionError(OliviaError):
    code = "PreconditionFailed"


class WalletNotConnected(PreconditionError):
    code = "WalletNotConnected"


class InterfaceNotLoaded(PreconditionError):
    code = "InterfaceNotLoaded"


class NetworkUnavailable(PreconditionError):
    code = "NetworkUnavailable"


class InvalidAmount(PreconditionError):
    code = "InvalidAmount"


# Transient infrastructure


class RPCError(OliviaError):
    """A JSON-RPC call failed at the transport or at the node."""

    code = "RPCError"

    def __init__(
        self,
        message: str,
        *,
        rpc_code: Optional[int] = None,
        logs: Optional[list] = None,
    ):
        super().__init__(message)
        self.rpc_code = rpc_code
        self.logs = list(logs or [])


class KeyUnavailable(OliviaError):
    code = "KeyUnavailable"


# Cryptography


class KeyAgreementFailure(OliviaError):
    code = "KeyAgreementFailure"


class EncryptionFailed(OliviaError):
    code = "EncryptionFailed"


# Submission


class SubmissionError(OliviaError):
    code = "SubmissionFailed"

    def __init__(self, message: str, *, logs: Optional[list] = None):
        super().__init__(message)
        self.logs = list(logs or [])


class InsufficientFunds(SubmissionError):
    code = "InsufficientFunds"


class AccountAlreadyInUse(SubmissionError):
    code = "AccountAlreadyInUse"


class SimulationFailure(SubmissionError):
    code = "SimulationFailure"


# Finalization


class FinalizationError(OliviaError):
    code = "FinalizationFailed"


class FinalizationTimeout(FinalizationError):
    """The computation did not finalize in time. Retrying the flow is reasonable."""

    code = "FinalizationTimeout"


class FinalizationRejected(FinalizationError):
    """The computation network rejected the request. Identical retries fail too."""

    code = "FinalizationRejected"

    def __init__(self, message: str, *, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


__all__ = [
    "OliviaError",
    "PreconditionError",
    "WalletNotConnected",
    "InterfaceNotLoaded",
    "NetworkUnavailable",
    "InvalidAmount",
    "RPCError",
    "KeyUnavailable",
    "KeyAgreementFailure",
    "EncryptionFailed",
    "SubmissionError",
    "InsufficientFunds",
    "AccountAlreadyInUse",
    "SimulationFailure",
    "FinalizationError",
    "FinalizationTimeout",
    "FinalizationRejected",
]
