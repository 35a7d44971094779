from .context import ClientContext
from .crypto import EncryptedPrediction, encrypt_prediction, generate_computation_offset
from .errors import OliviaError
from .events import Channel
from .market import (
    BetAddresses,
    BetRequest,
    BetStatus,
    BetSubmitter,
    CircuitName,
    ProgramInterface,
    SubmissionStatus,
)

__all__ = [
    "BetAddresses",
    "BetRequest",
    "BetStatus",
    "BetSubmitter",
    "Channel",
    "CircuitName",
    "ClientContext",
    "EncryptedPrediction",
    "OliviaError",
    "ProgramInterface",
    "SubmissionStatus",
    "encrypt_prediction",
    "generate_computation_offset",
]
