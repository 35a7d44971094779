from .addresses import BetAddresses, bet_address, derive_address, market_address, signer_address
from .idl import ProgramInterface, load_idl
from .instructions import (
    COMP_DEF_BUILDERS,
    CircuitName,
    build_create_market_instruction,
    build_init_mxe_instruction,
    build_place_bet_instruction,
)
from .markets import MarketCreation, create_market
from .setup import ALREADY_INITIALIZED, ensure_comp_def, ensure_comp_defs, ensure_mxe, load_cluster_address
from .submission import (
    BetRequest,
    BetStatus,
    BetSubmitter,
    StatusChannel,
    SubmissionAttempt,
    SubmissionStatus,
)

__all__ = [
    "ALREADY_INITIALIZED",
    "COMP_DEF_BUILDERS",
    "BetAddresses",
    "BetRequest",
    "BetStatus",
    "BetSubmitter",
    "CircuitName",
    "MarketCreation",
    "ProgramInterface",
    "StatusChannel",
    "SubmissionAttempt",
    "SubmissionStatus",
    "bet_address",
    "build_create_market_instruction",
    "build_init_mxe_instruction",
    "build_place_bet_instruction",
    "create_market",
    "derive_address",
    "ensure_comp_def",
    "ensure_comp_defs",
    "ensure_mxe",
    "load_cluster_address",
    "load_idl",
    "market_address",
    "signer_address",
]
