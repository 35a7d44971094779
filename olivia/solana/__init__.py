"""Solana transport: JSON-RPC, transaction submission and keypairs."""

from .keypair import load_keypair
from .rpc import AccountInfo, SignatureInfo, SolanaRPCClient
from .transaction import TransactionSender, classify_submission_error

__all__ = [
    "AccountInfo",
    "SignatureInfo",
    "SolanaRPCClient",
    "TransactionSender",
    "classify_submission_error",
    "load_keypair",
]
