"""
Solana RPC package.

JSON-RPC client with call budget and backoff, signature pagination, and
per-transaction balance-delta extraction for the tracked wallet.
"""

from backend_inflow.solana_rpc.client import CallBudget, SolanaRpcClient, rate_limit_delay
from backend_inflow.solana_rpc.models import (
    LAMPORTS_PER_SOL,
    BalanceDelta,
    SignatureInfo,
    TransactionRecord,
)
from backend_inflow.solana_rpc.paginator import SignaturePaginator
from backend_inflow.solana_rpc.parser import (
    extract_balance_delta,
    extract_delta,
    lamports_to_sol,
)

__all__ = [
    "LAMPORTS_PER_SOL",
    "BalanceDelta",
    "CallBudget",
    "SignatureInfo",
    "SignaturePaginator",
    "SolanaRpcClient",
    "TransactionRecord",
    "extract_balance_delta",
    "extract_delta",
    "lamports_to_sol",
    "rate_limit_delay",
]
