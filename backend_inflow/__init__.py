"""
Backend Inflow — lifetime inbound SOL tracker for a single Solana wallet.

Replays the wallet's signature history through Solana JSON-RPC, sums every
positive lamport balance change, and keeps a resumable checkpoint so each
scheduled run only reads transactions newer than the last one it accounted.
"""

__version__ = "0.1.0"
