"""
Ingestion package — transaction bodies for discovered signatures.

Fetches getTransaction bodies with a bounded asyncio worker pool, applies
the balance-delta extractor, and aggregates inbound totals for one scan.
"""

from backend_inflow.ingestion.batch_fetcher import BatchFetcher, BatchResult

__all__ = ["BatchFetcher", "BatchResult"]
