"""
Signature paginator — walks getSignaturesForAddress history page by page.

Two cursor modes:
- backward-full (since_signature=None): newest to oldest until the source
  returns a short or empty page.
- bounded-incremental (since_signature set): only signatures strictly newer
  than the checkpoint; the RPC `until` bound does the work and the cursor
  signature is never yielded even if the source echoes it.

Each page's `before` cursor is the last signature of the previous page. A
hard page ceiling stops the walk with a TruncatedHistory warning. When the
ceiling is reached on a full page, one single-item lookup decides whether
older history exists, so a history of exactly max_pages full pages is
reported complete.
"""

from __future__ import annotations

import asyncio
import warnings
from typing import Any, AsyncIterator, Awaitable, Callable

from backend_inflow.core.exceptions import TruncatedHistory
from backend_inflow.inflow_logging import get_logger
from backend_inflow.solana_rpc.client import SolanaRpcClient
from backend_inflow.solana_rpc.models import SignatureInfo

logger = get_logger(__name__)

DEFAULT_PAGE_LIMIT = 1000
DEFAULT_MAX_PAGES = 50_000
DEFAULT_PAGE_DELAY_SEC = 0.06


class SignaturePaginator:
    """Restartable, finite walk over one address's signature history."""

    def __init__(
        self,
        client: SolanaRpcClient,
        *,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        max_pages: int = DEFAULT_MAX_PAGES,
        page_delay_sec: float = DEFAULT_PAGE_DELAY_SEC,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if not (1 <= page_limit <= 1000):
            raise ValueError("page_limit must be between 1 and 1000")
        if max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        self._client = client
        self._page_limit = page_limit
        self._max_pages = max_pages
        self._page_delay = page_delay_sec
        self._sleep = sleep
        self.truncated = False
        self.pages_fetched = 0

    async def paginate(
        self,
        address: str,
        since_signature: str | None = None,
        *,
        before: str | None = None,
    ) -> AsyncIterator[SignatureInfo]:
        """
        Yield SignatureInfo newest first.

        `before` restarts a backward walk from an older cursor. Failed
        transactions (err set) are yielded too. RPC errors propagate.
        """
        self.truncated = False
        self.pages_fetched = 0
        cursor = before
        mode = "incremental" if since_signature else "full"

        while True:
            if self.pages_fetched >= self._max_pages:
                if not await self._history_continues(address, cursor, since_signature):
                    logger.debug("paginator_cap_at_end_of_history", mode=mode, pages=self.pages_fetched)
                    return
                self.truncated = True
                logger.warning(
                    "paginator_truncated_history",
                    mode=mode,
                    pages=self.pages_fetched,
                    cursor=cursor,
                )
                warnings.warn(
                    f"signature history for {address} truncated after {self.pages_fetched} pages",
                    TruncatedHistory,
                    stacklevel=2,
                )
                return

            page = await self._client.get_signatures_for_address(
                address,
                limit=self._page_limit,
                before=cursor,
                until=since_signature,
            )
            self.pages_fetched += 1
            if not page:
                logger.debug("paginator_empty_page", mode=mode, pages=self.pages_fetched)
                return

            reached_checkpoint = False
            last_signature: str | None = None
            for item in page:
                if not isinstance(item, dict) or "signature" not in item:
                    logger.debug("paginator_skip_invalid_item")
                    continue
                if since_signature is not None and item["signature"] == since_signature:
                    reached_checkpoint = True
                    break
                try:
                    info = SignatureInfo.from_rpc_item(item)
                except (KeyError, TypeError, ValueError) as e:
                    logger.debug("paginator_skip_invalid_item", error=str(e))
                    continue
                last_signature = info.signature
                yield info

            if reached_checkpoint or len(page) < self._page_limit:
                return
            if last_signature is None:
                # A full page with no usable signature cannot advance the cursor
                logger.warning("paginator_cursor_stalled", pages=self.pages_fetched)
                return
            cursor = last_signature
            if self._page_delay > 0:
                await self._sleep(self._page_delay)

    async def _history_continues(
        self,
        address: str,
        cursor: str | None,
        since_signature: str | None,
    ) -> bool:
        page = await self._client.get_signatures_for_address(
            address,
            limit=1,
            before=cursor,
            until=since_signature,
        )
        return any(
            isinstance(item, dict) and item.get("signature") not in (None, since_signature)
            for item in page
        )
