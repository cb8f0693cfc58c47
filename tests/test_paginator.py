"""
Tests for SignaturePaginator: termination, checkpoint bound, truncation cap.
"""

from __future__ import annotations

import asyncio

import pytest

from backend_inflow.core.exceptions import TruncatedHistory
from backend_inflow.solana_rpc import SignaturePaginator
from chain_fakes import WALLET, FakeChain, no_sleep


def _collect(paginator: SignaturePaginator, since=None):
    async def run():
        return [info async for info in paginator.paginate(WALLET, since)]

    return asyncio.run(run())


def _paginator(chain: FakeChain, **kwargs) -> SignaturePaginator:
    kwargs.setdefault("page_limit", 2)
    return SignaturePaginator(chain.client(), page_delay_sec=0, sleep=no_sleep, **kwargs)


def test_full_walk_newest_first(chain: FakeChain):
    for i in range(5):
        chain.add(f"sig-{i}")
    paginator = _paginator(chain)

    result = [info.signature for info in _collect(paginator)]

    assert result == ["sig-4", "sig-3", "sig-2", "sig-1", "sig-0"]
    # pages of 2, 2, 1: the short page ends the walk
    assert paginator.pages_fetched == 3
    assert not paginator.truncated


def test_before_cursor_is_last_signature_of_previous_page(chain: FakeChain):
    for i in range(4):
        chain.add(f"sig-{i}")
    _collect(_paginator(chain))

    befores = [r["params"][1].get("before") for r in chain.requests]
    assert befores == [None, "sig-2", "sig-0"]


def test_empty_history(chain: FakeChain):
    paginator = _paginator(chain)
    assert _collect(paginator) == []
    assert paginator.pages_fetched == 1


def test_incremental_yields_only_newer(chain: FakeChain):
    for i in range(3):
        chain.add(f"old-{i}")
    for i in range(3):
        chain.add(f"new-{i}")

    result = [info.signature for info in _collect(_paginator(chain), since="old-2")]

    assert result == ["new-2", "new-1", "new-0"]
    assert all(r["params"][1]["until"] == "old-2" for r in chain.requests)


def test_incremental_never_yields_checkpoint_when_echoed(chain: FakeChain, monkeypatch):
    """A source that ignores `until` still stops at the checkpoint signature."""
    for sig in ["a", "b", "c"]:
        chain.add(sig)
    original = chain._signatures_page

    def ignore_until(opts):
        return original({k: v for k, v in opts.items() if k != "until"})

    monkeypatch.setattr(chain, "_signatures_page", ignore_until)
    paginator = _paginator(chain, page_limit=10)

    result = [info.signature for info in _collect(paginator, since="b")]

    assert result == ["c"]


def test_incremental_with_no_new_signatures(chain: FakeChain):
    chain.add("only")
    assert _collect(_paginator(chain), since="only") == []


def test_failed_transactions_are_yielded(chain: FakeChain):
    chain.add("ok-1")
    chain.add("bad", err={"InstructionError": [0, "Custom"]})
    result = _collect(_paginator(chain, page_limit=10))

    assert [info.signature for info in result] == ["bad", "ok-1"]
    assert result[0].failed
    assert not result[1].failed


def test_page_cap_truncates_with_warning(chain: FakeChain):
    chain.always_full_pages = True
    paginator = _paginator(chain, page_limit=3, max_pages=4)

    with pytest.warns(TruncatedHistory):
        result = _collect(paginator)

    assert len(result) == 12
    assert paginator.truncated
    assert paginator.pages_fetched == 4
    # 4 pages plus one single-item lookup for older history
    assert chain.count("getSignaturesForAddress") == 5


def test_invalid_page_limit():
    with pytest.raises(ValueError):
        SignaturePaginator(FakeChain().client(), page_limit=0)
    with pytest.raises(ValueError):
        SignaturePaginator(FakeChain().client(), page_limit=1001)


def test_history_ending_exactly_at_page_cap_is_complete(chain: FakeChain):
    for i in range(6):
        chain.add(f"sig-{i}")
    paginator = _paginator(chain, page_limit=3, max_pages=2)

    result = _collect(paginator)

    assert len(result) == 6
    assert not paginator.truncated
    last_request = chain.requests[-1]["params"][1]
    assert last_request["limit"] == 1
    assert last_request["before"] == "sig-0"


def test_before_cursor_restarts_walk(chain: FakeChain):
    for i in range(5):
        chain.add(f"sig-{i}")
    paginator = _paginator(chain)

    async def run():
        return [info.signature async for info in paginator.paginate(WALLET, before="sig-3")]

    assert asyncio.run(run()) == ["sig-2", "sig-1", "sig-0"]
    assert chain.requests[0]["params"][1]["before"] == "sig-3"
