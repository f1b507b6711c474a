"""Property tests for the codec round trip and the integer trade math."""

from __future__ import annotations

import importlib.util

import pytest

if importlib.util.find_spec("hypothesis") is None:  # pragma: no cover
    pytest.skip("hypothesis not installed", allow_module_level=True)

import hypothesis.strategies as st
from hypothesis import assume, given, settings

from micropools.core.contract import build_script, code_portion, parse_script, update_state
from micropools.core.cpmm import (
    onchain_fee,
    swap_for_exact_rxd,
    swap_for_exact_tokens,
    swap_rxd_in,
    swap_tokens_in,
    verify_invariant,
)
from micropools.core.fees import compute_fee
from micropools.errors import InsufficientLiquidityError

INT64_MAX = 2**63 - 1

reserves = st.integers(min_value=1, max_value=2**31)


@settings(max_examples=200, deadline=None)
@given(owner=st.binary(min_size=20, max_size=20), reserve=st.integers(min_value=0, max_value=INT64_MAX))
def test_parse_inverts_build(owner: bytes, reserve: int) -> None:
    parsed = parse_script(build_script(owner, reserve))
    assert (parsed.owner_hash, parsed.token_reserve) == (owner, reserve)


@settings(max_examples=200, deadline=None)
@given(
    owner=st.binary(min_size=20, max_size=20),
    t0=st.integers(min_value=0, max_value=INT64_MAX),
    t1=st.integers(min_value=0, max_value=INT64_MAX),
)
def test_update_state_keeps_code_portion(owner: bytes, t0: int, t1: int) -> None:
    updated = update_state(build_script(owner, t0), t1)
    assert code_portion(updated) == code_portion(build_script(owner, t1))


@settings(max_examples=500, deadline=None)
@given(a=st.integers(min_value=-(2**40), max_value=2**40), b=st.integers(min_value=-(2**40), max_value=2**40))
def test_fee_is_monotone_in_magnitude(a: int, b: int) -> None:
    assert compute_fee(a) == abs(a) * 3 // 1000
    if abs(a) <= abs(b):
        assert compute_fee(a) <= compute_fee(b)


@settings(max_examples=500, deadline=None)
@given(rxd=reserves, tokens=reserves, rxd_in=st.integers(min_value=1, max_value=2**40))
def test_buy_quote_stays_inside_pool_and_passes_check(rxd: int, tokens: int, rxd_in: int) -> None:
    effective = rxd_in - compute_fee(rxd_in)
    try:
        res = swap_rxd_in(rxd, tokens, rxd_in)
    except InsufficientLiquidityError:
        # Only when the floor of the ideal output is zero.
        assert (tokens - 1) * effective < rxd
        return
    assert 0 < res.amount_out < tokens
    assert res.amount_out == tokens * effective // (rxd + effective)
    assert verify_invariant(rxd, tokens, res.rxd_reserve_after, res.token_reserve_after, res.fee)


@settings(max_examples=500, deadline=None)
@given(rxd=reserves, tokens=reserves, tokens_in=st.integers(min_value=1, max_value=2**31))
def test_sell_quote_passes_check_with_script_fee(rxd: int, tokens: int, tokens_in: int) -> None:
    try:
        res = swap_tokens_in(rxd, tokens, tokens_in)
    except InsufficientLiquidityError:
        return
    assert 0 < res.amount_out < rxd
    fee = onchain_fee(rxd, res.rxd_reserve_after)
    assert verify_invariant(rxd, tokens, res.rxd_reserve_after, res.token_reserve_after, fee)


@settings(max_examples=500, deadline=None)
@given(rxd=st.integers(min_value=1, max_value=2**30), tokens=st.integers(min_value=2, max_value=2**30), data=st.data())
def test_exact_tokens_out_never_under_delivers(rxd: int, tokens: int, data: st.DataObject) -> None:
    wanted = data.draw(st.integers(min_value=1, max_value=tokens - 1))
    quote = swap_for_exact_tokens(rxd, tokens, wanted)
    assert quote.token_reserve_after == tokens - wanted
    assert swap_rxd_in(rxd, tokens, quote.amount_in).amount_out >= wanted


@settings(max_examples=500, deadline=None)
@given(rxd=st.integers(min_value=2, max_value=2**24), tokens=st.integers(min_value=1, max_value=2**24), data=st.data())
def test_exact_rxd_out_never_under_delivers(rxd: int, tokens: int, data: st.DataObject) -> None:
    wanted = data.draw(st.integers(min_value=1, max_value=rxd - 1))
    try:
        quote = swap_for_exact_rxd(rxd, tokens, wanted)
    except InsufficientLiquidityError:
        assume(False)
        return
    assert quote.rxd_reserve_after == rxd - wanted
    assert swap_tokens_in(rxd, tokens, quote.amount_in).amount_out >= wanted
