from __future__ import annotations

import pytest

from micropools.core.contract import build_script, parse_script
from micropools.core.liquidity import (
    DEFAULT_MINER_FEE,
    new_pool_output,
    p2pkh_script,
    proportional_token_amount,
    withdraw_outputs,
)
from micropools.errors import AmountTooSmallError, InsufficientLiquidityError, OverflowGuardError
from micropools.state.pools import Pool, PoolState, UtxoRef

OWNER = b"\x07" * 20


def test_new_pool_output_builds_pool_script() -> None:
    out = new_pool_output(OWNER, 10_000, 1000)
    assert out.value == 10_000
    assert out.script == build_script(OWNER, 1000)
    parsed = parse_script(out.script)
    assert (parsed.owner_hash, parsed.token_reserve) == (OWNER, 1000)


def test_new_pool_output_enforces_minimums() -> None:
    with pytest.raises(AmountTooSmallError) as exc:
        new_pool_output(OWNER, 545, 1000)
    assert exc.value.context == {"amount": 545, "minimum": 546}
    with pytest.raises(AmountTooSmallError):
        new_pool_output(OWNER, 546, 0)
    assert new_pool_output(OWNER, 546, 1).value == 546


def test_new_pool_output_refuses_unsafe_k() -> None:
    with pytest.raises(OverflowGuardError):
        new_pool_output(OWNER, 2**40, 2**40)


def test_withdraw_outputs_send_reserve_less_miner_fee() -> None:
    pool = Pool(
        ref=UtxoRef(txid="ee" * 32, vout=0),
        state=PoolState(rxd_reserve=10_000, token_reserve=1000),
        owner_hash=OWNER,
        script=build_script(OWNER, 1000),
    )
    receiver = p2pkh_script(OWNER)
    (out,) = withdraw_outputs(pool, receiver)
    assert out.value == 10_000 - DEFAULT_MINER_FEE
    assert out.script == receiver
    with pytest.raises(AmountTooSmallError):
        withdraw_outputs(pool, receiver, miner_fee=9_500)


def test_p2pkh_script_layout() -> None:
    assert p2pkh_script(OWNER) == bytes.fromhex("76a914") + OWNER + bytes.fromhex("88ac")
    with pytest.raises(ValueError):
        p2pkh_script(b"\x00" * 21)


def test_proportional_token_amount_keeps_price() -> None:
    state = PoolState(rxd_reserve=10_000, token_reserve=1000)
    assert proportional_token_amount(state, 5000) == 500
    assert proportional_token_amount(state, 15) == 1
    with pytest.raises(AmountTooSmallError):
        proportional_token_amount(state, 0)
    with pytest.raises(InsufficientLiquidityError):
        proportional_token_amount(PoolState(rxd_reserve=0, token_reserve=0), 100)
