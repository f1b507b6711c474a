from __future__ import annotations

import pytest

from micropools.state.pools import (
    DUST_LIMIT,
    MAX_INT64,
    Pool,
    PoolState,
    PoolStatus,
    TxOutput,
    UtxoRef,
)


TXID = "ab" * 32
OWNER = bytes(range(1, 21))


def test_pool_state_rejects_negative_and_non_int() -> None:
    with pytest.raises(ValueError):
        PoolState(rxd_reserve=-1, token_reserve=10)
    with pytest.raises(ValueError):
        PoolState(rxd_reserve=10, token_reserve=-1)
    with pytest.raises(TypeError):
        PoolState(rxd_reserve=True, token_reserve=10)  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        PoolState(rxd_reserve=10.0, token_reserve=10)  # type: ignore[arg-type]


def test_pool_state_token_reserve_fits_int64_state_field() -> None:
    PoolState(rxd_reserve=DUST_LIMIT, token_reserve=MAX_INT64)
    with pytest.raises(ValueError):
        PoolState(rxd_reserve=DUST_LIMIT, token_reserve=MAX_INT64 + 1)


def test_status_is_withdraw_only_below_dust_or_without_tokens() -> None:
    assert PoolState(rxd_reserve=DUST_LIMIT, token_reserve=1).status is PoolStatus.ACTIVE
    assert PoolState(rxd_reserve=DUST_LIMIT - 1, token_reserve=1000).status is PoolStatus.WITHDRAW_ONLY
    assert PoolState(rxd_reserve=10_000, token_reserve=0).status is PoolStatus.WITHDRAW_ONLY
    assert not PoolState(rxd_reserve=0, token_reserve=0).is_tradable


def test_pool_state_is_immutable() -> None:
    s = PoolState(rxd_reserve=10_000, token_reserve=1000)
    with pytest.raises(AttributeError):
        s.rxd_reserve = 1  # type: ignore[misc]


def test_utxo_ref_validation_and_str() -> None:
    ref = UtxoRef(txid=TXID, vout=3)
    assert str(ref) == f"{TXID}:3"
    with pytest.raises(ValueError):
        UtxoRef(txid="AB" * 32, vout=0)
    with pytest.raises(ValueError):
        UtxoRef(txid="ab" * 31, vout=0)
    with pytest.raises(ValueError):
        UtxoRef(txid=TXID, vout=-1)


def test_pool_validates_owner_hash_and_token_ref() -> None:
    ref = UtxoRef(txid=TXID, vout=0)
    state = PoolState(rxd_reserve=10_000, token_reserve=1000)
    with pytest.raises(ValueError):
        Pool(ref=ref, state=state, owner_hash=b"\x00" * 19, script=b"")
    with pytest.raises(ValueError):
        Pool(ref=ref, state=state, owner_hash=OWNER, script=b"", token_ref=b"\x00" * 31)
    pool = Pool(ref=ref, state=state, owner_hash=OWNER, script=b"", token_ref=b"\x11" * 32)
    assert pool.rxd_reserve == 10_000
    assert pool.token_reserve == 1000
    assert pool.pool_id == f"{TXID}:0"


def test_pool_to_dict_uses_decimal_strings() -> None:
    pool = Pool(
        ref=UtxoRef(txid=TXID, vout=1),
        state=PoolState(rxd_reserve=2**60, token_reserve=7),
        owner_hash=OWNER,
        script=b"",
    )
    d = pool.to_dict()
    assert d["rxd_reserve"] == str(2**60)
    assert d["token_reserve"] == "7"
    assert d["owner_hash"] == OWNER.hex()
    assert d["status"] == "ACTIVE"
    assert "token_ref" not in d


def test_tx_output_rejects_negative_value() -> None:
    assert TxOutput(value=0, script=b"\x51").value == 0
    with pytest.raises(ValueError):
        TxOutput(value=-1, script=b"")
    with pytest.raises(TypeError):
        TxOutput(value=1, script="00")  # type: ignore[arg-type]
