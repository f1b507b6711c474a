"""
Liquidity helpers: create a pool output, withdraw one, size a new pool at the
current price.

Each micro-pool has a single owner; adding liquidity means creating another
pool, not topping up an existing one.
"""

from __future__ import annotations

from typing import List

from ..errors import AmountTooSmallError, InsufficientLiquidityError
from ..state.pools import DUST_LIMIT, MIN_TOKEN_UNIT, OWNER_HASH_SIZE, Pool, PoolState, TxOutput
from .contract import build_script
from .fees import DEFAULT_FEE_SCHEDULE, FeeSchedule
from .opcodes import Op, push_data
from .safe_math import calculate_k, checked_mul, require_int
from .spend import withdrawal_unlock

# Flat miner-fee estimate used when the caller does not size the transaction.
DEFAULT_MINER_FEE = 1000


def p2pkh_script(owner_hash: bytes) -> bytes:
    """``OP_DUP OP_HASH160 <20> OP_EQUALVERIFY OP_CHECKSIG``."""
    if len(owner_hash) != OWNER_HASH_SIZE:
        raise ValueError(f"owner hash must be {OWNER_HASH_SIZE} bytes")
    return (
        bytes([Op.OP_DUP, Op.OP_HASH160])
        + push_data(bytes(owner_hash))
        + bytes([Op.OP_EQUALVERIFY, Op.OP_CHECKSIG])
    )


def new_pool_output(
    owner_hash: bytes,
    rxd_amount: int,
    token_amount: int,
    *,
    fee: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> TxOutput:
    """
    Output that funds a new pool.

    Raises:
        AmountTooSmallError: rxd_amount below dust, or no tokens
        OverflowGuardError: the pool's K would leave the safe domain
    """
    require_int("rxd_amount", rxd_amount)
    require_int("token_amount", token_amount)
    if rxd_amount < DUST_LIMIT:
        raise AmountTooSmallError(amount=rxd_amount, minimum=DUST_LIMIT)
    if token_amount < MIN_TOKEN_UNIT:
        raise AmountTooSmallError(amount=token_amount, minimum=MIN_TOKEN_UNIT)
    # Every future trade multiplies the reserves; refuse a pool that cannot.
    calculate_k(rxd_amount, token_amount)
    return TxOutput(value=rxd_amount, script=build_script(owner_hash, token_amount, fee=fee))


def withdraw_outputs(
    pool: Pool,
    receiver_script: bytes,
    *,
    miner_fee: int = DEFAULT_MINER_FEE,
) -> List[TxOutput]:
    """
    Outputs for the owner path: the whole RXD reserve, less ``miner_fee``,
    to ``receiver_script``. Unlock with ``withdrawal_unlock(sig, pubkey)``.
    """
    require_int("miner_fee", miner_fee)
    if miner_fee < 0:
        raise ValueError(f"miner_fee must be non-negative: {miner_fee}")
    value = pool.rxd_reserve - miner_fee
    if value < DUST_LIMIT:
        raise AmountTooSmallError(amount=value, minimum=DUST_LIMIT)
    return [TxOutput(value=value, script=bytes(receiver_script))]


def proportional_token_amount(state: PoolState, rxd_to_add: int) -> int:
    """
    Tokens to pair with ``rxd_to_add`` so a new pool opens at ``state``'s price:
    ``floor(rxd_to_add * T / R)``.
    """
    require_int("rxd_to_add", rxd_to_add)
    if rxd_to_add <= 0:
        raise AmountTooSmallError(amount=rxd_to_add, minimum=1)
    if state.rxd_reserve == 0:
        raise InsufficientLiquidityError(required=1, available=0)
    return checked_mul(rxd_to_add, state.token_reserve, operation="proportional_token_amount") // state.rxd_reserve


__all__ = [
    "DEFAULT_MINER_FEE",
    "new_pool_output",
    "p2pkh_script",
    "proportional_token_amount",
    "withdraw_outputs",
    "withdrawal_unlock",
]
