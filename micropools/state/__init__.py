"""
Pool state for micro-pools
"""

from .pools import (
    DUST_LIMIT,
    MIN_TOKEN_UNIT,
    Pool,
    PoolState,
    PoolStatus,
    TxOutput,
    UtxoRef,
)

__all__ = [
    "DUST_LIMIT",
    "MIN_TOKEN_UNIT",
    "Pool",
    "PoolState",
    "PoolStatus",
    "TxOutput",
    "UtxoRef",
]
