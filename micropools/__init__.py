"""
micropools: off-chain engine for UTXO micro-pool constant-product markets.

Script codec, integer trade math matching the on-chain check, and a greedy
multi-pool router.
"""

from .errors import ErrorKind, MicroPoolError
from .state import Pool, PoolState, PoolStatus, TxOutput, UtxoRef

__version__ = "0.1.0"

__all__ = [
    "ErrorKind",
    "MicroPoolError",
    "Pool",
    "PoolState",
    "PoolStatus",
    "TxOutput",
    "UtxoRef",
    "__version__",
]
