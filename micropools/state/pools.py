"""
Pool value types for micro-pools.

A micro-pool is one UTXO: its value is the RXD reserve, its locking script
carries the owner hash in the code portion and the token reserve in the 8-byte
state suffix. Nothing here is mutable; a trade yields a new PoolState and the
spent UTXO is replaced by a new one.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

# Ledger limits.
DUST_LIMIT = 546
MIN_TOKEN_UNIT = 1
MAX_U64 = 2**64 - 1
MAX_INT64 = 2**63 - 1

# Script field sizes.
OWNER_HASH_SIZE = 20
TOKEN_REF_SIZE = 32
STATE_SIZE = 8

_TXID_RE = re.compile(r"^[0-9a-f]{64}$")


def _require_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")


class PoolStatus(Enum):
    """Pool status derived from reserves."""
    ACTIVE = "ACTIVE"
    WITHDRAW_ONLY = "WITHDRAW_ONLY"


@dataclass(frozen=True)
class PoolState:
    """
    Reserves of a single micro-pool.

    Attributes:
        rxd_reserve: RXD held by the pool UTXO (its value, in base units)
        token_reserve: Token units recorded in the script state suffix

    K is never stored here; derive it with ``micropools.core.safe_math.calculate_k``.
    """
    rxd_reserve: int
    token_reserve: int

    def __post_init__(self) -> None:
        _require_int("rxd_reserve", self.rxd_reserve)
        _require_int("token_reserve", self.token_reserve)
        if self.rxd_reserve < 0 or self.token_reserve < 0:
            raise ValueError(
                f"Reserves must be non-negative: ({self.rxd_reserve}, {self.token_reserve})"
            )
        if self.rxd_reserve > MAX_U64:
            raise ValueError(f"rxd_reserve exceeds u64 range: {self.rxd_reserve}")
        # The state field is a signed int64 on-chain.
        if self.token_reserve > MAX_INT64:
            raise ValueError(f"token_reserve exceeds int64 range: {self.token_reserve}")

    @property
    def status(self) -> PoolStatus:
        if self.rxd_reserve < DUST_LIMIT or self.token_reserve < MIN_TOKEN_UNIT:
            return PoolStatus.WITHDRAW_ONLY
        return PoolStatus.ACTIVE

    @property
    def is_tradable(self) -> bool:
        return self.status is PoolStatus.ACTIVE


@dataclass(frozen=True)
class UtxoRef:
    """Outpoint identifying a pool UTXO."""
    txid: str
    vout: int

    def __post_init__(self) -> None:
        if not isinstance(self.txid, str) or not _TXID_RE.match(self.txid):
            raise ValueError(f"txid must be 64 lower-case hex chars: {self.txid!r}")
        _require_int("vout", self.vout)
        if not (0 <= self.vout <= 0xFFFFFFFF):
            raise ValueError(f"vout out of range: {self.vout}")

    def __str__(self) -> str:
        return f"{self.txid}:{self.vout}"


@dataclass(frozen=True)
class Pool:
    """
    Snapshot of an on-chain micro-pool.

    Attributes:
        ref: Outpoint of the pool UTXO
        state: Reserves at the time of the snapshot
        owner_hash: 20-byte hash160 of the owner's public key
        script: Full locking script (code portion, separator, state)
        token_ref: Optional 32-byte reference of the fungible token the pool trades
    """
    ref: UtxoRef
    state: PoolState
    owner_hash: bytes
    script: bytes
    token_ref: Optional[bytes] = None

    def __post_init__(self) -> None:
        if not isinstance(self.owner_hash, bytes) or len(self.owner_hash) != OWNER_HASH_SIZE:
            raise ValueError(f"owner_hash must be {OWNER_HASH_SIZE} bytes")
        if not isinstance(self.script, bytes):
            raise TypeError("script must be bytes")
        if self.token_ref is not None and (
            not isinstance(self.token_ref, bytes) or len(self.token_ref) != TOKEN_REF_SIZE
        ):
            raise ValueError(f"token_ref must be {TOKEN_REF_SIZE} bytes when set")

    @property
    def pool_id(self) -> str:
        return str(self.ref)

    @property
    def rxd_reserve(self) -> int:
        return self.state.rxd_reserve

    @property
    def token_reserve(self) -> int:
        return self.state.token_reserve

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view (integers as decimal strings)."""
        out: Dict[str, Any] = {
            "id": self.pool_id,
            "txid": self.ref.txid,
            "vout": self.ref.vout,
            "rxd_reserve": str(self.state.rxd_reserve),
            "token_reserve": str(self.state.token_reserve),
            "owner_hash": self.owner_hash.hex(),
            "status": self.state.status.value,
        }
        if self.token_ref is not None:
            out["token_ref"] = self.token_ref.hex()
        return out

    def __repr__(self) -> str:
        return (
            f"Pool(id={self.ref.txid[:16]}...:{self.ref.vout}, "
            f"reserves=({self.state.rxd_reserve}, {self.state.token_reserve}), "
            f"owner={self.owner_hash.hex()[:8]}...)"
        )


@dataclass(frozen=True)
class TxOutput:
    """Transaction output: value in RXD base units and locking script."""
    value: int
    script: bytes

    def __post_init__(self) -> None:
        _require_int("value", self.value)
        if not (0 <= self.value <= MAX_U64):
            raise ValueError(f"value out of range: {self.value}")
        if not isinstance(self.script, bytes):
            raise TypeError("script must be bytes")
