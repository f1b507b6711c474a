"""
Pool contract codec.

Maps ``(owner_hash, token_reserve)`` to the exact locking-script bytes and
back. The code portion is rendered from a versioned YAML template
(`micropools/kernels/contracts/pool_contract_v1.yaml`); the state portion is the
8-byte little-endian token reserve after ``OP_STATESEPARATOR``.

Layout:
    code || 0xBD || token_reserve (int64 LE, 8 bytes)

Separator lookup:
    The state suffix has a fixed width, so the separator must sit at
    ``len(script) - 9``. Checking that anchor first means a 0xBD byte inside the
    owner hash or inside the state value is never taken for the boundary, and
    deployed scripts parse unchanged. Only when the anchor does not hold do we
    fall back to the last 0xBD to decide which error to report.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml

from ..errors import (
    InvalidLayoutError,
    MissingSeparatorError,
    OwnerHashNotFoundError,
    StateTooShortError,
)
from ..state.pools import OWNER_HASH_SIZE, STATE_SIZE, Pool, PoolState, UtxoRef
from .fees import DEFAULT_FEE_SCHEDULE, FeeSchedule
from .opcodes import Op, decode_state_amount, encode_state_amount, iter_script, push_data, push_number

logger = logging.getLogger(__name__)

SEPARATOR = int(Op.OP_STATESEPARATOR)
TEMPLATE_VERSION = 1
KNOWN_TEMPLATE_VERSIONS: Tuple[int, ...] = (1,)

SlotValue = Union[bytes, int]


@dataclass(frozen=True)
class SlotSpec:
    name: str
    type: str
    size: Optional[int] = None


@dataclass(frozen=True)
class ScriptTemplate:
    """
    Parsed code-portion template.

    ``items`` is a flat tuple of ``("op", opcode)``, ``("num", n)`` and
    ``("slot", name)`` entries rendered in order.
    """
    name: str
    version: int
    state_size: int
    slots: Tuple[SlotSpec, ...]
    items: Tuple[Tuple[str, Any], ...]

    def slot(self, name: str) -> SlotSpec:
        for spec in self.slots:
            if spec.name == name:
                return spec
        raise KeyError(name)

    def render(self, values: Mapping[str, SlotValue]) -> bytes:
        missing = [s.name for s in self.slots if s.name not in values]
        if missing:
            raise ValueError(f"missing template slots: {', '.join(missing)}")
        out = bytearray()
        for kind, arg in self.items:
            if kind == "op":
                out.append(arg)
            elif kind == "num":
                out += push_number(arg)
            else:
                out += _render_slot(self.slot(arg), values[arg])
        return bytes(out)


def _render_slot(spec: SlotSpec, value: SlotValue) -> bytes:
    if spec.type == "bytes":
        if not isinstance(value, (bytes, bytearray)):
            raise InvalidLayoutError(f"slot {spec.name} must be bytes", slot=spec.name)
        if spec.size is not None and len(value) != spec.size:
            raise InvalidLayoutError(
                f"slot {spec.name} must be exactly {spec.size} bytes, got {len(value)}",
                slot=spec.name,
                size=len(value),
            )
        return push_data(bytes(value))
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidLayoutError(f"slot {spec.name} must be an int", slot=spec.name)
    return push_number(value)


def _template_path(version: int) -> Path:
    # micropools/core/contract.py -> micropools/ -> kernels/contracts/pool_contract_v{n}.yaml
    return Path(__file__).resolve().parents[1] / "kernels" / "contracts" / f"pool_contract_v{version}.yaml"


def _opcode(name: Any) -> int:
    if not isinstance(name, str):
        raise TypeError(f"opcode name must be a string, got {name!r}")
    try:
        return int(Op[name])
    except KeyError:
        raise ValueError(f"unknown opcode in template: {name}") from None


def _flatten_items(entries: Any) -> List[Tuple[str, Any]]:
    if not isinstance(entries, list):
        raise TypeError("template code must be a list")
    items: List[Tuple[str, Any]] = []
    for entry in entries:
        if isinstance(entry, list):
            items.extend(_flatten_items(entry))
        elif isinstance(entry, str):
            items.append(("op", _opcode(entry)))
        elif isinstance(entry, dict) and len(entry) == 1:
            ((key, arg),) = entry.items()
            if key == "num" and isinstance(arg, int) and not isinstance(arg, bool):
                items.append(("num", arg))
            elif key == "slot" and isinstance(arg, str):
                items.append(("slot", arg))
            else:
                raise ValueError(f"invalid template item: {entry!r}")
        else:
            raise ValueError(f"invalid template item: {entry!r}")
    return items


@lru_cache(maxsize=None)
def load_template(version: int = TEMPLATE_VERSION) -> ScriptTemplate:
    path = _template_path(version)
    obj = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(obj, Mapping):
        raise TypeError("template YAML must be a mapping")
    if obj.get("version") != version:
        raise ValueError(f"template version mismatch: file={obj.get('version')!r} requested={version}")
    if _opcode(obj.get("separator")) != SEPARATOR:
        raise ValueError("template separator must be OP_STATESEPARATOR")
    if obj.get("state_size") != STATE_SIZE:
        raise ValueError(f"template state_size must be {STATE_SIZE}")

    raw_slots = obj.get("slots") or {}
    if not isinstance(raw_slots, Mapping):
        raise TypeError("template slots must be a mapping")
    slots: List[SlotSpec] = []
    for name, spec in raw_slots.items():
        if not isinstance(spec, Mapping) or spec.get("type") not in ("bytes", "int"):
            raise ValueError(f"invalid slot spec for {name!r}")
        slots.append(SlotSpec(name=str(name), type=spec["type"], size=spec.get("size")))

    items = _flatten_items(obj.get("code"))
    names = {s.name for s in slots}
    for kind, arg in items:
        if kind == "slot" and arg not in names:
            raise ValueError(f"template references undeclared slot: {arg}")

    template = ScriptTemplate(
        name=str(obj.get("name", "")),
        version=version,
        state_size=STATE_SIZE,
        slots=tuple(slots),
        items=tuple(items),
    )
    logger.debug("loaded pool template %s v%d (%d items)", template.name, version, len(items))
    return template


# ---------------------------------------------------------------------------
# Build / parse / update
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PoolScript:
    owner_hash: bytes
    token_reserve: int
    code: bytes
    # Version of the template the code portion renders from, or None if it matches none.
    template_version: Optional[int] = None

    @property
    def is_canonical(self) -> bool:
        return self.template_version is not None


def render_code(
    owner_hash: bytes,
    *,
    fee: FeeSchedule = DEFAULT_FEE_SCHEDULE,
    version: int = TEMPLATE_VERSION,
) -> bytes:
    """Render the code portion (without separator) for ``owner_hash``."""
    if not isinstance(owner_hash, (bytes, bytearray)) or len(owner_hash) != OWNER_HASH_SIZE:
        size = len(owner_hash) if isinstance(owner_hash, (bytes, bytearray)) else None
        raise InvalidLayoutError(f"owner hash must be {OWNER_HASH_SIZE} bytes", size=size)
    values: Dict[str, SlotValue] = {
        "owner_hash": bytes(owner_hash),
        "fee_numerator": fee.numerator,
        "fee_denominator": fee.denominator,
    }
    return load_template(version).render(values)


def _encode_reserve(token_reserve: int) -> bytes:
    if not isinstance(token_reserve, int) or isinstance(token_reserve, bool):
        raise TypeError("token_reserve must be an int")
    if token_reserve < 0:
        raise InvalidLayoutError(f"token reserve must be non-negative: {token_reserve}", token_reserve=token_reserve)
    return encode_state_amount(token_reserve)


def build_script(
    owner_hash: bytes,
    token_reserve: int,
    *,
    fee: FeeSchedule = DEFAULT_FEE_SCHEDULE,
    version: int = TEMPLATE_VERSION,
) -> bytes:
    """
    Build a pool locking script.

    Raises:
        InvalidLayoutError: owner hash not 20 bytes, or negative reserve
    """
    code = render_code(owner_hash, fee=fee, version=version)
    return code + bytes([SEPARATOR]) + _encode_reserve(token_reserve)


def _separator_index(script: bytes) -> int:
    if not isinstance(script, (bytes, bytearray)):
        raise TypeError("script must be bytes")
    anchor = len(script) - STATE_SIZE - 1
    if anchor >= 0 and script[anchor] == SEPARATOR:
        return anchor
    last = bytes(script).rfind(bytes([SEPARATOR]))
    if last == -1:
        raise MissingSeparatorError(script_size=len(script))
    trailing = len(script) - last - 1
    if trailing < STATE_SIZE:
        raise StateTooShortError(available=trailing, required=STATE_SIZE)
    raise InvalidLayoutError(
        f"state portion must be exactly {STATE_SIZE} bytes, found {trailing} after last separator",
        trailing=trailing,
    )


def split_script(script: bytes) -> Tuple[bytes, bytes]:
    """Return ``(code, state)``; the separator byte belongs to neither."""
    idx = _separator_index(script)
    return bytes(script[:idx]), bytes(script[idx + 1 :])


def code_portion(script: bytes) -> bytes:
    return split_script(script)[0]


def _find_owner_hash(code: bytes) -> bytes:
    ops = list(iter_script(code))
    for i in range(len(ops) - 4):
        window = ops[i : i + 5]
        if (
            window[0].opcode == Op.OP_DUP
            and window[1].opcode == Op.OP_HASH160
            and window[2].data is not None
            and len(window[2].data) == OWNER_HASH_SIZE
            and window[3].opcode == Op.OP_EQUALVERIFY
            and window[4].opcode == Op.OP_CHECKSIG
        ):
            return window[2].data
    raise OwnerHashNotFoundError()


def _template_version_of(code: bytes, owner_hash: bytes) -> Optional[int]:
    for version in KNOWN_TEMPLATE_VERSIONS:
        if render_code(owner_hash, version=version) == code:
            return version
    return None


def parse_script(script: bytes) -> PoolScript:
    """
    Parse a pool locking script.

    Raises:
        MissingSeparatorError: no 0xBD byte at all
        StateTooShortError: fewer than 8 bytes after the last separator
        InvalidLayoutError: more than 8 bytes after the last separator, or a truncated push
        OwnerHashNotFoundError: no ``OP_DUP OP_HASH160 <20> OP_EQUALVERIFY OP_CHECKSIG`` branch
    """
    code, state = split_script(script)
    owner_hash = _find_owner_hash(code)
    token_reserve = decode_state_amount(state)
    return PoolScript(
        owner_hash=owner_hash,
        token_reserve=token_reserve,
        code=code,
        template_version=_template_version_of(code, owner_hash),
    )


def update_state(script: bytes, new_token_reserve: int) -> bytes:
    """
    Replace the 8-byte state suffix, keeping code and separator untouched.

    This is the only way a pool's next output script is produced, so the
    continuity check (same code portion in and out) holds by construction.
    """
    idx = _separator_index(script)
    return bytes(script[: idx + 1]) + _encode_reserve(new_token_reserve)


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))."""
    return hashlib.new("ripemd160", hashlib.sha256(data).digest()).digest()


def pool_from_utxo(
    ref: UtxoRef,
    value: int,
    script: bytes,
    *,
    token_ref: Optional[bytes] = None,
) -> Pool:
    """Build a ``Pool`` snapshot from a discovered UTXO (value is the RXD reserve)."""
    parsed = parse_script(script)
    return Pool(
        ref=ref,
        state=PoolState(rxd_reserve=value, token_reserve=parsed.token_reserve),
        owner_hash=parsed.owner_hash,
        script=bytes(script),
        token_ref=token_ref,
    )
