"""
Core micro-pool algorithms
"""

from .cpmm import (
    SwapResult,
    quote_tokens_out,
    quote_rxd_out,
    quote_exact_tokens_out,
    quote_exact_rxd_out,
    verify_invariant,
    require_invariant,
    buy_tokens,
    sell_tokens,
    spot_price,
    price_impact,
)
from .contract import (
    PoolScript,
    build_script,
    parse_script,
    update_state,
    code_portion,
    hash160,
    pool_from_utxo,
)
from .fees import FeeSchedule, compute_fee
from .safe_math import calculate_k, checked_mul
from .spend import SpendPath, spend_path, verify_trade_spend, verify_withdrawal, withdrawal_unlock
from .routing import (
    Direction,
    RouterConfig,
    SwapQuote,
    SwapRequest,
    TradeRoute,
    PriceQuote,
    TradeStep,
    aggregate_price,
    build_trade_outputs,
    materialize_outputs,
    quote_swap,
    route_swap,
)
from .liquidity import new_pool_output, proportional_token_amount, withdraw_outputs

__all__ = [
    "SwapResult",
    "quote_tokens_out",
    "quote_rxd_out",
    "quote_exact_tokens_out",
    "quote_exact_rxd_out",
    "verify_invariant",
    "require_invariant",
    "buy_tokens",
    "sell_tokens",
    "spot_price",
    "price_impact",
    "PoolScript",
    "build_script",
    "parse_script",
    "update_state",
    "code_portion",
    "hash160",
    "pool_from_utxo",
    "FeeSchedule",
    "compute_fee",
    "calculate_k",
    "checked_mul",
    "SpendPath",
    "spend_path",
    "verify_trade_spend",
    "verify_withdrawal",
    "withdrawal_unlock",
    "Direction",
    "RouterConfig",
    "SwapQuote",
    "SwapRequest",
    "TradeRoute",
    "PriceQuote",
    "TradeStep",
    "aggregate_price",
    "build_trade_outputs",
    "materialize_outputs",
    "quote_swap",
    "route_swap",
    "new_pool_output",
    "proportional_token_amount",
    "withdraw_outputs",
]
