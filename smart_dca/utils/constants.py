"""Shared constants: recurrence intervals, token table, fixed-point scales."""

from dataclasses import dataclass
from enum import Enum


class IntervalType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


_DAY_MS = 24 * 60 * 60 * 1000

# Interval to milliseconds between executions
INTERVAL_MS: dict[IntervalType, int] = {
    IntervalType.DAILY: _DAY_MS,
    IntervalType.WEEKLY: 7 * _DAY_MS,
    IntervalType.BIWEEKLY: 14 * _DAY_MS,
    IntervalType.MONTHLY: 30 * _DAY_MS,
}

INTERVAL_LABELS: dict[IntervalType, str] = {
    IntervalType.DAILY: "daily",
    IntervalType.WEEKLY: "weekly",
    IntervalType.BIWEEKLY: "every two weeks",
    IntervalType.MONTHLY: "monthly",
}


@dataclass(frozen=True)
class TokenInfo:
    address: str
    symbol: str
    name: str
    decimals: int


TOKENS: dict[str, TokenInfo] = {
    "USDC": TokenInfo(
        address="0xa1ec7fc00a6f40db9693ad1415d0c193ad3906494428cf252621037bd7117e29::usdc::USDC",
        symbol="USDC",
        name="USD Coin (Testnet)",
        decimals=6,
    ),
    "SUI": TokenInfo(address="0x2::sui::SUI", symbol="SUI", name="Sui", decimals=9),
    "CETUS": TokenInfo(
        address="0x06864a6f921804860930db6ddbe2e16acdf8504495ea7481637a1c8b9a8fe54b::cetus::CETUS",
        symbol="CETUS",
        name="Cetus",
        decimals=9,
    ),
    "DEEP": TokenInfo(
        address="0xdeeb7a4662eec9f2f3def03fb937a663dddaa2e215b8078a284d026b7946c270::deep::DEEP",
        symbol="DEEP",
        name="DeepBook",
        decimals=6,
    ),
}

TARGET_SYMBOLS = ["SUI", "CETUS", "DEEP"]

# Funding asset is always assumed to be a 6-decimal stablecoin
SOURCE_DECIMALS = 6
DEFAULT_TARGET_DECIMALS = 9

# Fixed-point scale for average_price (source units per whole target unit)
PRICE_PRECISION = 10**9

# Bounds enforced at the input boundary (bot conversation, API schema)
MIN_AMOUNT_PER_PERIOD = 10
MAX_AMOUNT_PER_PERIOD = 100_000
MAX_TOTAL_PERIODS = 365


def token_decimals(symbol: str) -> int:
    info = TOKENS.get(symbol.upper())
    return info.decimals if info else DEFAULT_TARGET_DECIMALS
