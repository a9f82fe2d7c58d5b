"""DCAPosition model: one user's recurring-buy plan and its running totals."""

from enum import Enum
from typing import Any

from sqlalchemy import JSON, BigInteger
from sqlmodel import SQLModel, Field, Column


class PositionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CLOSED = "closed"


TERMINAL_STATUSES = frozenset({PositionStatus.COMPLETED, PositionStatus.CLOSED})


class StrategyType(str, Enum):
    FIXED = "fixed"
    LIMIT = "limit_price"
    VALUE_AVG = "value_averaging"
    MULTI_TOKEN = "multi_token"


class DCAPosition(SQLModel, table=True):
    __tablename__ = "dca_position"

    id: str = Field(primary_key=True)
    owner: str = Field(index=True)  # Sui address or other principal

    # Funding and allocation
    source_token: str = "USDC"
    target_tokens: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))

    # Schedule (amounts in smallest units, times in epoch ms)
    amount_per_period: int = Field(sa_type=BigInteger)
    interval_ms: int = Field(sa_type=BigInteger)
    total_periods: int
    executed_periods: int = 0
    next_execution_time: int = Field(sa_type=BigInteger)

    # Strategy
    strategy: StrategyType = StrategyType.FIXED
    limit_price: float | None = None  # source units per whole target unit
    enable_yield: bool = True
    auto_compound: bool = False

    # Running statistics
    total_invested: int = Field(default=0, sa_type=BigInteger)
    total_acquired: int = Field(default=0, sa_type=BigInteger)
    average_price: int = Field(default=0, sa_type=BigInteger)  # PRICE_PRECISION fixed point
    last_tx_digest: str | None = None

    status: PositionStatus = Field(default=PositionStatus.ACTIVE, index=True)
    created_at: int = Field(sa_type=BigInteger)
    updated_at: int = Field(sa_type=BigInteger)

    @property
    def primary_symbol(self) -> str:
        return self.target_tokens[0]["symbol"] if self.target_tokens else ""

    @property
    def remaining_periods(self) -> int:
        return self.total_periods - self.executed_periods
