"""Pydantic schemas for the DCA position API and bot conversation."""

from decimal import Decimal, InvalidOperation

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

from smart_dca.models.position import PositionStatus, StrategyType
from smart_dca.utils.constants import (
    IntervalType,
    MAX_AMOUNT_PER_PERIOD,
    MAX_TOTAL_PERIODS,
    MIN_AMOUNT_PER_PERIOD,
    TOKENS,
)


class TokenAllocation(BaseModel):
    token: str = ""  # coin type address; resolved from the token table when empty
    symbol: str = Field(min_length=1, max_length=16)
    percentage: int = Field(gt=0, le=100)

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        symbol = value.strip().upper()
        if symbol not in TOKENS:
            allowed = ", ".join(TOKENS)
            raise ValueError(f"must be one of: {allowed}")
        return symbol

    @model_validator(mode="after")
    def _fill_address(self):
        if not self.token:
            self.token = TOKENS[self.symbol].address
        return self


class DCAConfig(BaseModel):
    source_token: str = "USDC"
    target_tokens: list[TokenAllocation] = Field(min_length=1)
    amount_per_period: str  # human-entered decimal, e.g. "100" or "12.5"
    interval: IntervalType = IntervalType.WEEKLY
    total_periods: int = Field(gt=0, le=MAX_TOTAL_PERIODS)
    strategy: StrategyType = StrategyType.FIXED
    limit_price: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    enable_yield: bool = True
    auto_compound: bool = False

    @field_validator("amount_per_period", mode="before")
    @classmethod
    def _validate_amount(cls, value) -> str:
        text = str(value).strip()
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise ValueError("must be a decimal number")
        if not amount.is_finite():
            raise ValueError("must be a decimal number")
        if amount < MIN_AMOUNT_PER_PERIOD:
            raise ValueError(f"minimum is {MIN_AMOUNT_PER_PERIOD} USDC")
        if amount > MAX_AMOUNT_PER_PERIOD:
            raise ValueError(f"maximum is {MAX_AMOUNT_PER_PERIOD:,} USDC")
        return text

    @field_validator("source_token")
    @classmethod
    def _validate_source(cls, value: str) -> str:
        symbol = value.strip().upper()
        if symbol != "USDC":
            raise ValueError("only USDC is supported as the funding asset")
        return symbol

    @model_validator(mode="after")
    def _validate_relationships(self):
        total = sum(a.percentage for a in self.target_tokens)
        if total != 100:
            raise ValueError("target token percentages must sum to 100")
        symbols = [a.symbol for a in self.target_tokens]
        if len(set(symbols)) != len(symbols):
            raise ValueError("target tokens must be distinct")
        if self.strategy == StrategyType.LIMIT and self.limit_price is None:
            raise ValueError("limit_price is required for the limit_price strategy")
        if self.strategy != StrategyType.MULTI_TOKEN and len(self.target_tokens) > 1:
            raise ValueError("multiple target tokens require the multi_token strategy")
        return self


class PositionCreate(BaseModel):
    owner: str = Field(min_length=1, max_length=128)
    config: DCAConfig

    @field_validator("owner")
    @classmethod
    def _trim_owner(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("must not be empty")
        return text


class PositionRead(BaseModel):
    id: str
    owner: str
    source_token: str
    target_tokens: list[dict]
    amount_per_period: int
    interval_ms: int
    total_periods: int
    executed_periods: int
    next_execution_time: int
    strategy: StrategyType
    limit_price: float | None
    enable_yield: bool
    auto_compound: bool
    total_invested: int
    total_acquired: int
    average_price: int
    last_tx_digest: str | None
    status: PositionStatus
    created_at: int
    updated_at: int

    model_config = {"from_attributes": True}

    # JavaScript numbers lose precision past 2**53
    @field_serializer("amount_per_period", "total_invested", "total_acquired", "average_price")
    def _bigint_as_string(self, value: int) -> str:
        return str(value)


class ExecutionRead(BaseModel):
    id: int
    position_id: str
    period_number: int
    target_symbol: str
    amount_spent: int
    amount_received: int
    price: int
    tx_digest: str | None
    executed_at: int

    model_config = {"from_attributes": True}

    @field_serializer("amount_spent", "amount_received", "price")
    def _bigint_as_string(self, value: int) -> str:
        return str(value)


class PositionYieldRead(BaseModel):
    total_invested: float
    current_value: float
    total_yield: float
    apy: float
