"""ExecutionRecord model: immutable record of every converted allocation leg."""

from sqlalchemy import BigInteger
from sqlmodel import SQLModel, Field


class ExecutionRecord(SQLModel, table=True):
    __tablename__ = "execution_record"

    id: int | None = Field(default=None, primary_key=True)
    position_id: str = Field(foreign_key="dca_position.id", index=True)
    period_number: int
    target_symbol: str
    amount_spent: int = Field(sa_type=BigInteger)
    amount_received: int = Field(sa_type=BigInteger)
    price: int = Field(default=0, sa_type=BigInteger)  # PRICE_PRECISION fixed point
    tx_digest: str | None = None
    executed_at: int = Field(sa_type=BigInteger)
