"""VaultSnapshot model: periodic recording of the yield vault's on-chain totals."""

from sqlalchemy import BigInteger
from sqlmodel import SQLModel, Field


class VaultSnapshot(SQLModel, table=True):
    __tablename__ = "vault_snapshot"

    id: int | None = Field(default=None, primary_key=True)
    vault_id: str = Field(index=True)
    total_assets: int = Field(default=0, sa_type=BigInteger)
    total_deposited: int = Field(default=0, sa_type=BigInteger)
    total_withdrawn: int = Field(default=0, sa_type=BigInteger)
    total_yield_earned: int = Field(default=0, sa_type=BigInteger)
    total_users: int = 0
    deposit_paused: bool = False
    withdrawal_paused: bool = False
    recorded_at: int = Field(sa_type=BigInteger)
