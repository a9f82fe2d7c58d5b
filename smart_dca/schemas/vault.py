"""Response models for the vault API."""

from pydantic import BaseModel, field_serializer


class VaultStateRead(BaseModel):
    vault_id: str
    total_assets: int
    total_deposited: int
    total_withdrawn: int
    total_yield_earned: int
    total_users: int
    deposit_paused: bool
    withdrawal_paused: bool

    model_config = {"from_attributes": True}

    @field_serializer("total_assets", "total_deposited", "total_withdrawn", "total_yield_earned")
    def _bigint_as_string(self, value: int) -> str:
        return str(value)


class VaultSnapshotRead(VaultStateRead):
    id: int
    recorded_at: int


class DepositReceiptRead(BaseModel):
    id: str
    vault_id: str | None
    usdc_deposited: int
    h2ousd_minted: int
    deposit_time: int
    unlock_time: int

    model_config = {"from_attributes": True}

    @field_serializer("usdc_deposited", "h2ousd_minted")
    def _bigint_as_string(self, value: int) -> str:
        return str(value)


class UserVaultAssetsRead(BaseModel):
    owner: str
    total_h2ousd: str
    total_deposited: str
    coin_count: int
    receipts: list[DepositReceiptRead]
