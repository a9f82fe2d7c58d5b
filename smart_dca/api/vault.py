"""Yield vault API: on-chain state, per-user assets and recorded snapshots."""

from fastapi import APIRouter, Depends, Query

from smart_dca.api.deps import get_services
from smart_dca.container import Services
from smart_dca.schemas.vault import (
    DepositReceiptRead,
    UserVaultAssetsRead,
    VaultSnapshotRead,
    VaultStateRead,
)

router = APIRouter(prefix="/api/vault", tags=["vault"])


@router.get("/state", response_model=VaultStateRead)
async def vault_state(services: Services = Depends(get_services)):
    """Live vault totals read from chain. VaultError maps to 502."""
    state = await services.vault.get_vault_state()
    return VaultStateRead.model_validate(state)


@router.get("/users/{address}", response_model=UserVaultAssetsRead)
async def user_assets(address: str, services: Services = Depends(get_services)):
    assets = await services.vault.get_user_assets(address)
    return UserVaultAssetsRead(
        owner=assets.owner,
        total_h2ousd=str(assets.total_h2ousd),
        total_deposited=str(assets.total_deposited),
        coin_count=len(assets.coins),
        receipts=[DepositReceiptRead.model_validate(r) for r in assets.receipts],
    )


@router.get("/snapshots", response_model=list[VaultSnapshotRead])
def vault_snapshots(limit: int = Query(default=48, ge=1, le=500), services: Services = Depends(get_services)):
    return [VaultSnapshotRead.model_validate(s) for s in services.bookkeeper.recent(limit)]
