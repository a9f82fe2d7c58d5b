"""Vault bookkeeping: periodically record the yield vault's on-chain totals.

Read-only with respect to positions; the execute sweep never depends on it.
"""

import logging
from collections.abc import Callable

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from smart_dca.engine.errors import StorageFailure
from smart_dca.models.vault_snapshot import VaultSnapshot
from smart_dca.services.sui_client import SuiVaultClient

logger = logging.getLogger(__name__)


class VaultBookkeeper:
    def __init__(self, vault: SuiVaultClient, engine: Engine, clock: Callable[[], int]):
        self.vault = vault
        self.engine = engine
        self.clock = clock

    async def record_snapshot(self) -> VaultSnapshot:
        """Fetch vault state and persist it; logs yield accrued since the previous snapshot.

        VaultError propagates to the caller (the scheduler's failure sink).
        """
        state = await self.vault.get_vault_state()
        snapshot = VaultSnapshot(
            vault_id=state.vault_id,
            total_assets=state.total_assets,
            total_deposited=state.total_deposited,
            total_withdrawn=state.total_withdrawn,
            total_yield_earned=state.total_yield_earned,
            total_users=state.total_users,
            deposit_paused=state.deposit_paused,
            withdrawal_paused=state.withdrawal_paused,
            recorded_at=self.clock(),
        )

        previous = self.latest(state.vault_id)
        if previous is not None:
            accrued = state.total_yield_earned - previous.total_yield_earned
            logger.info(f"Vault {state.vault_id[:10]}: +{accrued} yield since last snapshot")
        if state.deposit_paused or state.withdrawal_paused:
            logger.warning(
                f"Vault {state.vault_id[:10]} paused "
                f"(deposits={state.deposit_paused}, withdrawals={state.withdrawal_paused})"
            )

        try:
            with Session(self.engine) as session:
                session.add(snapshot)
                session.commit()
                session.refresh(snapshot)
        except SQLAlchemyError as e:
            raise StorageFailure(f"Could not save vault snapshot: {e}") from e
        return snapshot

    def latest(self, vault_id: str) -> VaultSnapshot | None:
        with Session(self.engine) as session:
            return session.exec(
                select(VaultSnapshot)
                .where(VaultSnapshot.vault_id == vault_id)
                .order_by(VaultSnapshot.recorded_at.desc(), VaultSnapshot.id.desc())
            ).first()

    def recent(self, limit: int = 48) -> list[VaultSnapshot]:
        with Session(self.engine) as session:
            stmt = (
                select(VaultSnapshot)
                .order_by(VaultSnapshot.recorded_at.desc(), VaultSnapshot.id.desc())
                .limit(limit)
            )
            return list(session.exec(stmt).all())
