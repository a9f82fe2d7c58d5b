"""Position store: keyed persistence of DCA positions on a SQLModel engine."""

import logging
from collections.abc import Iterable

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from smart_dca.database import create_db_and_tables
from smart_dca.engine.errors import StorageFailure
from smart_dca.models.execution import ExecutionRecord
from smart_dca.models.position import DCAPosition, PositionStatus

logger = logging.getLogger(__name__)


class PositionStore:
    """Owner- and status-scoped access to DCAPosition rows.

    Every call opens its own session, so concurrent calls on different
    positions never share state. Writes to one id are atomic upserts.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def init(self):
        create_db_and_tables(self.engine)

    def teardown(self):
        self.engine.dispose()

    def save(self, position: DCAPosition, executions: Iterable[ExecutionRecord] = ()):
        """Upsert a position, plus any execution records, in one transaction.

        Raises:
            StorageFailure: the backing database rejected or could not take the write.
        """
        try:
            with Session(self.engine) as session:
                session.merge(position)
                for record in executions:
                    session.add(record)
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"[{position.id}] Failed to save position: {e}")
            raise StorageFailure(f"Could not save position {position.id}: {e}") from e

    def get(self, position_id: str) -> DCAPosition | None:
        with Session(self.engine) as session:
            return session.get(DCAPosition, position_id)

    def get_by_owner(self, owner: str) -> list[DCAPosition]:
        with Session(self.engine) as session:
            stmt = (
                select(DCAPosition)
                .where(DCAPosition.owner == owner)
                .order_by(DCAPosition.created_at)
            )
            return list(session.exec(stmt).all())

    def get_active(self) -> list[DCAPosition]:
        with Session(self.engine) as session:
            stmt = select(DCAPosition).where(DCAPosition.status == PositionStatus.ACTIVE)
            return list(session.exec(stmt).all())

    def get_executions(self, position_id: str) -> list[ExecutionRecord]:
        with Session(self.engine) as session:
            stmt = (
                select(ExecutionRecord)
                .where(ExecutionRecord.position_id == position_id)
                .order_by(ExecutionRecord.period_number, ExecutionRecord.id)
            )
            return list(session.exec(stmt).all())

    def delete(self, position_id: str) -> bool:
        """Administrative removal of a position and its execution history."""
        try:
            with Session(self.engine) as session:
                position = session.get(DCAPosition, position_id)
                if position is None:
                    return False
                records = session.exec(
                    select(ExecutionRecord).where(ExecutionRecord.position_id == position_id)
                ).all()
                for record in records:
                    session.delete(record)
                session.delete(position)
                session.commit()
        except SQLAlchemyError as e:
            raise StorageFailure(f"Could not delete position {position_id}: {e}") from e
        logger.info(f"[{position_id}] Deleted position")
        return True
