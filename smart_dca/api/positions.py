"""DCA positions API."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from smart_dca.api.deps import get_position_engine, require_admin
from smart_dca.engine.errors import Outcome
from smart_dca.engine.lifecycle import PositionEngine
from smart_dca.schemas.position import ExecutionRead, PositionCreate, PositionRead, PositionYieldRead

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/positions", tags=["positions"])


def _get_or_404(engine: PositionEngine, position_id: str):
    position = engine.get_position(position_id)
    if position is None:
        raise HTTPException(status_code=404, detail="Position not found")
    return position


def _raise_for(outcome: Outcome, position_id: str):
    if outcome == Outcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Position not found")
    if outcome == Outcome.INVALID_TRANSITION:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Transition not allowed for position {position_id}",
        )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=PositionRead)
async def create_position(body: PositionCreate, engine: PositionEngine = Depends(get_position_engine)):
    position = await engine.create(body.owner, body.config)
    return PositionRead.model_validate(position)


@router.get("", response_model=list[PositionRead])
def list_positions(owner: str = Query(min_length=1), engine: PositionEngine = Depends(get_position_engine)):
    return [PositionRead.model_validate(p) for p in engine.get_user_positions(owner)]


@router.get("/active", response_model=list[PositionRead])
def active_positions(engine: PositionEngine = Depends(get_position_engine)):
    return [PositionRead.model_validate(p) for p in engine.get_active_positions()]


@router.get("/{position_id}", response_model=PositionRead)
def get_position(position_id: str, engine: PositionEngine = Depends(get_position_engine)):
    return PositionRead.model_validate(_get_or_404(engine, position_id))


@router.get("/{position_id}/executions", response_model=list[ExecutionRead])
def position_executions(position_id: str, engine: PositionEngine = Depends(get_position_engine)):
    _get_or_404(engine, position_id)
    return [ExecutionRead.model_validate(r) for r in engine.store.get_executions(position_id)]


@router.post("/{position_id}/pause", response_model=PositionRead)
async def pause_position(position_id: str, engine: PositionEngine = Depends(get_position_engine)):
    _raise_for(await engine.pause(position_id), position_id)
    return PositionRead.model_validate(_get_or_404(engine, position_id))


@router.post("/{position_id}/resume", response_model=PositionRead)
async def resume_position(position_id: str, engine: PositionEngine = Depends(get_position_engine)):
    _raise_for(await engine.resume(position_id), position_id)
    return PositionRead.model_validate(_get_or_404(engine, position_id))


@router.post("/{position_id}/close", response_model=PositionRead)
async def close_position(position_id: str, engine: PositionEngine = Depends(get_position_engine)):
    _raise_for(await engine.close(position_id), position_id)
    return PositionRead.model_validate(_get_or_404(engine, position_id))


@router.get("/{position_id}/yield", response_model=PositionYieldRead)
def position_yield(position_id: str, engine: PositionEngine = Depends(get_position_engine)):
    estimate = engine.estimate_yield(position_id)
    if estimate is None:
        raise HTTPException(status_code=404, detail="Position not found")
    return PositionYieldRead(
        total_invested=estimate.total_invested,
        current_value=estimate.current_value,
        total_yield=estimate.total_yield,
        apy=estimate.apy,
    )


@router.delete(
    "/{position_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_position(position_id: str, engine: PositionEngine = Depends(get_position_engine)):
    if not engine.store.delete(position_id):
        raise HTTPException(status_code=404, detail="Position not found")
    logger.info(f"[{position_id}] Deleted via admin API")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
