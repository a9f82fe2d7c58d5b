"""System API: health check, scheduler status, manual sweep."""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from smart_dca.api.deps import get_services, require_admin
from smart_dca.container import Services

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/health")
def health_check(services: Services = Depends(get_services)):
    return {
        "status": "ok",
        "network": services.settings.sui_network,
        "paper_trading": services.router.paper_trading,
        "scheduler_running": services.scheduler.running,
    }


@router.get("/scheduler", dependencies=[Depends(require_admin)])
def scheduler_status(services: Services = Depends(get_services)):
    """Current scheduler state with job details."""
    return services.scheduler.status()


@router.post("/sweep", dependencies=[Depends(require_admin)])
async def trigger_sweep(services: Services = Depends(get_services)):
    """Run one execute sweep now; StorageFailure propagates."""
    report = await services.position_engine.run_due_sweep()
    return asdict(report)
