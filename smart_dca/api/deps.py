"""Shared API dependencies."""

import secrets

from fastapi import Depends, Header, HTTPException, Request, status

from smart_dca.container import Services
from smart_dca.engine.lifecycle import PositionEngine


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_position_engine(services: Services = Depends(get_services)) -> PositionEngine:
    return services.position_engine


def require_admin(
    x_admin_key: str | None = Header(default=None),
    services: Services = Depends(get_services),
):
    """Check the X-Admin-Key header against the configured admin key."""
    expected = services.settings.admin_api_key
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API disabled (DCA_ADMIN_API_KEY not set)",
        )
    if not x_admin_key or not secrets.compare_digest(x_admin_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin key",
        )
