from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends

from rule_of_thirds.api.dependencies import get_orchestrator, get_settings
from rule_of_thirds.core.config import Settings
from rule_of_thirds.services.orchestrator import Orchestrator

router = APIRouter(prefix="/api", tags=["system"])
logger = logging.getLogger(__name__)


@router.get("/health")
async def health(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    """Liveness probe; answers immediately without touching any collector."""
    return {
        "status": "awake",
        "message": "Rule of Thirds backend is running",
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/capabilities")
async def capabilities(orchestrator: Orchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    """Describe the collectors, retry budget and synthesis configuration."""
    return orchestrator.capabilities()
