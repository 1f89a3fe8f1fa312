"""
Health check route.
"""
from fastapi import APIRouter, Depends

from pastelife.models import HealthCheck
from pastelife.routes.deps import get_service
from pastelife.service import PasteService

router = APIRouter()


@router.get("/api/healthz", response_model=HealthCheck)
def health_check(service: PasteService = Depends(get_service)) -> HealthCheck:
    """
    Health check endpoint.
    Returns 200 with ok=true if the paste store is reachable.
    """
    return HealthCheck(ok=service.store.is_healthy())
