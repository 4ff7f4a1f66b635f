"""Health probes."""
from fastapi import APIRouter
from pydantic import BaseModel

from soup_engines import __version__
from soup_engines.config import runtime_config

router = APIRouter(tags=["system"])


class HealthStatus(BaseModel):
    status: str
    version: str = __version__


@router.get("/health", response_model=HealthStatus)
def health_check():
    return HealthStatus(status="ok")


@router.get("/ready", response_model=HealthStatus)
def readiness_check():
    if runtime_config.get_sessions_backend() in {"none", "disabled"}:
        return HealthStatus(status="storage_unconfigured")
    return HealthStatus(status="ok")
