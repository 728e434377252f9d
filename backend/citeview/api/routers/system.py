from __future__ import annotations

from fastapi import APIRouter

from citeview.config import settings


router = APIRouter()


@router.get("/")
def root() -> dict[str, str]:
    return {"service": "citeview-backend", "status": "running"}


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "environment": settings.app_env}


@router.get("/ready")
def ready() -> dict[str, object]:
    return {
        "status": "ready",
        "environment": settings.app_env,
        "checks": {
            "document_source": {"api_host": settings.api_host},
            "diagram_renderer": {"enabled": bool(settings.diagram_renderer_url.strip())},
        },
    }
