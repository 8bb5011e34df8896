"""
Health check endpoint.
"""

from fastapi import APIRouter

from etiquetador.config import get_settings

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """
    Basic liveness check.

    Returns:
        Status "ok" and the running version
    """
    return {"status": "ok", "version": get_settings().app_version}
