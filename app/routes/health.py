"""
Module routes/health.py
Rôle:
- Endpoint de santé (service OK + taille du catalogue + clients WS connectés).
"""
from fastapi import APIRouter

from app.config.settings import settings
from app.services.catalog import CATALOG
from app.services.ws_manager import WS

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health():
    """Renvoie un OK minimal avec le nom de service configuré."""
    return {
        "ok": True,
        "service": settings.APP_NAME,
        "components": len(CATALOG.all()),
        "ws_clients": WS.stats()["total"],
    }
