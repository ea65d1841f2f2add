"""
Application FastAPI — Point d'entrée
====================================

Rôle
----
- Instancie l'app FastAPI, configure le logging et le CORS pour le front,
- Monte tous les routeurs (REST + WebSocket),
- Traduit les échecs de persistance (`StoreError`) en 503.

Notes
-----
- Les importations des routeurs sont explicites pour éviter les surprises d'auto-discovery.
- Garder `settings.ALLOWED_ORIGINS` en phase avec les URLs du front.
- ⚠️ Le middleware CORS doit être ajouté AVANT les include_router.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config.settings import settings
from app.routes.auth import router as auth_router
from app.routes.game import router as game_router
from app.routes.game_leaderboard import router as leaderboard_router
from app.routes.health import router as health_router
from app.routes.session import router as session_router
from app.routes.websocket import router as ws_router
from app.services.record_store import StoreError
from app.services.ws_manager import WS

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("app")

# --- App FastAPI principale  ---
app = FastAPI(title=settings.APP_NAME)

# ===========================
# CORS
# ===========================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,  # ← whitelist des frontends autorisés
    allow_credentials=True,                  # ← nécessaire pour le cookie de session
    allow_methods=["*"],
    allow_headers=["*"],
)

# ===========================
# Montage des routers
# ===========================
app.include_router(auth_router)
app.include_router(session_router)
app.include_router(game_router)
app.include_router(leaderboard_router)
app.include_router(ws_router)                  # WebSocket endpoint (/ws/session/{id})
app.include_router(health_router)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    """Échec d'écriture d'une table : rien n'a été persisté, le client peut réessayer (journal exclu, best effort)."""
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "store_failure"})


# --- Racine utile pour "ping" simple (sans /health) ---
@app.get("/")
async def root():
    return {"ok": True, "service": "ai-bingo-backend"}


# --- Hook de démarrage ---
@app.on_event("startup")
async def list_routes():
    """Journalise la liste des routes (diagnostic)."""
    for r in app.routes:
        methods = getattr(r, "methods", None)
        logger.debug("Route %s %s", getattr(r, "path", "?"), sorted(methods) if methods else "WS")
    logger.info("%s ready (store: %s)", settings.APP_NAME, settings.store_dir)


# --- Hook d'arrêt : fermeture propre des WebSockets ---
@app.on_event("shutdown")
async def close_websockets():
    stats = await WS.close_all()
    logger.info("WebSockets closed (remaining: %s)", stats["total"])
