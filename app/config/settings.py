"""
Configuration de l'application (Settings)
=========================================

Rôle
----
- Centraliser les paramètres de l'app (nom, host/port, secrets, chemins, limites…).
- Les valeurs par défaut conviennent pour un environnement de dev local.
- Les variables peuvent être surchargées via un fichier `.env` ou l'environnement.

Intégrations
------------
- `pydantic-settings` charge automatiquement les variables d'env et `.env`.
- Les services/routers importent `from app.config.settings import settings`.

Bonnes pratiques
----------------
- *Ne commitez pas* une valeur réelle de `MAGIC_LINK_SECRET`. Utilisez `.env`.
- `DATA_DIR` pointe vers le catalogue statique (`<repo>/app/data`).
- `STORE_DIR` contient les fichiers persistés (participants, sessions, journal).

Exemples de `.env`
------------------
APP_NAME="AI Bingo Backend (Staging)"
PORT=8080
DEBUG=false
MAGIC_LINK_SECRET="mettre-une-valeur-secrète-en-prod"
PUBLIC_APP_URL="https://bingo.example.org"
STORE_DIR="/var/opt/ai-bingo/store"
"""
from typing import Dict, List, Optional
import os

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RateLimitRule(BaseModel):
    """Fenêtre fixe : `max_requests` actions autorisées par `window_seconds`."""
    max_requests: int
    window_seconds: int


def _default_rate_limits() -> Dict[str, RateLimitRule]:
    return {
        "unlock_component": RateLimitRule(max_requests=10, window_seconds=60),
        "complete_component": RateLimitRule(max_requests=30, window_seconds=60),
        "create_session": RateLimitRule(max_requests=5, window_seconds=3600),
        "join_session": RateLimitRule(max_requests=10, window_seconds=60),
    }


class Settings(BaseSettings):
    # Nom du service (apparaît dans /health)
    APP_NAME: str = "AI Bingo Backend"
    # Bind réseau (FastAPI / Uvicorn)
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    # DEBUG=True → cookie non `Secure` et lien magique renvoyé dans la réponse
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Front autorisé (CORS) et URL publique utilisée dans les liens magiques
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    PUBLIC_APP_URL: str = "http://localhost:3000"

    # Catalogue statique: <repo>/app/data/components.json
    DATA_DIR: str = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")
    # Persistance (participants.json, sessions.json, logins.json, events.ndjson)
    STORE_DIR: Optional[str] = None

    # Liens magiques (itsdangerous)
    # ⚠️ Remplacez en production via .env
    MAGIC_LINK_SECRET: str = "dev-secret-change-in-production"
    MAGIC_LINK_TTL_SECONDS: int = 15 * 60

    # Cookie de session participant (HttpOnly)
    LOGIN_COOKIE_NAME: str = "ai_bingo_session"
    LOGIN_TTL_SECONDS: int = 7 * 24 * 3600

    # Règles de jeu
    BONUS_CORE_THRESHOLD: int = 10
    SESSION_CODE_ATTEMPTS: int = 10

    RATE_LIMITS: Dict[str, RateLimitRule] = Field(default_factory=_default_rate_limits)
    RATE_LIMIT_MAX_KEYS: int = 10_000

    # Paramétrage pydantic-settings :
    # - lit le fichier .env (UTF-8) si présent
    # - ignore les clés supplémentaires pour éviter les erreurs
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def store_dir(self) -> str:
        return self.STORE_DIR or os.path.join(self.DATA_DIR, "store")


# Instance unique importable partout : `settings`
settings = Settings()
