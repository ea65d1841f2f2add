"""
Service: rate_limiter.py
Rôle:
- Compteur à fenêtre fixe par (identité, action), injecté dans les opérations du jeu.
- Règles par action dans `settings.RATE_LIMITS` (ex: 30 complétions / minute).

Remarques:
- Une `cachetools.TTLCache` par action : ttl = fenêtre de la règle, taille bornée
  (`max_keys`, éviction LRU). Une fenêtre expirée disparaît d'elle-même.
- L'horloge est injectable (tests) et sert de `timer` aux caches.
- Une action inconnue est autorisée (avec un warning).
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from threading import RLock
from typing import Callable, Dict, Optional

from cachetools import TTLCache

from app.config.settings import RateLimitRule, settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    retry_after: Optional[int] = None


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    def __init__(
        self,
        rules: Optional[Dict[str, RateLimitRule]] = None,
        *,
        max_keys: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rules = dict(settings.RATE_LIMITS if rules is None else rules)
        self.max_keys = max_keys or settings.RATE_LIMIT_MAX_KEYS
        self.clock = clock
        self._windows: Dict[str, TTLCache] = {}
        self._lock = RLock()

    def _cache_for(self, action: str, rule: RateLimitRule) -> TTLCache:
        # créé au premier usage : suit les règles modifiées après construction
        cache = self._windows.get(action)
        if cache is None:
            cache = TTLCache(maxsize=self.max_keys, ttl=rule.window_seconds, timer=self.clock)
            self._windows[action] = cache
        return cache

    def check_and_consume(self, identity: str, action: str) -> RateDecision:
        """Consomme une unité si la fenêtre le permet, sinon indique le délai d'attente (s)."""
        rule = self.rules.get(action)
        if rule is None:
            logger.warning("Unknown rate limit action", extra={"action": action})
            return RateDecision(allowed=True)

        with self._lock:
            cache = self._cache_for(action, rule)
            now = self.clock()
            window = cache.get(identity)
            if window is None:
                # l'entrée n'est écrite qu'une fois : son ttl borne la fenêtre fixe
                cache[identity] = _Window(count=1, reset_at=now + rule.window_seconds)
                return RateDecision(allowed=True)

            if window.count >= rule.max_requests:
                retry_after = max(1, math.ceil(window.reset_at - now))
                logger.warning(
                    "Rate limit exceeded",
                    extra={"identity": identity, "action": action, "retry_after": retry_after},
                )
                return RateDecision(allowed=False, retry_after=retry_after)

            window.count += 1
            return RateDecision(allowed=True)


RATE_LIMITER = RateLimiter()


def get_rate_limiter() -> RateLimiter:
    """Dépendance FastAPI (surchargée dans les tests)."""
    return RATE_LIMITER
