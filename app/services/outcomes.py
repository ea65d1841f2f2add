"""
Résultats discriminés des opérations du jeu.

Les conditions attendues (non authentifié, introuvable, précondition, rate limit)
sont renvoyées sous forme d'`Outcome` et jamais levées. Seul `StoreError`
(échec de persistance) remonte en exception.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class FailureKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    PRECONDITION_FAILED = "precondition_failed"
    RATE_LIMITED = "rate_limited"


@dataclass(frozen=True)
class Outcome:
    ok: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[FailureKind] = None
    reason: Optional[str] = None
    retry_after: Optional[int] = None

    @classmethod
    def success(cls, **data: Any) -> "Outcome":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, kind: FailureKind, reason: str, retry_after: Optional[int] = None) -> "Outcome":
        return cls(ok=False, error=kind, reason=reason, retry_after=retry_after)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]


def unauthenticated(reason: str = "not_logged_in") -> Outcome:
    return Outcome.failure(FailureKind.UNAUTHENTICATED, reason)


def not_found(reason: str) -> Outcome:
    return Outcome.failure(FailureKind.NOT_FOUND, reason)


def precondition_failed(reason: str) -> Outcome:
    return Outcome.failure(FailureKind.PRECONDITION_FAILED, reason)


def rate_limited(retry_after: int, reason: str = "rate_limited") -> Outcome:
    return Outcome.failure(FailureKind.RATE_LIMITED, reason, retry_after=retry_after)
