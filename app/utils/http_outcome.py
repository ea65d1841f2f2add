"""
Conversion `Outcome` → réponse HTTP.

- Unauthenticated → 401
- NotFound → 404
- PreconditionFailed → 409 (403 si le facilitateur n'est pas propriétaire de la session)
- RateLimited → 429 + en-tête Retry-After
"""
from typing import Any, Dict

from fastapi import HTTPException

from app.services.outcomes import FailureKind, Outcome
from app.services.progress import NOT_SESSION_OWNER

_STATUS_BY_KIND = {
    FailureKind.UNAUTHENTICATED: 401,
    FailureKind.NOT_FOUND: 404,
    FailureKind.PRECONDITION_FAILED: 409,
    FailureKind.RATE_LIMITED: 429,
}


def unwrap(outcome: Outcome) -> Dict[str, Any]:
    """Retourne `outcome.data` si succès, sinon lève l'HTTPException correspondante."""
    if outcome.ok:
        return outcome.data
    status = _STATUS_BY_KIND.get(outcome.error, 400)
    if outcome.reason == NOT_SESSION_OWNER:
        status = 403
    headers = None
    if outcome.retry_after is not None:
        headers = {"Retry-After": str(outcome.retry_after)}
    raise HTTPException(status_code=status, detail=outcome.reason, headers=headers)
