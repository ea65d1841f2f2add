"""
Service: progress.py
Rôle:
- Machine d'état de progression d'un participant, par composant :
  `locked` → `unlocked` (déblocage facilitateur, pour toute la session)
  → `completed` (le participant marque le composant comme fait).
  Aucune transition ne revient en arrière.
- Cycle de vie des sessions (création, rejoindre/quitter, bonus, fin de session).

Intégrations:
- `RecordStore` : lecture → fusion → écriture sous `store.lock`.
- `CATALOG` : résolution des ids et du tier (core | bonus).
- `RateLimiter` (optionnel) : injecté par les routes.

Toutes les opérations renvoient un `Outcome` ; seul `StoreError` est levée.
"""
from __future__ import annotations

import logging
import random
from typing import AbstractSet, Any, Dict, Optional

from app.config.settings import settings
from app.models.component import BonusComponent, CoreComponent
from app.models.participant import Participant
from app.models.session import Session
from .bingo import count_completed_lines, generate_card_layout, is_valid_session_code, normalize_session_code
from .catalog import CATALOG, CORE_COMPONENT_COUNT, ComponentCatalog
from .outcomes import Outcome, not_found, precondition_failed, rate_limited, unauthenticated
from .rate_limiter import RateLimiter
from .record_store import RecordStore

logger = logging.getLogger(__name__)

LOCKED = "locked"
UNLOCKED = "unlocked"
COMPLETED = "completed"

NOT_SESSION_OWNER = "not_session_owner"


# ---------------------------------------------------------------------------
# Statut par composant (fonction pure, seule source de vérité pour l'UI)
# ---------------------------------------------------------------------------
def component_status(component_id: str, unlocked: AbstractSet[str], completed: AbstractSet[str]) -> str:
    if component_id in completed:
        return COMPLETED
    if component_id in unlocked:
        return UNLOCKED
    return LOCKED


def component_statuses(
    session: Optional[Session],
    participant: Participant,
    catalog: ComponentCatalog = CATALOG,
) -> Dict[str, str]:
    """Statut de chaque composant du catalogue pour ce participant dans cette session."""
    unlocked_core = session.unlocked_core if session else set()
    unlocked_bonus = session.unlocked_bonus if session else set()
    statuses: Dict[str, str] = {}
    for component in catalog.all():
        if isinstance(component, CoreComponent):
            statuses[component.id] = component_status(component.id, unlocked_core, participant.completed_core)
        else:
            statuses[component.id] = component_status(component.id, unlocked_bonus, participant.completed_bonus)
    return statuses


def bonus_available(session: Optional[Session], participant: Participant) -> bool:
    """La grille bonus est accessible : bonus activé ET au moins la moitié du core complétée."""
    return bool(session and session.bonus_enabled) and (
        len(participant.completed_core) >= settings.BONUS_CORE_THRESHOLD
    )


# ---------------------------------------------------------------------------
# Helpers internes
# ---------------------------------------------------------------------------
def _throttle(limiter: Optional[RateLimiter], identity: str, action: str) -> Optional[Outcome]:
    if limiter is None:
        return None
    decision = limiter.check_and_consume(identity, action)
    if decision.allowed:
        return None
    return rate_limited(decision.retry_after or 1)


def _resolve_participant_session(store: RecordStore, participant: Participant) -> Optional[Session]:
    if not participant.session_id:
        return None
    return store.get_session(participant.session_id)


def _owned_session(store: RecordStore, session_id: str, facilitator_email: str) -> Session | Outcome:
    session = store.get_session(session_id)
    if session is None:
        return not_found("session_not_found")
    if not session.is_owned_by(facilitator_email):
        logger.warning(
            "Facilitator ownership check failed",
            extra={"session_id": session_id, "facilitator": facilitator_email},
        )
        return precondition_failed(NOT_SESSION_OWNER)
    return session


def _reset_progress(**extra: Any) -> Dict[str, Any]:
    patch: Dict[str, Any] = {
        "completed_core": set(),
        "completed_bonus": set(),
        "bingo_lines": 0,
        "bonus_points": 0,
        "is_completed": False,
    }
    patch.update(extra)
    return patch


# ---------------------------------------------------------------------------
# Complétion
# ---------------------------------------------------------------------------
def complete_component(
    store: RecordStore,
    participant_id: Optional[str],
    component_id: str,
    *,
    catalog: ComponentCatalog = CATALOG,
    limiter: Optional[RateLimiter] = None,
) -> Outcome:
    """
    Marque `component_id` comme complété pour le participant.
    - core : doit être débloqué dans la session ; recalcule les lignes de bingo.
    - bonus : bonus activé, >= BONUS_CORE_THRESHOLD core complétés, composant débloqué ;
      ajoute les points bonus.
    Idempotent : re-compléter renvoie le même état sans écriture.
    """
    if not participant_id:
        return unauthenticated()
    throttled = _throttle(limiter, participant_id, "complete_component")
    if throttled:
        return throttled

    with store.lock:
        participant = store.get_participant(participant_id)
        if participant is None:
            return not_found("participant_not_found")
        component = catalog.get(component_id)
        if component is None:
            return not_found("component_not_found")
        session = _resolve_participant_session(store, participant)
        if session is None:
            if participant.session_id:
                return not_found("session_not_found")
            return precondition_failed("not_in_session")

        if isinstance(component, BonusComponent):
            return _complete_bonus(store, participant, session, component)
        return _complete_core(store, participant, session, component)


def _complete_core(store: RecordStore, participant: Participant, session: Session, component: CoreComponent) -> Outcome:
    if component.id not in session.unlocked_core:
        return precondition_failed("component_locked")
    if component.id not in participant.card_layout:
        return precondition_failed("component_not_on_card")

    already = component.id in participant.completed_core
    if not already:
        completed = participant.completed_core | {component.id}
        participant = store.update_participant(
            participant.id,
            completed_core=completed,
            bingo_lines=count_completed_lines(participant.card_layout, completed),
            is_completed=len(completed) == CORE_COMPONENT_COUNT,
        )
        store.log_event(
            "component_completed",
            {
                "participant_id": participant.id,
                "component_id": component.id,
                "tier": "core",
                "bingo_lines": participant.bingo_lines,
            },
            scope=f"session:{session.id}",
        )
        logger.info(
            "Core component completed",
            extra={
                "participant_id": participant.id,
                "component_id": component.id,
                "bingo_lines": participant.bingo_lines,
            },
        )

    return Outcome.success(
        tier="core",
        component_id=component.id,
        bingo_lines=participant.bingo_lines,
        completed_count=len(participant.completed_core),
        is_full_card=participant.is_completed,
        already_completed=already,
    )


def _complete_bonus(store: RecordStore, participant: Participant, session: Session, component: BonusComponent) -> Outcome:
    if not session.bonus_enabled:
        return precondition_failed("bonus_disabled")
    if len(participant.completed_core) < settings.BONUS_CORE_THRESHOLD:
        return precondition_failed("bonus_gate_not_met")
    if component.id not in session.unlocked_bonus:
        return precondition_failed("component_locked")

    already = component.id in participant.completed_bonus
    if not already:
        participant = store.update_participant(
            participant.id,
            completed_bonus=participant.completed_bonus | {component.id},
            bonus_points=participant.bonus_points + component.bonus_points,
        )
        store.log_event(
            "component_completed",
            {
                "participant_id": participant.id,
                "component_id": component.id,
                "tier": "bonus",
                "bonus_points": participant.bonus_points,
            },
            scope=f"session:{session.id}",
        )
        logger.info(
            "Bonus component completed",
            extra={
                "participant_id": participant.id,
                "component_id": component.id,
                "bonus_points": participant.bonus_points,
            },
        )

    return Outcome.success(
        tier="bonus",
        component_id=component.id,
        bonus_points=participant.bonus_points,
        bonus_completed_count=len(participant.completed_bonus),
        already_completed=already,
    )


# ---------------------------------------------------------------------------
# Déblocage (facilitateur)
# ---------------------------------------------------------------------------
def unlock_component(
    store: RecordStore,
    session_id: str,
    component_id: str,
    facilitator_email: Optional[str],
    *,
    catalog: ComponentCatalog = CATALOG,
    limiter: Optional[RateLimiter] = None,
) -> Outcome:
    """Ajoute le composant à l'ensemble débloqué de la session (union, idempotent)."""
    if not facilitator_email:
        return unauthenticated()
    throttled = _throttle(limiter, facilitator_email, "unlock_component")
    if throttled:
        return throttled

    with store.lock:
        session = _owned_session(store, session_id, facilitator_email)
        if isinstance(session, Outcome):
            return session
        component = catalog.get(component_id)
        if component is None:
            return not_found("component_not_found")

        field_name = "unlocked_core" if isinstance(component, CoreComponent) else "unlocked_bonus"
        current = getattr(session, field_name)
        already = component.id in current
        if not already:
            session = store.update_session(session.id, **{field_name: current | {component.id}})
            store.log_event(
                "component_unlocked",
                {"component_id": component.id, "tier": component.tier},
                scope=f"session:{session.id}",
            )
            logger.info(
                "Component unlocked",
                extra={"session_id": session.id, "component_id": component.id, "tier": component.tier},
            )

    return Outcome.success(
        session_id=session.id,
        component_id=component.id,
        tier=component.tier,
        already_unlocked=already,
        unlocked_core=sorted(session.unlocked_core),
        unlocked_bonus=sorted(session.unlocked_bonus),
    )


def set_bonus_enabled(
    store: RecordStore,
    session_id: str,
    enabled: bool,
    facilitator_email: Optional[str],
) -> Outcome:
    """Active/désactive la grille bonus de la session (facilitateur propriétaire)."""
    if not facilitator_email:
        return unauthenticated()
    with store.lock:
        session = _owned_session(store, session_id, facilitator_email)
        if isinstance(session, Outcome):
            return session
        if session.bonus_enabled != enabled:
            session = store.update_session(session.id, bonus_enabled=enabled)
            store.log_event("bonus_toggled", {"enabled": enabled}, scope=f"session:{session.id}")
            logger.info("Bonus toggled", extra={"session_id": session.id, "enabled": enabled})
    return Outcome.success(session_id=session.id, bonus_enabled=session.bonus_enabled)


# ---------------------------------------------------------------------------
# Cycle de vie des sessions
# ---------------------------------------------------------------------------
def create_session(
    store: RecordStore,
    facilitator_email: Optional[str],
    *,
    limiter: Optional[RateLimiter] = None,
) -> Outcome:
    if not facilitator_email:
        return unauthenticated()
    throttled = _throttle(limiter, facilitator_email, "create_session")
    if throttled:
        return throttled

    session = store.create_session(facilitator_email)
    store.log_event("session_created", {"code": session.code, "facilitator": facilitator_email}, scope=f"session:{session.id}")
    logger.info("Session created", extra={"session_id": session.id, "session_code": session.code})
    return Outcome.success(session_id=session.id, code=session.code)


def join_session(
    store: RecordStore,
    session_code: str,
    participant_id: Optional[str],
    *,
    limiter: Optional[RateLimiter] = None,
    rng: Optional[random.Random] = None,
) -> Outcome:
    """
    Rejoint la session `session_code` (insensible à la casse) :
    nouvelle carte aléatoire et progression remise à zéro (aucun report entre sessions).
    """
    if not participant_id:
        return unauthenticated()
    throttled = _throttle(limiter, participant_id, "join_session")
    if throttled:
        return throttled

    code = normalize_session_code(session_code)
    if not is_valid_session_code(code):
        return precondition_failed("invalid_session_code")

    with store.lock:
        session = store.get_session_by_code(code)
        if session is None:
            return not_found("session_not_found")
        participant = store.get_participant(participant_id)
        if participant is None:
            return not_found("participant_not_found")

        previous = participant.session_id
        layout = generate_card_layout(rng=rng)
        participant = store.update_participant(
            participant.id,
            **_reset_progress(session_id=session.id, card_layout=layout),
        )
        store.log_event(
            "participant_joined",
            {"participant_id": participant.id, "previous_session_id": previous},
            scope=f"session:{session.id}",
        )
    logger.info("Participant joined session", extra={"participant_id": participant_id, "session_id": session.id})
    return Outcome.success(session_id=session.id, code=session.code, card_layout=participant.card_layout)


def leave_session(store: RecordStore, participant_id: Optional[str]) -> Outcome:
    """Quitte la session courante : progression et carte remises à zéro."""
    if not participant_id:
        return unauthenticated()
    with store.lock:
        participant = store.get_participant(participant_id)
        if participant is None:
            return not_found("participant_not_found")
        if not participant.session_id:
            return precondition_failed("not_in_session")
        previous = participant.session_id
        store.update_participant(participant.id, **_reset_progress(session_id=None, card_layout=[]))
        store.log_event("participant_left", {"participant_id": participant.id}, scope=f"session:{previous}")
    logger.info("Participant left session", extra={"participant_id": participant_id, "session_id": previous})
    return Outcome.success(session_id=previous)


def terminate_session(store: RecordStore, session_id: str, facilitator_email: Optional[str]) -> Outcome:
    """Supprime la session. Ses participants la verront comme introuvable à la prochaine lecture."""
    if not facilitator_email:
        return unauthenticated()
    with store.lock:
        session = _owned_session(store, session_id, facilitator_email)
        if isinstance(session, Outcome):
            return session
        orphaned = len(store.list_participants_in_session(session.id))
        store.delete_session(session.id)
        store.log_event("session_terminated", {"code": session.code, "orphaned": orphaned}, scope=f"session:{session.id}")
    logger.info("Session terminated", extra={"session_id": session_id, "orphaned": orphaned})
    return Outcome.success(session_id=session.id, code=session.code, orphaned=orphaned)


# ---------------------------------------------------------------------------
# Vues (lecture seule)
# ---------------------------------------------------------------------------
def _session_view(session: Session) -> Dict[str, Any]:
    return {
        "id": session.id,
        "code": session.code,
        "unlocked_core": sorted(session.unlocked_core),
        "unlocked_bonus": sorted(session.unlocked_bonus),
        "bonus_enabled": session.bonus_enabled,
    }


def game_state(store: RecordStore, participant_id: Optional[str], *, catalog: ComponentCatalog = CATALOG) -> Outcome:
    """Vue participant : carte, progression, session et statut de chaque composant."""
    if not participant_id:
        return unauthenticated()
    participant = store.get_participant(participant_id)
    if participant is None:
        return not_found("participant_not_found")
    session = _resolve_participant_session(store, participant)

    return Outcome.success(
        participant={
            "id": participant.id,
            "name": participant.name or participant.email.split("@")[0],
            "email": participant.email,
            "card_layout": participant.card_layout,
            "completed_core": sorted(participant.completed_core),
            "completed_bonus": sorted(participant.completed_bonus),
            "bingo_lines": participant.bingo_lines,
            "bonus_points": participant.bonus_points,
            "is_completed": participant.is_completed,
        },
        session=_session_view(session) if session else None,
        statuses=component_statuses(session, participant, catalog),
        bonus_available=bonus_available(session, participant),
        total_core=CORE_COMPONENT_COUNT,
    )


def session_overview(store: RecordStore, session_id: str, facilitator_email: Optional[str]) -> Outcome:
    """Tableau de bord facilitateur : session + progression de chaque participant."""
    if not facilitator_email:
        return unauthenticated()
    session = _owned_session(store, session_id, facilitator_email)
    if isinstance(session, Outcome):
        return session
    participants = store.list_participants_in_session(session.id)
    view = _session_view(session)
    view["facilitator_email"] = session.facilitator_email
    view["participant_count"] = len(participants)
    return Outcome.success(
        session=view,
        participants=[
            {
                "id": p.id,
                "name": p.name,
                "email": p.email,
                "bingo_lines": p.bingo_lines,
                "completed_count": len(p.completed_core),
                "bonus_points": p.bonus_points,
            }
            for p in participants
        ],
    )
