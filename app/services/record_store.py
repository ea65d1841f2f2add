"""
Service: record_store.py
Rôle :
- Stocker participants, sessions et sessions de connexion, et les persister sur disque.
- Fournir un singleton `get_store()` partagé par défaut (répertoire `settings.store_dir`).

Stockage :
- `participants.json` : {participant_id: record}
- `sessions.json`     : {session_id: record}
- `logins.json`       : {login_id: {"participant_id", "exp"}}
- `events.ndjson`     : journal append-only (audit)

Frontière de persistance :
- Les ensembles d'ids (complétés, débloqués) et la carte sont stockés en chaînes
  séparées par des virgules ; chaîne vide = ensemble vide. La conversion n'a lieu
  qu'ici : les modèles de domaine manipulent des `set` natifs.

Atomicité :
- Chaque mise à jour est appliquée sur une copie de la table, écrite de manière
  atomique, puis seulement ensuite substituée en mémoire. En cas d'échec d'écriture,
  `StoreError` est levée et l'état précédent reste intact.
- Le journal `events.ndjson` est best effort : son échec n'annule pas une mutation
  déjà écrite et ne lève pas `StoreError`.
- `store.lock` (RLock) permet aux services de faire lecture → fusion → écriture
  dans une même section critique.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, Iterable, List, Optional
from uuid import uuid4

from app.config.settings import settings
from app.models.participant import Participant
from app.models.session import Session
from .bingo import generate_session_code, normalize_session_code
from .io_utils import append_ndjson, read_json, read_ndjson, write_json

logger = logging.getLogger(__name__)

PARTICIPANTS_FILENAME = "participants.json"
SESSIONS_FILENAME = "sessions.json"
LOGINS_FILENAME = "logins.json"
EVENTS_FILENAME = "events.ndjson"
MAX_AUDIT_EVENTS = 2000


class StoreError(RuntimeError):
    """Échec d'une opération de persistance (l'état précédent est conservé)."""


# -----------------------------
# Conversion ensembles ⇄ chaînes
# -----------------------------
def split_ids(raw: Optional[str]) -> List[str]:
    """'a,b,,c' → ['a', 'b', 'c'] (ordre conservé, doublons retirés)."""
    seen: Dict[str, None] = {}
    for part in (raw or "").split(","):
        part = part.strip()
        if part:
            seen.setdefault(part, None)
    return list(seen)


def join_ids(ids: Iterable[str], *, sort: bool = True) -> str:
    values = [i for i in ids if i]
    return ",".join(sorted(set(values)) if sort else values)


def _participant_to_record(p: Participant) -> Dict[str, Any]:
    return {
        "id": p.id,
        "email": p.email,
        "name": p.name,
        "card_layout": join_ids(p.card_layout, sort=False),
        "completed_components": join_ids(p.completed_core),
        "completed_bonus_cards": join_ids(p.completed_bonus),
        "bingo_lines": p.bingo_lines,
        "bonus_points": p.bonus_points,
        "is_completed": p.is_completed,
        "session_id": p.session_id,
        "created_at": p.created_at,
    }


def _participant_from_record(rec: Dict[str, Any]) -> Participant:
    return Participant(
        id=rec["id"],
        email=rec["email"],
        name=rec.get("name"),
        card_layout=split_ids(rec.get("card_layout")),
        completed_core=set(split_ids(rec.get("completed_components"))),
        completed_bonus=set(split_ids(rec.get("completed_bonus_cards"))),
        bingo_lines=int(rec.get("bingo_lines", 0)),
        bonus_points=int(rec.get("bonus_points", 0)),
        is_completed=bool(rec.get("is_completed", False)),
        session_id=rec.get("session_id"),
        created_at=float(rec.get("created_at", 0.0)),
    )


def _session_to_record(s: Session) -> Dict[str, Any]:
    return {
        "id": s.id,
        "code": s.code,
        "facilitator_email": s.facilitator_email,
        "unlocked_components": join_ids(s.unlocked_core),
        "unlocked_bonus_cards": join_ids(s.unlocked_bonus),
        "bonus_enabled": s.bonus_enabled,
        "created_at": s.created_at,
    }


def _session_from_record(rec: Dict[str, Any]) -> Session:
    return Session(
        id=rec["id"],
        code=rec["code"],
        facilitator_email=rec["facilitator_email"],
        unlocked_core=set(split_ids(rec.get("unlocked_components"))),
        unlocked_bonus=set(split_ids(rec.get("unlocked_bonus_cards"))),
        bonus_enabled=bool(rec.get("bonus_enabled", False)),
        created_at=float(rec.get("created_at", 0.0)),
    )


@dataclass
class RecordStore:
    base_dir: Path
    lock: RLock = field(default_factory=RLock, init=False, repr=False)
    participants: Dict[str, Dict[str, Any]] = field(default_factory=dict, init=False)
    sessions: Dict[str, Dict[str, Any]] = field(default_factory=dict, init=False)
    logins: Dict[str, Dict[str, Any]] = field(default_factory=dict, init=False)
    events: List[Dict[str, Any]] = field(default_factory=list, init=False)

    def __post_init__(self) -> None:
        self.base_dir = Path(self.base_dir)
        self.load()

    # -----------------------------
    # Chargement / Écriture
    # -----------------------------
    def load(self) -> None:
        """Charge les tables depuis le disque (ou tables vides)."""
        with self.lock:
            try:
                self.participants = read_json(self.base_dir / PARTICIPANTS_FILENAME) or {}
                self.sessions = read_json(self.base_dir / SESSIONS_FILENAME) or {}
                self.logins = read_json(self.base_dir / LOGINS_FILENAME) or {}
                self.events = read_ndjson(self.base_dir / EVENTS_FILENAME)[-MAX_AUDIT_EVENTS:]
            except (OSError, ValueError) as exc:
                logger.error("Store load failed", exc_info=True, extra={"store_dir": str(self.base_dir)})
                raise StoreError(f"Impossible de charger le store: {exc}") from exc

    def _commit(self, filename: str, table: Dict[str, Dict[str, Any]]) -> None:
        try:
            write_json(self.base_dir / filename, table)
        except (OSError, TypeError) as exc:
            logger.error("Store write failed", exc_info=True, extra={"store_file": filename})
            raise StoreError(f"Écriture impossible ({filename}): {exc}") from exc

    # -----------------------------
    # Participants
    # -----------------------------
    def create_participant(self, email: str, name: Optional[str] = None) -> Participant:
        with self.lock:
            participant = Participant(id=str(uuid4()), email=email, name=name)
            staged = dict(self.participants)
            staged[participant.id] = _participant_to_record(participant)
            self._commit(PARTICIPANTS_FILENAME, staged)
            self.participants = staged
            return participant

    def get_participant(self, participant_id: Optional[str]) -> Optional[Participant]:
        with self.lock:
            rec = self.participants.get(participant_id or "")
            return _participant_from_record(rec) if rec else None

    def get_participant_by_email(self, email: str) -> Optional[Participant]:
        target = (email or "").strip().lower()
        with self.lock:
            for rec in self.participants.values():
                if str(rec.get("email", "")).strip().lower() == target:
                    return _participant_from_record(rec)
        return None

    def update_participant(self, participant_id: str, **patch: Any) -> Participant:
        """Applique `patch` en bloc (tout ou rien). KeyError si participant inconnu."""
        with self.lock:
            rec = self.participants.get(participant_id)
            if rec is None:
                raise KeyError(participant_id)
            updated = _participant_from_record(rec).model_copy(update=patch)
            staged = dict(self.participants)
            staged[participant_id] = _participant_to_record(updated)
            self._commit(PARTICIPANTS_FILENAME, staged)
            self.participants = staged
            return updated

    def list_participants_in_session(self, session_id: str) -> List[Participant]:
        """Participants de la session, dans l'ordre d'inscription."""
        with self.lock:
            return [
                _participant_from_record(rec)
                for rec in self.participants.values()
                if rec.get("session_id") == session_id
            ]

    # -----------------------------
    # Sessions
    # -----------------------------
    def create_session(
        self,
        facilitator_email: str,
        code_factory: Callable[[], str] = generate_session_code,
        attempts: Optional[int] = None,
    ) -> Session:
        """Crée une session avec un code unique (re-tirage en cas de collision)."""
        max_attempts = attempts or settings.SESSION_CODE_ATTEMPTS
        with self.lock:
            taken = {str(rec.get("code", "")).upper() for rec in self.sessions.values()}
            for _ in range(max_attempts):
                code = normalize_session_code(code_factory())
                if code and code not in taken:
                    break
                logger.warning("Session code collision", extra={"session_code": code})
            else:
                raise StoreError("Impossible de générer un code de session unique.")

            session = Session(id=uuid4().hex, code=code, facilitator_email=facilitator_email)
            staged = dict(self.sessions)
            staged[session.id] = _session_to_record(session)
            self._commit(SESSIONS_FILENAME, staged)
            self.sessions = staged
            return session

    def get_session(self, session_id: Optional[str]) -> Optional[Session]:
        with self.lock:
            rec = self.sessions.get(session_id or "")
            return _session_from_record(rec) if rec else None

    def get_session_by_code(self, code: Optional[str]) -> Optional[Session]:
        """Recherche par code (insensible à la casse)."""
        target = normalize_session_code(code)
        if not target:
            return None
        with self.lock:
            for rec in self.sessions.values():
                if str(rec.get("code", "")).upper() == target:
                    return _session_from_record(rec)
        return None

    def update_session(self, session_id: str, **patch: Any) -> Session:
        with self.lock:
            rec = self.sessions.get(session_id)
            if rec is None:
                raise KeyError(session_id)
            updated = _session_from_record(rec).model_copy(update=patch)
            staged = dict(self.sessions)
            staged[session_id] = _session_to_record(updated)
            self._commit(SESSIONS_FILENAME, staged)
            self.sessions = staged
            return updated

    def delete_session(self, session_id: str) -> bool:
        """Supprime la session. Les participants gardent une référence devenue invalide."""
        with self.lock:
            if session_id not in self.sessions:
                return False
            staged = dict(self.sessions)
            staged.pop(session_id)
            self._commit(SESSIONS_FILENAME, staged)
            self.sessions = staged
            return True

    def find_facilitator_session(self, email: Optional[str]) -> Optional[Session]:
        """Session la plus récente animée par `email`."""
        target = (email or "").strip().lower()
        if not target:
            return None
        with self.lock:
            owned = [
                rec
                for rec in self.sessions.values()
                if str(rec.get("facilitator_email", "")).strip().lower() == target
            ]
            if not owned:
                return None
            latest = max(owned, key=lambda rec: float(rec.get("created_at", 0.0)))
            return _session_from_record(latest)

    # -----------------------------
    # Sessions de connexion (cookie)
    # -----------------------------
    def create_login(self, participant_id: str, ttl_seconds: int) -> str:
        with self.lock:
            login_id = uuid4().hex
            staged = dict(self.logins)
            staged[login_id] = {"participant_id": participant_id, "exp": int(time.time()) + ttl_seconds}
            self._commit(LOGINS_FILENAME, staged)
            self.logins = staged
            return login_id

    def resolve_login(self, login_id: Optional[str]) -> Optional[str]:
        """participant_id associé si la connexion existe et n'est pas expirée (sinon purge)."""
        if not login_id:
            return None
        with self.lock:
            rec = self.logins.get(login_id)
            if not isinstance(rec, dict):
                return None
            if int(rec.get("exp", 0)) < int(time.time()):
                self.delete_login(login_id)
                return None
            return rec.get("participant_id")

    def delete_login(self, login_id: Optional[str]) -> None:
        if not login_id:
            return
        with self.lock:
            if login_id not in self.logins:
                return
            staged = dict(self.logins)
            staged.pop(login_id)
            self._commit(LOGINS_FILENAME, staged)
            self.logins = staged

    # -----------------------------
    # Journal d'audit
    # -----------------------------
    def log_event(self, kind: str, payload: Dict[str, Any], scope: str = "system") -> Dict[str, Any]:
        """
        Ajoute une entrée au journal (mémoire bornée + fichier append-only).
        Best effort : un échec d'écriture du fichier est journalisé mais ne remonte pas,
        la mutation qui précède est déjà persistée.
        """
        entry = {
            "id": str(uuid4()),
            "kind": kind,
            "scope": scope,
            "payload": payload,
            "ts": time.time(),
        }
        with self.lock:
            try:
                append_ndjson(self.base_dir / EVENTS_FILENAME, entry)
            except (OSError, TypeError) as exc:
                logger.error(
                    "Audit journal write failed: %s", exc, exc_info=True, extra={"event_kind": kind}
                )
            self.events.append(entry)
            if len(self.events) > MAX_AUDIT_EVENTS:
                del self.events[: len(self.events) - MAX_AUDIT_EVENTS]
        return entry

    def events_snapshot(self) -> List[Dict[str, Any]]:
        """Retourne une copie des événements courants."""
        with self.lock:
            return [event.copy() for event in self.events]


# -----------------------------
# Singleton global
# -----------------------------
_instance: Optional[RecordStore] = None


def get_store() -> RecordStore:
    """Garantit une unique instance `RecordStore` pour tout le backend (lazy-load)."""
    global _instance
    if _instance is None:
        _instance = RecordStore(Path(settings.store_dir))
    return _instance
