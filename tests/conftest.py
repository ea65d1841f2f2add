from __future__ import annotations

from typing import Iterable, Optional

import pytest

pytest.importorskip("httpx", reason="httpx requis pour les tests client FastAPI")

from fastapi.testclient import TestClient

from app.main import app
from app.models.participant import Participant
from app.models.session import Session
from app.services.catalog import CATALOG
from app.services.magic_link import issue_token
from app.services.rate_limiter import RateLimiter, get_rate_limiter
from app.services.record_store import RecordStore, get_store

FACILITATOR = "facilitator@example.com"


@pytest.fixture
def store(tmp_path) -> RecordStore:
    return RecordStore(tmp_path / "store")


@pytest.fixture
def limiter() -> RateLimiter:
    return RateLimiter()


@pytest.fixture
def client_factory(store, limiter):
    """Un TestClient par utilisateur (chacun garde son propre cookie)."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    clients = []

    def _make(email: Optional[str] = None) -> TestClient:
        client = TestClient(app)
        clients.append(client)
        if email:
            resp = client.get("/auth/verify", params={"token": issue_token(email)})
            assert resp.status_code == 200, resp.text
        return client

    try:
        yield _make
    finally:
        for client in clients:
            client.close()
        app.dependency_overrides.clear()


@pytest.fixture
def session(store) -> Session:
    return store.create_session(FACILITATOR)


def unlock_all_core(store: RecordStore, session: Session) -> Session:
    return store.update_session(session.id, unlocked_core=set(CATALOG.core_ids()))


def seed_participant(
    store: RecordStore,
    session: Optional[Session],
    email: str,
    *,
    name: Optional[str] = None,
    completed: Iterable[str] = (),
    bingo_lines: int = 0,
    bonus_points: int = 0,
) -> Participant:
    """Participant déjà inscrit dans `session`, carte dans l'ordre du catalogue."""
    participant = store.create_participant(email, name=name)
    completed = set(completed)
    return store.update_participant(
        participant.id,
        session_id=session.id if session else None,
        card_layout=CATALOG.core_ids(),
        completed_core=completed,
        bingo_lines=bingo_lines,
        bonus_points=bonus_points,
        is_completed=len(completed) == 20,
    )
