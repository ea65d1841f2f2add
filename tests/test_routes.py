from urllib.parse import parse_qs, urlparse

import pytest
from starlette.websockets import WebSocketDisconnect

from app.config.settings import RateLimitRule
from app.services import record_store

from conftest import FACILITATOR


def test_magic_link_login_flow(client_factory):
    client = client_factory()

    resp = client.post("/auth/magic-link", json={"email": " Player@Example.com "})
    assert resp.status_code == 200
    preview = resp.json()["preview_url"]
    token = parse_qs(urlparse(preview).query)["token"][0]

    assert client.get("/auth/me").status_code == 401
    verified = client.get("/auth/verify", params={"token": token})
    assert verified.status_code == 200
    assert verified.json()["email"] == "player@example.com"

    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.json()["participant_id"] == verified.json()["participant_id"]

    renamed = client.put("/auth/me", json={"name": "  Player One "})
    assert renamed.json()["name"] == "Player One"
    assert client.put("/auth/me", json={"name": "   "}).status_code == 422
    assert client.get("/auth/me").json()["name"] == "Player One"

    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_same_email_reuses_participant(client_factory):
    first = client_factory("same@example.com").get("/auth/me").json()
    second = client_factory("SAME@example.com").get("/auth/me").json()
    assert first["participant_id"] == second["participant_id"]


def test_invalid_login_inputs(client_factory):
    client = client_factory()
    assert client.post("/auth/magic-link", json={"email": "not-an-email"}).status_code == 422
    resp = client.get("/auth/verify", params={"token": "forged"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "invalid_or_expired_token"


def test_game_flow_over_http(client_factory):
    boss = client_factory(FACILITATOR)
    player = client_factory("player@example.com")

    created = boss.post("/session")
    assert created.status_code == 200
    session_id, code = created.json()["session_id"], created.json()["code"]

    joined = player.post("/session/join", json={"code": code.lower()})
    assert joined.status_code == 200
    assert len(set(joined.json()["card_layout"])) == 20
    assert len(joined.json()["card_layout"]) == 20

    locked = player.post("/game/complete", json={"component_id": "rag"})
    assert locked.status_code == 409
    assert locked.json()["detail"] == "component_locked"

    assert player.post(f"/session/{session_id}/unlock", json={"component_id": "rag"}).status_code == 403

    unlocked = boss.post(f"/session/{session_id}/unlock", json={"component_id": "rag"})
    assert unlocked.status_code == 200
    assert unlocked.json()["unlocked_core"] == ["rag"]

    done = player.post("/game/complete", json={"component_id": "rag"})
    assert done.status_code == 200
    assert done.json()["completed_count"] == 1
    assert done.json()["already_completed"] is False

    state = player.get("/game/state").json()
    assert state["statuses"]["rag"] == "completed"
    assert state["statuses"]["prompting"] == "locked"
    assert state["session"]["code"] == code
    assert state["participant"]["name"] == "player"

    board = player.get("/game/leaderboard").json()
    assert board["session_code"] == code
    assert [(e["rank"], e["name"], e["score"]) for e in board["entries"]] == [(1, "pl***@example.com", 1)]
    assert boss.get("/game/leaderboard").json()["session_code"] == code

    overview = boss.get(f"/session/{session_id}").json()
    assert overview["session"]["participant_count"] == 1
    assert player.get(f"/session/{session_id}").status_code == 403

    ended = boss.delete(f"/session/{session_id}")
    assert ended.status_code == 200
    assert ended.json()["orphaned"] == 1

    gone = player.post("/game/complete", json={"component_id": "rag"})
    assert gone.status_code == 404
    assert gone.json()["detail"] == "session_not_found"
    assert player.get("/game/leaderboard").json()["entries"] == []


def test_bonus_toggle_and_unknown_session(client_factory):
    boss = client_factory(FACILITATOR)
    session_id = boss.post("/session").json()["session_id"]

    toggled = boss.post(f"/session/{session_id}/bonus", json={"enabled": True})
    assert toggled.json() == {"session_id": session_id, "bonus_enabled": True}
    assert boss.get("/session/missing").status_code == 404
    assert boss.post("/session/missing/unlock", json={"component_id": "rag"}).status_code == 404


def test_anonymous_calls_are_rejected(client_factory):
    anon = client_factory()
    assert anon.post("/session").status_code == 401
    assert anon.post("/session/join", json={"code": "ABCDEF"}).status_code == 401
    assert anon.get("/game/state").status_code == 401
    assert anon.post("/game/complete", json={"component_id": "rag"}).status_code == 401
    assert anon.get("/game/leaderboard").json() == {"entries": [], "session_code": None}


def test_join_is_rate_limited(client_factory, limiter, session):
    limiter.rules["join_session"] = RateLimitRule(max_requests=1, window_seconds=60)
    player = client_factory("player@example.com")

    assert player.post("/session/join", json={"code": session.code}).status_code == 200
    blocked = player.post("/session/join", json={"code": session.code})
    assert blocked.status_code == 429
    assert int(blocked.headers["Retry-After"]) > 0


def test_store_failure_maps_to_503(client_factory, monkeypatch):
    boss = client_factory(FACILITATOR)

    def _fail(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(record_store, "write_json", _fail)
    resp = boss.post("/session")
    assert resp.status_code == 503
    assert resp.json() == {"detail": "store_failure"}


def test_catalog_and_health(client_factory):
    client = client_factory()
    catalog = client.get("/game/catalog").json()
    assert {period: len(items) for period, items in catalog["core_by_period"].items()} == {
        "Basics": 5,
        "Combos": 5,
        "Production": 5,
        "Future": 5,
    }
    assert all(item["bonus_points"] == 50 for item in catalog["bonus"])

    health = client.get("/health").json()
    assert health["ok"] is True
    assert health["components"] == 20 + len(catalog["bonus"])


def test_websocket_subscription(client_factory, session):
    client = client_factory()
    with client.websocket_connect(f"/ws/session/{session.id}") as ws:
        hello = ws.receive_json()
        assert hello["type"] == "subscribed"
        assert hello["code"] == session.code
        ws.send_text("not json")
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_websocket_unknown_session_is_closed(client_factory):
    client = client_factory()
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/session/missing") as ws:
            ws.receive_json()
    assert exc.value.code == 4404


def test_journal_failure_is_not_reported_as_store_failure(client_factory, store, monkeypatch):
    boss = client_factory(FACILITATOR)

    def _fail(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(record_store, "append_ndjson", _fail)
    resp = boss.post("/session")
    assert resp.status_code == 200
    assert list(store.sessions) == [resp.json()["session_id"]]
