# app/services/ws_manager.py
"""
Service: ws_manager.py
- Mapping session_id -> sockets ET socket -> session_id (ws_to_session).
- Notifie les clients qu'une session ou un participant a changé : ils relisent
  l'état via l'API (le cœur du jeu ne dépend pas du transport).
- Snapshots immuables pour éviter "set changed size during iteration".
- Admin: stats(), close_all().
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Dict, Set

from starlette.websockets import WebSocket, WebSocketState

logger = logging.getLogger(__name__)

SESSION_CHANGED = "session_changed"
PARTICIPANT_CHANGED = "participant_changed"
SESSION_TERMINATED = "session_terminated"


@dataclass
class WSManager:
    _lock: RLock = field(default_factory=RLock, init=False, repr=False)
    # session_id -> set(WebSocket)
    clients_by_session: Dict[str, Set[WebSocket]] = field(default_factory=dict)
    # reverse map: socket -> session_id
    ws_to_session: Dict[WebSocket, str] = field(default_factory=dict)

    async def connect(self, ws: WebSocket, session_id: str) -> None:
        """Accepte la connexion WS et l'abonne à la session."""
        await ws.accept()
        with self._lock:
            self.clients_by_session.setdefault(session_id, set()).add(ws)
            self.ws_to_session[ws] = session_id

    def _unlink(self, ws: WebSocket) -> None:
        with self._lock:
            sid = self.ws_to_session.pop(ws, None)
            if sid:
                bucket = self.clients_by_session.get(sid)
                if bucket is not None:
                    bucket.discard(ws)
                    if not bucket:
                        self.clients_by_session.pop(sid, None)

    async def disconnect(self, ws: WebSocket) -> None:
        """Ferme proprement la connexion et nettoie les registres."""
        self._unlink(ws)
        if ws.client_state == WebSocketState.DISCONNECTED or ws.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await ws.close()
        except RuntimeError:
            # fermeture concurrente côté client
            pass

    async def _send_json_one(self, ws: WebSocket, payload: Any) -> bool:
        """Envoie à un WS; renvoie True si succès, sinon False (et retire le WS mort)."""
        try:
            data = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
            await ws.send_text(data)
            return True
        except (RuntimeError, OSError):
            self._unlink(ws)
            return False

    async def send_json(self, ws: WebSocket, payload: Any) -> bool:
        return await self._send_json_one(ws, payload)

    def _snapshot_session(self, session_id: str) -> list[WebSocket]:
        with self._lock:
            return list(self.clients_by_session.get(session_id, set()))

    def _snapshot_all(self) -> list[WebSocket]:
        with self._lock:
            return list(self.ws_to_session.keys())

    async def broadcast_to_session(self, session_id: str, event_type: str, payload: Dict[str, Any]) -> int:
        conns = self._snapshot_session(session_id)
        message = {"type": event_type, "session_id": session_id, "payload": payload}
        success = 0
        for ws in conns:
            if await self._send_json_one(ws, message):
                success += 1
        logger.debug(
            "WS broadcast",
            extra={"session_id": session_id, "event_type": event_type, "delivered": success},
        )
        return success

    async def notify_session_changed(self, session_id: str, **payload: Any) -> int:
        return await self.broadcast_to_session(session_id, SESSION_CHANGED, payload)

    async def notify_participant_changed(self, session_id: str, participant_id: str, **payload: Any) -> int:
        return await self.broadcast_to_session(
            session_id, PARTICIPANT_CHANGED, {"participant_id": participant_id, **payload}
        )

    async def notify_session_terminated(self, session_id: str) -> int:
        sent = await self.broadcast_to_session(session_id, SESSION_TERMINATED, {})
        for ws in self._snapshot_session(session_id):
            await self.disconnect(ws)
        return sent

    # ---------- admin ----------
    def stats(self) -> dict:
        with self._lock:
            by_session = {sid: len(conns) for sid, conns in self.clients_by_session.items()}
            return {"sessions": by_session, "total": sum(by_session.values())}

    async def close_all(self) -> dict:
        for ws in self._snapshot_all():
            await self.disconnect(ws)
        return self.stats()


WS = WSManager()
