# app/routes/websocket.py
"""
WebSocket endpoints.

- /ws/session/{session_id} : notifications de changement pour une session
  (déblocage, complétion, bonus, fin de session). Les clients relisent ensuite
  l'état via /game/state ou /game/leaderboard.
- Ping/pong pour heartbeat.
"""
from __future__ import annotations

import json

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.services.record_store import RecordStore, get_store
from app.services.ws_manager import WS

router = APIRouter()


@router.websocket("/ws/session/{session_id}")
async def websocket_session_stream(ws: WebSocket, session_id: str, store: RecordStore = Depends(get_store)):
    session = store.get_session(session_id)
    if session is None:
        await ws.close(code=4404)
        return

    await WS.connect(ws, session.id)
    await WS.send_json(ws, {"type": "subscribed", "session_id": session.id, "code": session.code})
    try:
        while True:
            raw = await ws.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                # Message non JSON -> ignore
                continue
            if isinstance(msg, dict) and msg.get("type") == "ping":
                await WS.send_json(ws, {"type": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        await WS.disconnect(ws)
