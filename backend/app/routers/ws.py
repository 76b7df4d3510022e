import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from app.core.database import SessionLocal
from app.core.security import decode_access_token
from app.models.user import User
from app.services.notifications import hub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ws"])


def _user_exists(user_id: int) -> bool:
    db = SessionLocal()
    try:
        return db.get(User, user_id) is not None
    finally:
        db.close()


@router.websocket("/ws")
async def notifications_socket(websocket: WebSocket, token: str = Query(...)):
    user_id = decode_access_token(token)
    if user_id is None or not _user_exists(user_id):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await hub.connect(user_id, websocket)
    try:
        while True:
            text = await websocket.receive_text()
            if text.strip().lower() == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(user_id, websocket)
