# sitemarket/api/ws.py
import json
import uuid
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool

from .. import crud
from ..auth import decode_credential
from ..db import SessionLocal
from ..errors import Unauthorized
from ..notify import send_email
from ..realtime import hub, normalize_message
from ..utils import logger

router = APIRouter()

def _email_recipient(message: dict) -> None:
    """Mail the addressed user, if the recipient resolves to an account."""
    db = SessionLocal()
    try:
        user = crud.find_user(db, message["recipient"])
        email = user.email if user else None
    finally:
        db.close()
    if email is None:
        return
    send_email(email, f"New message from {message['sender']}", message["text"])

@router.websocket("/ws")
async def chat(websocket: WebSocket, token: Optional[str] = None):
    sender = None
    if token:
        try:
            sender = decode_credential(token).username
        except Unauthorized:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
    await websocket.accept()
    client_id = uuid.uuid4().hex
    await hub.join(client_id, websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except ValueError:
                continue
            if not isinstance(frame, dict) or frame.get("event") != "sendMessage":
                continue
            message = normalize_message(frame.get("data"), sender=sender)
            if message is None:
                continue
            await hub.send_message(message)
            if "recipient" in message:
                await run_in_threadpool(_email_recipient, message)
    except WebSocketDisconnect:
        pass
    finally:
        await hub.leave(client_id)
        logger.debug("Realtime client %s disconnected", client_id)
