# sitemarket/realtime.py
"""Process-wide chat and notification fan-out.

`ChatHub` is a single-writer actor: one asyncio task owns the message history
and the set of connected sockets, and everything else talks to it by posting
commands to its inbox. Joining replays the whole (bounded) history to the new
client only; every other event goes to all connected clients. Delivery is
fire-and-forget: a socket that fails or stalls a send is dropped and simply misses
events until it reconnects.
"""
import asyncio
import os
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Optional

from dotenv import load_dotenv
from fastapi import WebSocket

from .utils import logger

load_dotenv()

CHAT_HISTORY_LIMIT = int(os.getenv("CHAT_HISTORY_LIMIT", "500"))
CHAT_SEND_TIMEOUT = float(os.getenv("CHAT_SEND_TIMEOUT", "5"))

LOAD_MESSAGES = "loadMessages"
RECEIVE_MESSAGE = "receiveMessage"
ADMIN_NOTIFICATION = "adminNotification"
NEW_MESSAGE_NOTIFICATION = "newMessageNotification"

def envelope(event: str, data: Any) -> Dict[str, Any]:
    return {"event": event, "data": data}

def normalize_message(data: Any, sender: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Shape a client `sendMessage` payload into a chat message, or None to drop it."""
    if not isinstance(data, dict):
        return None
    text = str(data.get("text") or "").strip()
    if not text:
        return None
    message = {
        "sender": sender or str(data.get("sender") or "anonymous"),
        "text": text,
        "timestamp": data.get("timestamp") or datetime.now(timezone.utc).isoformat(),
    }
    if data.get("recipient"):
        message["recipient"] = str(data["recipient"])
    return message

class ChatHub:
    def __init__(self, history_limit: int = CHAT_HISTORY_LIMIT, send_timeout: float = CHAT_SEND_TIMEOUT):
        self.send_timeout = send_timeout
        self.history: Deque[Dict[str, Any]] = deque(maxlen=history_limit)
        self._clients: Dict[str, WebSocket] = {}
        self._inbox: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def start(self) -> None:
        if self.running:
            return
        self._inbox = asyncio.Queue()
        self._worker = asyncio.create_task(self._run())
        logger.info("Chat hub started (history limit %s)", self.history.maxlen)

    async def stop(self) -> None:
        if not self.running:
            return
        await self._inbox.put(None)
        await self._worker
        self._worker = None
        self._inbox = None
        self._clients.clear()
        logger.info("Chat hub stopped")

    async def join(self, client_id: str, websocket: WebSocket) -> None:
        await self._post(("join", client_id, websocket))

    async def leave(self, client_id: str) -> None:
        await self._post(("leave", client_id))

    async def send_message(self, message: Dict[str, Any]) -> None:
        await self._post(("message", message))

    async def notify_admins(self, text: str) -> None:
        await self._post(("notify", ADMIN_NOTIFICATION, text))

    async def drain(self) -> None:
        """Wait until every command posted so far has been handled."""
        if self.running:
            done = asyncio.get_running_loop().create_future()
            await self._post(("barrier", done))
            await done

    async def _post(self, command) -> None:
        if not self.running:
            logger.warning("Chat hub not running; dropping %s", command[0])
            return
        await self._inbox.put(command)

    async def _run(self) -> None:
        while True:
            command = await self._inbox.get()
            if command is None:
                return
            kind = command[0]
            if kind == "join":
                _, client_id, websocket = command
                self._clients[client_id] = websocket
                await self._deliver(client_id, websocket, envelope(LOAD_MESSAGES, list(self.history)))
            elif kind == "leave":
                self._clients.pop(command[1], None)
            elif kind == "message":
                message = command[1]
                self.history.append(message)
                await self._broadcast(envelope(RECEIVE_MESSAGE, message))
                await self._broadcast(envelope(NEW_MESSAGE_NOTIFICATION, f"New message from {message['sender']}"))
            elif kind == "notify":
                _, event, text = command
                await self._broadcast(envelope(event, text))
            elif kind == "barrier":
                command[1].set_result(None)

    async def _broadcast(self, payload: Dict[str, Any]) -> None:
        for client_id, websocket in list(self._clients.items()):
            await self._deliver(client_id, websocket, payload)

    async def _deliver(self, client_id: str, websocket: WebSocket, payload: Dict[str, Any]) -> None:
        try:
            await asyncio.wait_for(websocket.send_json(payload), self.send_timeout)
        except Exception as e:
            # no acknowledgement or retry: the client reloads history on reconnect
            logger.info("Dropping realtime client %s: %s", client_id, e)
            self._clients.pop(client_id, None)

hub = ChatHub()
