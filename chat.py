"""
Support chat

Messages live in process memory only: they are lost on restart and are not
shared between instances. Real-time delivery goes through ChatHub, a
room-per-user publish/subscribe fan-out over WebSocket connections; delivery
is best-effort with no acknowledgement or replay.
"""
import asyncio
import itertools
import logging
from collections import defaultdict
from typing import Dict, List, Set

from fastapi import WebSocket

from config import CHAT_AUTO_REPLY_DELAY
from utils import utcnow

logger = logging.getLogger(__name__)

SUPPORT_NAME = "Support Team"
AUTO_REPLY_TEXT = "Thank you for your message! Our team will get back to you shortly."


def room_for(user_id: str) -> str:
    return f"user-{user_id}"


class ChatHub:
    def __init__(self):
        self._rooms: Dict[str, Set[WebSocket]] = defaultdict(set)

    def join(self, room: str, websocket: WebSocket):
        self._rooms[room].add(websocket)

    def leave(self, websocket: WebSocket):
        for room in list(self._rooms):
            self._rooms[room].discard(websocket)
            if not self._rooms[room]:
                del self._rooms[room]

    def subscribers(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    async def publish(self, room: str, event: str, data: dict) -> int:
        """Send an event to every socket in the room; returns how many got it."""
        delivered = 0
        for websocket in list(self._rooms.get(room, ())):
            try:
                await websocket.send_json({"event": event, "data": data})
                delivered += 1
            except Exception as e:
                logger.debug("Dropping chat subscriber in %s: %s", room, e)
                self._rooms[room].discard(websocket)
        return delivered


class ChatStore:
    def __init__(self, hub: ChatHub, auto_reply_delay: float = CHAT_AUTO_REPLY_DELAY):
        self.hub = hub
        self.auto_reply_delay = auto_reply_delay
        self._messages: List[dict] = []
        self._ids = itertools.count(1)
        self._pending = set()

    def messages_for(self, user_id: str) -> List[dict]:
        return [m for m in self._messages if m["user_id"] == user_id]

    def _append(self, user_id: str, user_name: str, text: str, kind: str) -> dict:
        message = {
            "id": next(self._ids),
            "user_id": user_id,
            "user_name": user_name,
            "message": text,
            "type": kind,
            "timestamp": utcnow().isoformat(),
            "read": False,
        }
        self._messages.append(message)
        return message

    async def post(self, user_id: str, user_name: str, text: str) -> dict:
        message = self._append(user_id, user_name, text, "user")
        await self.hub.publish(room_for(user_id), "new-message", message)

        if self.auto_reply_delay > 0:
            task = asyncio.get_running_loop().create_task(self._auto_reply(user_id, self.auto_reply_delay))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        else:
            await self._auto_reply(user_id, 0)
        return message

    async def _auto_reply(self, user_id: str, delay: float):
        if delay:
            await asyncio.sleep(delay)
        reply = self._append(user_id, SUPPORT_NAME, AUTO_REPLY_TEXT, "admin")
        await self.hub.publish(room_for(user_id), "new-message", reply)

    def clear(self):
        self._messages.clear()
        self._ids = itertools.count(1)


hub = ChatHub()
store = ChatStore(hub)
