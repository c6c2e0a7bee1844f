import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

import chat
from security import get_current_user
from utils import envelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


class MessageRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=1000)


@router.get("/messages")
async def get_messages(user: dict = Depends(get_current_user)):
    return envelope({"messages": chat.store.messages_for(str(user["_id"]))})


@router.post("/messages")
async def send_message(payload: MessageRequest, user: dict = Depends(get_current_user)):
    user_name = f"{user.get('first_name', '')} {user.get('last_name', '')}".strip()
    message = await chat.store.post(str(user["_id"]), user_name, payload.message)
    return envelope({"message": message})


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket):
    """Real-time channel.

    Client events:
      {"event": "join-chat", "user_id": "..."}
      {"event": "send-message", "data": {"user_id": "...", ...}}
    Server events:
      {"event": "new-message", "data": {...}}
    """
    await websocket.accept()
    try:
        while True:
            try:
                event = await websocket.receive_json()
            except ValueError:
                logger.debug("Ignoring chat frame that is not JSON")
                continue
            if not isinstance(event, dict):
                logger.debug("Ignoring chat frame of type %s", type(event).__name__)
                continue

            name = event.get("event")
            if name == "join-chat" and event.get("user_id"):
                chat.hub.join(chat.room_for(event["user_id"]), websocket)
            elif name == "send-message":
                data = event.get("data")
                if isinstance(data, dict) and data.get("user_id"):
                    await chat.hub.publish(chat.room_for(data["user_id"]), "new-message", data)
            else:
                logger.debug("Ignoring chat event %r", name)
    except WebSocketDisconnect:
        pass
    finally:
        chat.hub.leave(websocket)
