"""
Vote Routes
Thumbs up / down on messages
"""
from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
from typing import Literal

from app.models.user import User
from app.api.routes.auth import get_current_user
from app.api.routes.chats import get_chat_store
from app.services.chat_store import ChatStore


router = APIRouter()


class VoteRequest(BaseModel):
    messageId: int
    value: Literal[-1, 0, 1]


@router.post("")
async def vote_message(
    request: VoteRequest,
    current_user: User = Depends(get_current_user),
    store: ChatStore = Depends(get_chat_store),
):
    message = await store.set_vote(current_user.user_id, request.messageId, request.value)
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    return {"messageId": message.message_id, "vote": message.vote}
