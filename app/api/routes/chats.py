"""
Chat Routes
Chats and their message history
"""
from fastapi import APIRouter, HTTPException, Depends, Request
from pydantic import BaseModel, Field
from typing import Optional

from app.errors import UpstreamServiceError
from app.logging_config import get_logger
from app.models.user import User
from app.models.message import REGULAR_DB
from app.api.routes.auth import get_current_user
from app.services.chat_store import ChatStore, chat_store
from app.services.conversation import Conversation, resolve_db_type


router = APIRouter()
logger = get_logger(__name__)


def get_chat_store() -> ChatStore:
    return chat_store


def get_conversation(request: Request) -> Conversation:
    return request.app.state.conversation


class ChatCreate(BaseModel):
    """New chat payload"""
    title: str = Field("New chat", min_length=1, max_length=200)
    type: str = "regular"
    dbType: str = REGULAR_DB


class ChatRename(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)


class ChatMessageCreate(BaseModel):
    """Typed question, with the same retrieval flags as a voice turn"""
    content: str = Field(..., min_length=1)
    useweb: bool = False
    usedb: bool = False
    db: Optional[str] = None


@router.get("")
async def list_chats(
    current_user: User = Depends(get_current_user),
    store: ChatStore = Depends(get_chat_store),
):
    """List the caller's chats, newest first"""
    chats = await store.list_chats(current_user.user_id)
    return [chat.to_public() for chat in chats]


@router.post("", status_code=201)
async def create_chat(
    request: Optional[ChatCreate] = None,
    current_user: User = Depends(get_current_user),
    store: ChatStore = Depends(get_chat_store),
):
    request = request or ChatCreate()
    chat = await store.create_chat(
        current_user.user_id,
        title=request.title,
        type=request.type,
        db_type=request.dbType,
    )
    return chat.to_public()


@router.patch("/{chat_id}/rename")
async def rename_chat(
    chat_id: int,
    request: ChatRename,
    current_user: User = Depends(get_current_user),
    store: ChatStore = Depends(get_chat_store),
):
    chat = await store.rename_chat(current_user.user_id, chat_id, request.title)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    return chat.to_public()


@router.delete("/{chat_id}")
async def delete_chat(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    store: ChatStore = Depends(get_chat_store),
):
    """Delete a chat together with its messages"""
    if not await store.delete_chat(current_user.user_id, chat_id):
        raise HTTPException(status_code=404, detail="Chat not found")
    return {"success": True}


@router.get("/{chat_id}/messages")
async def get_chat_messages(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    store: ChatStore = Depends(get_chat_store),
):
    """Messages of one chat, oldest first"""
    if not await store.get_user_chat(current_user.user_id, chat_id):
        raise HTTPException(status_code=404, detail="Chat not found")
    messages = await store.list_messages(current_user.user_id, chat_id)
    return [message.to_public() for message in messages]


@router.post("/{chat_id}/messages")
async def send_chat_message(
    chat_id: int,
    request: ChatMessageCreate,
    current_user: User = Depends(get_current_user),
    store: ChatStore = Depends(get_chat_store),
    conversation: Conversation = Depends(get_conversation),
):
    """
    Text chat turn: store the question, ask the assistant, store and return the answer.
    """
    if not await store.get_user_chat(current_user.user_id, chat_id):
        raise HTTPException(status_code=404, detail="Chat not found")

    db_type = resolve_db_type(request.usedb, request.db)
    try:
        user_message, bot_message = await conversation.exchange(
            current_user.user_id,
            chat_id,
            request.content,
            use_web=request.useweb,
            use_db=request.usedb,
            db_type=db_type,
        )
    except UpstreamServiceError as e:
        logger.error("chat_upstream_failed", service=e.service, error=str(e))
        raise HTTPException(status_code=502, detail=str(e))

    return {
        "userMessage": user_message.to_public(),
        "message": bot_message.to_public(),
    }


@router.delete("/{chat_id}/messages")
async def clear_chat_messages(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    store: ChatStore = Depends(get_chat_store),
):
    """Clear the history of a chat"""
    if not await store.get_user_chat(current_user.user_id, chat_id):
        raise HTTPException(status_code=404, detail="Chat not found")
    deleted = await store.clear_messages(current_user.user_id, chat_id)
    return {"success": True, "deleted": deleted}
