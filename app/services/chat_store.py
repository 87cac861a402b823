"""
Chat store
Beanie-backed persistence for chats and their messages.
"""
from __future__ import annotations

from typing import List, Optional

from app.models.chat import Chat
from app.models.counter import next_sequence
from app.models.message import Message, REGULAR_DB
from app.models.user import User


class ChatStore:
    async def get_user(self, user_id: int) -> Optional[User]:
        return await User.find_one(User.user_id == user_id)

    async def get_user_chat(self, user_id: int, chat_id: int) -> Optional[Chat]:
        return await Chat.find_one(Chat.chat_id == chat_id, Chat.user_id == user_id)

    async def list_chats(self, user_id: int) -> List[Chat]:
        return await Chat.find(Chat.user_id == user_id).sort("-created_at").to_list()

    async def create_chat(
        self,
        user_id: int,
        title: str = "New chat",
        type: str = "regular",
        db_type: str = REGULAR_DB,
    ) -> Chat:
        chat = Chat(
            chat_id=await next_sequence("chats"),
            user_id=user_id,
            title=title,
            type=type,
            db_type=db_type,
        )
        await chat.insert()
        return chat

    async def rename_chat(self, user_id: int, chat_id: int, title: str) -> Optional[Chat]:
        chat = await self.get_user_chat(user_id, chat_id)
        if not chat:
            return None
        chat.title = title
        await chat.save()
        return chat

    async def delete_chat(self, user_id: int, chat_id: int) -> bool:
        chat = await self.get_user_chat(user_id, chat_id)
        if not chat:
            return False
        await Message.find(Message.chat_id == chat_id).delete()
        await chat.delete()
        return True

    async def create_message(
        self,
        user_id: int,
        chat_id: int,
        content: str,
        is_bot: bool,
        db_type: str = REGULAR_DB,
    ) -> Message:
        message = Message(
            message_id=await next_sequence("messages"),
            user_id=user_id,
            chat_id=chat_id,
            content=content,
            is_bot=is_bot,
            db_type=db_type,
        )
        await message.insert()
        return message

    async def list_messages(self, user_id: int, chat_id: int) -> List[Message]:
        return await Message.find(
            Message.chat_id == chat_id,
            Message.user_id == user_id,
        ).sort("+created_at", "+message_id").to_list()

    async def recent_messages(self, chat_id: int, limit: int) -> List[Message]:
        """Newest first, at most ``limit`` entries."""
        return await Message.find(
            Message.chat_id == chat_id
        ).sort("-created_at", "-message_id").limit(limit).to_list()

    async def clear_messages(self, user_id: int, chat_id: int) -> int:
        result = await Message.find(
            Message.chat_id == chat_id,
            Message.user_id == user_id,
        ).delete()
        return getattr(result, "deleted_count", 0) or 0

    async def set_vote(self, user_id: int, message_id: int, value: int) -> Optional[Message]:
        message = await Message.find_one(
            Message.message_id == message_id,
            Message.user_id == user_id,
        )
        if not message:
            return None
        message.vote = value
        await message.save()
        return message


chat_store = ChatStore()
