import itertools
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest

from app.ai.assistant import HistoryTurn
from app.services.conversation import Conversation
from app.services.planner import goal_matches
from app.services.speech import SpeechService
from app.services.voice_mode import VoiceModeHandler
from app.services.voice_sessions import VoiceSessionRegistry


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class StoredUser:
    user_id: int
    email: str
    username: str = "mirai"
    is_active: bool = True


@dataclass
class StoredChat:
    chat_id: int
    user_id: int
    title: str = "New chat"
    type: str = "regular"
    db_type: str = "regular"
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_public(self) -> dict:
        return {
            "id": self.chat_id,
            "userId": self.user_id,
            "title": self.title,
            "type": self.type,
            "dbType": self.db_type,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class StoredMessage:
    message_id: int
    user_id: int
    chat_id: int
    content: str
    is_bot: bool
    db_type: str = "regular"
    vote: int = 0
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_public(self) -> dict:
        return {
            "id": self.message_id,
            "userId": self.user_id,
            "chatId": self.chat_id,
            "content": self.content,
            "isBot": self.is_bot,
            "dbType": self.db_type,
            "vote": self.vote,
            "timestamp": self.created_at.isoformat(),
        }


class FakeChatStore:
    """In-memory stand-in for ChatStore with the same coroutine surface."""

    def __init__(self):
        self.users: Dict[int, StoredUser] = {}
        self.chats: Dict[int, StoredChat] = {}
        self.messages: List[StoredMessage] = []
        self._chat_ids = itertools.count(1)
        self._message_ids = itertools.count(1)
        self._tick = itertools.count()

    def _timestamp(self) -> datetime:
        return datetime(2026, 1, 1) + timedelta(seconds=next(self._tick))

    def add_user(self, user_id: int, email: str = "a@b.com", is_active: bool = True) -> StoredUser:
        user = StoredUser(user_id=user_id, email=email, is_active=is_active)
        self.users[user_id] = user
        return user

    def add_chat(self, user_id: int, chat_id: Optional[int] = None) -> StoredChat:
        """Adds the chat, and its owner with email a@b.com unless already known."""
        if user_id not in self.users:
            self.add_user(user_id)
        chat = StoredChat(chat_id=chat_id or next(self._chat_ids), user_id=user_id)
        self.chats[chat.chat_id] = chat
        return chat

    def add_message(self, user_id: int, chat_id: int, content: str, is_bot: bool) -> StoredMessage:
        message = StoredMessage(
            message_id=next(self._message_ids),
            user_id=user_id,
            chat_id=chat_id,
            content=content,
            is_bot=is_bot,
            created_at=self._timestamp(),
        )
        self.messages.append(message)
        return message

    async def get_user(self, user_id):
        return self.users.get(user_id)

    async def get_user_chat(self, user_id, chat_id):
        chat = self.chats.get(chat_id)
        if chat is None or chat.user_id != user_id:
            return None
        return chat

    async def list_chats(self, user_id):
        chats = [c for c in self.chats.values() if c.user_id == user_id]
        return sorted(chats, key=lambda c: c.created_at, reverse=True)

    async def create_chat(self, user_id, title="New chat", type="regular", db_type="regular"):
        chat = self.add_chat(user_id)
        chat.title, chat.type, chat.db_type = title, type, db_type
        return chat

    async def rename_chat(self, user_id, chat_id, title):
        chat = await self.get_user_chat(user_id, chat_id)
        if chat:
            chat.title = title
        return chat

    async def delete_chat(self, user_id, chat_id):
        chat = await self.get_user_chat(user_id, chat_id)
        if not chat:
            return False
        del self.chats[chat_id]
        self.messages = [m for m in self.messages if m.chat_id != chat_id]
        return True

    async def create_message(self, user_id, chat_id, content, is_bot, db_type="regular"):
        message = self.add_message(user_id, chat_id, content, is_bot)
        message.db_type = db_type
        return message

    async def list_messages(self, user_id, chat_id):
        return [m for m in self.messages if m.chat_id == chat_id and m.user_id == user_id]

    async def recent_messages(self, chat_id, limit):
        in_chat = [m for m in self.messages if m.chat_id == chat_id]
        in_chat.sort(key=lambda m: (m.created_at, m.message_id), reverse=True)
        return in_chat[:limit]

    async def clear_messages(self, user_id, chat_id):
        before = len(self.messages)
        self.messages = [m for m in self.messages if not (m.chat_id == chat_id and m.user_id == user_id)]
        return before - len(self.messages)

    async def set_vote(self, user_id, message_id, value):
        for message in self.messages:
            if message.message_id == message_id and message.user_id == user_id:
                message.vote = value
                return message
        return None


@dataclass
class StoredNote:
    note_id: int
    user_id: int
    title: str
    content: str
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def to_public(self) -> dict:
        return {"id": self.note_id, "userId": self.user_id, "title": self.title, "content": self.content}


@dataclass
class StoredGoal:
    goal_id: int
    user_id: int
    title: str
    description: str = ""
    completed: bool = False
    due_date: Optional[datetime] = None
    priority: str = "medium"
    category: str = ""
    tags: List[str] = field(default_factory=list)
    reminder_time: Optional[datetime] = None
    is_recurring: bool = False
    recurring_type: Optional[str] = None
    recurring_interval: Optional[int] = None
    recurring_end_date: Optional[datetime] = None
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def to_public(self) -> dict:
        return {
            "id": self.goal_id,
            "userId": self.user_id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "priority": self.priority,
            "category": self.category,
            "tags": self.tags,
        }


class FakeNoteStore:
    def __init__(self):
        self.notes: Dict[int, StoredNote] = {}
        self._ids = itertools.count(1)

    async def list_notes(self, user_id):
        notes = [n for n in self.notes.values() if n.user_id == user_id]
        return sorted(notes, key=lambda n: (n.updated_at, n.note_id), reverse=True)

    async def get_note(self, user_id, note_id):
        note = self.notes.get(note_id)
        return note if note and note.user_id == user_id else None

    async def create_note(self, user_id, title, content):
        note = StoredNote(note_id=next(self._ids), user_id=user_id, title=title, content=content)
        self.notes[note.note_id] = note
        return note

    async def update_note(self, user_id, note_id, title, content):
        note = await self.get_note(user_id, note_id)
        if note:
            note.title, note.content = title, content
        return note

    async def delete_note(self, user_id, note_id):
        if not await self.get_note(user_id, note_id):
            return False
        del self.notes[note_id]
        return True


class FakeGoalStore:
    def __init__(self):
        self.goals: Dict[int, StoredGoal] = {}
        self._ids = itertools.count(1)

    def add_goal(self, user_id: int, title: str, **fields) -> StoredGoal:
        goal = StoredGoal(goal_id=next(self._ids), user_id=user_id, title=title, **fields)
        self.goals[goal.goal_id] = goal
        return goal

    async def list_goals(self, user_id):
        return [g for g in self.goals.values() if g.user_id == user_id]

    async def list_active_goals(self, user_id):
        return [g for g in await self.list_goals(user_id) if not g.completed]

    async def list_goals_by(self, user_id, **filters):
        goals = await self.list_goals(user_id)
        return [g for g in goals if all(getattr(g, k) == v for k, v in filters.items())]

    async def search_goals(self, user_id, term):
        return [g for g in await self.list_goals(user_id) if goal_matches(g, term)]

    async def get_goal(self, user_id, goal_id):
        goal = self.goals.get(goal_id)
        return goal if goal and goal.user_id == user_id else None

    async def create_goal(self, user_id, fields):
        return self.add_goal(user_id, **fields)

    async def update_goal(self, user_id, goal_id, fields):
        goal = await self.get_goal(user_id, goal_id)
        if goal:
            for key, value in fields.items():
                setattr(goal, key, value)
        return goal

    async def delete_goal(self, user_id, goal_id):
        if not await self.get_goal(user_id, goal_id):
            return False
        del self.goals[goal_id]
        return True


class FakeSpeech(SpeechService):
    """Real bounded synthesis, scripted upstream."""

    def __init__(self, transcript="hello there", chunks=(b"ID3", b"audio"), transcribe_error=None):
        super().__init__(client=object())
        self.transcript = transcript
        self.chunks = list(chunks)
        self.transcribe_error = transcribe_error
        self.received_audio: List[bytes] = []
        self.stream_closed = False

    async def transcribe(self, audio_bytes, filename="speech.webm"):
        self.received_audio.append(audio_bytes)
        if self.transcribe_error is not None:
            raise self.transcribe_error
        return self.transcript

    async def stream_speech(self, text, chunk_size=64 * 1024):
        try:
            for chunk in self.chunks:
                yield chunk
        finally:
            self.stream_closed = True


class FakeAssistant:
    def __init__(self, reply="Hi! How can I help?"):
        self.reply = reply
        self.calls: List[dict] = []

    async def generate_reply(self, text, use_web, use_db, db, history: List[HistoryTurn]):
        self.calls.append({
            "text": text,
            "use_web": use_web,
            "use_db": use_db,
            "db": db,
            "history": history,
        })
        return self.reply


class FakeWebSocket:
    """Scripted client side of a voice-mode socket."""

    def __init__(self, frames=()):
        self.frames = list(frames)
        self.sent: List[dict] = []
        self.accepted = False
        self.closed = False
        self.close_code: Optional[int] = None

    async def accept(self):
        self.accepted = True

    async def receive(self):
        if self.closed or not self.frames:
            return {"type": "websocket.disconnect", "code": 1000}
        return {"type": "websocket.receive", "text": self.frames.pop(0)}

    async def send_json(self, payload):
        if self.closed:
            raise RuntimeError("Cannot call send once a close message has been sent.")
        self.sent.append(payload)

    async def close(self, code=1000, reason=None):
        self.closed = True
        self.close_code = code

    @property
    def sent_types(self) -> List[str]:
        return [event["type"] for event in self.sent]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return VoiceSessionRegistry(clock=clock)


@pytest.fixture
def store():
    return FakeChatStore()


@pytest.fixture
def speech():
    return FakeSpeech()


@pytest.fixture
def assistant():
    return FakeAssistant()


@pytest.fixture
def handler(registry, store, speech, assistant):
    return VoiceModeHandler(
        registry=registry,
        store=store,
        speech=speech,
        assistant=assistant,
        history_limit=5,
        max_audio_bytes=5 * 1024 * 1024,
    )


@pytest.fixture
def conversation(store, assistant):
    return Conversation(store, assistant, history_limit=5)


@pytest.fixture
def note_store():
    return FakeNoteStore()


@pytest.fixture
def goal_store():
    return FakeGoalStore()
