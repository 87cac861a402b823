"""
Voice mode handler
Per-connection protocol for the /ws endpoint: authenticate, then for every
speech frame run transcription -> chat completion -> speech synthesis,
persisting both sides of the turn and reporting progress as JSON events.
"""
from __future__ import annotations

import base64
import binascii
import json
import uuid
from typing import Any, Dict, Optional

from structlog.contextvars import bound_contextvars

from app.ai.assistant import AssistantService
from app.config import settings
from app.errors import AudioTooLargeError, UpstreamServiceError, VoiceProtocolError
from app.logging_config import get_logger
from app.services.chat_store import ChatStore
from app.services.conversation import Conversation, resolve_db_type
from app.services.speech import SpeechService
from app.services.voice_sessions import (
    SUPERSEDED_CLOSE_CODE,
    VoiceSession,
    VoiceSessionRegistry,
    close_quietly,
)

logger = get_logger(__name__)

AUTH_REQUIRED_CLOSE_CODE = 4401
AUDIO_TOO_LARGE_MESSAGE = "Audio response too large to handle safely"


def error_event(message: str, code: str) -> Dict[str, str]:
    return {"type": "error", "message": message, "code": code}


def is_plain_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def same_email(stored: Any, claimed: str) -> bool:
    return str(stored).strip().lower() == claimed.strip().lower()


class VoiceModeHandler:
    """
    Runs the message loop of one voice-mode WebSocket at a time.

    Frames from a connection are processed strictly in arrival order: a
    ``speech`` frame received while another is in flight waits in the
    transport until the first pipeline has emitted its last event.
    """

    def __init__(
        self,
        registry: VoiceSessionRegistry,
        store: ChatStore,
        speech: SpeechService,
        assistant: AssistantService,
        history_limit: Optional[int] = None,
        max_audio_bytes: Optional[int] = None,
        max_auth_failures: Optional[int] = None,
    ):
        self.registry = registry
        self.store = store
        self.speech = speech
        self.conversation = Conversation(store, assistant, history_limit=history_limit)
        self.max_audio_bytes = max_audio_bytes or settings.VOICE_MAX_AUDIO_RESPONSE_BYTES
        self.max_auth_failures = max_auth_failures or settings.VOICE_MAX_AUTH_FAILURES
        self._auth_failures: Dict[Any, int] = {}

    async def handle(self, websocket: Any) -> None:
        await websocket.accept()
        with bound_contextvars(connection_id=uuid.uuid4().hex[:12]):
            logger.info("voice_connection_opened")
            await self.send(websocket, {"type": "connected"})
            try:
                while True:
                    frame = await websocket.receive()
                    if frame.get("type") == "websocket.disconnect":
                        break
                    if not await self.handle_frame(websocket, frame.get("text")):
                        break
            finally:
                self.registry.remove(websocket)
                self._auth_failures.pop(websocket, None)
                logger.info("voice_connection_closed")

    async def handle_frame(self, websocket: Any, raw: Optional[str]) -> bool:
        """Dispatch one frame. Returns False once the connection has been closed."""
        session = self.registry.touch(websocket)
        try:
            data = json.loads(raw) if raw is not None else None
        except ValueError:
            data = None
        message_type = data.get("type") if isinstance(data, dict) else None

        if session is None:
            if message_type != "auth":
                logger.warning("voice_unauthenticated_message", message_type=message_type)
                await self.reject(websocket, error_event("Authenticate first", "auth_required"))
                return False
            if await self.handle_auth(websocket, data):
                self._auth_failures.pop(websocket, None)
                return True
            return await self.record_auth_failure(websocket)

        if not isinstance(data, dict):
            await self.send(websocket, error_event("Invalid message format", "invalid_message"))
        elif message_type == "auth":
            await self.handle_auth(websocket, data)
        elif message_type == "speech":
            await self.handle_speech(websocket, session, data)
        else:
            await self.send(
                websocket,
                error_event(f"Unknown message type: {message_type}", "unknown_message_type"),
            )
        return True

    async def record_auth_failure(self, websocket: Any) -> bool:
        failures = self._auth_failures.get(websocket, 0) + 1
        self._auth_failures[websocket] = failures
        if failures < self.max_auth_failures:
            return True
        logger.warning("voice_auth_attempts_exceeded", failures=failures)
        await self.reject(
            websocket,
            error_event("Too many failed authentication attempts", "auth_attempts_exceeded"),
        )
        return False

    async def reject(self, websocket: Any, event: Dict[str, str]) -> None:
        await self.send(websocket, event)
        await close_quietly(websocket, code=AUTH_REQUIRED_CLOSE_CODE, reason=event["message"])

    async def handle_auth(self, websocket: Any, data: Dict[str, Any]) -> bool:
        user_id = data.get("userId")
        email = data.get("email")
        chat_id = data.get("chatId")
        if not is_plain_int(user_id) or not isinstance(email, str) or not is_plain_int(chat_id):
            await self.send(websocket, error_event("Invalid authentication data", "invalid_auth"))
            return False

        try:
            user = await self.store.get_user(user_id)
            if user is None or not user.is_active or not same_email(user.email, email):
                logger.warning("voice_auth_rejected", user_id=user_id)
                await self.send(websocket, error_event("Invalid authentication data", "invalid_auth"))
                return False
            chat = await self.store.get_user_chat(user_id, chat_id)
        except Exception:
            logger.exception("voice_auth_lookup_failed", user_id=user_id, chat_id=chat_id)
            await self.send(websocket, error_event("Authentication failed", "auth_failed"))
            return False
        if chat is None:
            await self.send(websocket, error_event("Chat not found", "chat_not_found"))
            return False

        superseded = self.registry.register(user_id, email, websocket, chat_id)
        if superseded is not None:
            await self.send(
                superseded,
                error_event("Session opened from another connection", "session_superseded"),
            )
            await close_quietly(superseded, code=SUPERSEDED_CLOSE_CODE, reason="Session superseded")

        await self.send(websocket, {"type": "auth_success"})
        return True

    async def handle_speech(self, websocket: Any, session: VoiceSession, data: Dict[str, Any]) -> None:
        try:
            await self.run_pipeline(websocket, session, data)
        except VoiceProtocolError as e:
            await self.send(websocket, error_event(e.message, e.code))
        except AudioTooLargeError:
            await self.send(websocket, error_event(AUDIO_TOO_LARGE_MESSAGE, "audio_too_large"))
        except UpstreamServiceError as e:
            logger.error("voice_upstream_failed", service=e.service, error=str(e))
            await self.send(websocket, error_event(str(e), "upstream_error"))
        except Exception as e:
            logger.exception("voice_pipeline_failed", user_id=session.user_id, chat_id=session.chat_id)
            await self.send(websocket, error_event(str(e) or "Failed to process speech", "internal_error"))

    async def run_pipeline(self, websocket: Any, session: VoiceSession, data: Dict[str, Any]) -> None:
        audio_bytes = self.decode_audio(data.get("audioData"))
        use_web = bool(data.get("useweb"))
        use_db = bool(data.get("usedb"))
        db_type = resolve_db_type(use_db, data.get("db"))

        transcript = await self.speech.transcribe(audio_bytes)
        if not transcript:
            raise VoiceProtocolError("Could not transcribe audio", code="empty_transcript")
        await self.send(websocket, {"type": "transcription", "text": transcript})

        user_message, bot_message = await self.conversation.exchange(
            session.user_id, session.chat_id, transcript, use_web, use_db, db_type
        )
        await self.send(websocket, {
            "type": "ai_response",
            "userMessage": user_message.to_public(),
            "message": bot_message.to_public(),
        })

        audio = await self.speech.synthesize(bot_message.content, max_bytes=self.max_audio_bytes)
        await self.send(websocket, {
            "type": "speech_response",
            "audioData": base64.b64encode(audio).decode("utf-8"),
        })
        logger.info(
            "voice_turn_completed",
            user_id=session.user_id,
            chat_id=session.chat_id,
            db_type=db_type,
            audio_bytes=len(audio),
        )

    def decode_audio(self, audio_data: Any) -> bytes:
        if not audio_data:
            raise VoiceProtocolError("Missing audio data", code="missing_audio")
        if not isinstance(audio_data, str):
            raise VoiceProtocolError("Invalid audio data", code="invalid_audio")
        try:
            return base64.b64decode(audio_data, validate=True)
        except (binascii.Error, ValueError):
            raise VoiceProtocolError("Invalid audio data", code="invalid_audio")

    async def send(self, websocket: Any, payload: Dict[str, Any]) -> bool:
        try:
            await websocket.send_json(payload)
            return True
        except Exception as e:
            # client went away mid-turn
            logger.debug("voice_send_failed", event_type=payload.get("type"), error=str(e))
            return False
