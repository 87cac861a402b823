"""
Voice session registry
In-memory table of authenticated voice-mode connections with idle eviction.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from app.config import settings
from app.logging_config import get_logger

logger = get_logger(__name__)

SUPERSEDED_CLOSE_CODE = 4001
IDLE_CLOSE_CODE = 4408


@dataclass
class VoiceSession:
    user_id: Any
    email: str
    chat_id: int
    connection: Any
    last_activity: datetime = field(default_factory=datetime.utcnow)


async def close_quietly(connection: Any, code: int = 1000, reason: str = "") -> None:
    """Close a connection that may already be gone."""
    try:
        await connection.close(code=code, reason=reason)
    except Exception as e:
        logger.debug("connection_close_failed", error=str(e))


class VoiceSessionRegistry:
    """
    Authenticated voice sessions, one per user.

    Every mutation completes without awaiting, so callers on the event loop
    never observe a half-updated table. ``sweep`` detaches stale entries first
    and closes their connections afterwards.
    """

    def __init__(
        self,
        idle_timeout: Optional[timedelta] = None,
        sweep_interval: Optional[float] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.idle_timeout = idle_timeout or timedelta(seconds=settings.VOICE_IDLE_TIMEOUT_SECONDS)
        self.sweep_interval = sweep_interval or settings.VOICE_SWEEP_INTERVAL_SECONDS
        self._clock = clock
        self._sessions: Dict[Any, VoiceSession] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._sessions)

    def register(self, user_id: Any, email: str, connection: Any, chat_id: int) -> Optional[Any]:
        """
        Bind ``connection`` to ``user_id``.

        Returns the connection of the session this one replaced, if it was a
        different connection. The caller is responsible for closing it.
        """
        superseded = None
        previous = self._sessions.get(user_id)
        if previous is not None and previous.connection is not connection:
            superseded = previous.connection

        # one session per connection as well as per user
        for key, session in list(self._sessions.items()):
            if session.connection is connection and key != user_id:
                del self._sessions[key]

        self._sessions[user_id] = VoiceSession(
            user_id=user_id,
            email=email,
            chat_id=chat_id,
            connection=connection,
            last_activity=self._clock(),
        )
        logger.info("voice_session_registered", user_id=user_id, chat_id=chat_id, replaced=superseded is not None)
        return superseded

    def get(self, connection: Any) -> Optional[VoiceSession]:
        for session in self._sessions.values():
            if session.connection is connection:
                return session
        return None

    def touch(self, connection: Any) -> Optional[VoiceSession]:
        """Bump last activity. ``None`` means the connection is not authenticated."""
        session = self.get(connection)
        if session is not None:
            session.last_activity = self._clock()
        return session

    def remove(self, connection: Any) -> Optional[VoiceSession]:
        session = self.get(connection)
        if session is not None:
            del self._sessions[session.user_id]
            logger.info("voice_session_removed", user_id=session.user_id)
        return session

    def stale_sessions(self, now: datetime) -> List[VoiceSession]:
        return [s for s in self._sessions.values() if now - s.last_activity > self.idle_timeout]

    async def sweep(self, now: Optional[datetime] = None) -> None:
        """Evict sessions idle for longer than the timeout and close their connections."""
        now = now or self._clock()
        stale = self.stale_sessions(now)
        for session in stale:
            del self._sessions[session.user_id]
        if stale:
            logger.info("voice_sessions_evicted", count=len(stale), remaining=len(self._sessions))
        for session in stale:
            await close_quietly(session.connection, code=IDLE_CLOSE_CODE, reason="Session idle timeout")

    async def _run_sweeper(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("voice_session_sweep_failed")

    def start(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._run_sweeper())

    async def stop(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
