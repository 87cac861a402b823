"""
Assistant Service
Produces the bot reply for a chat turn, either through the retrieval
microservice or straight from the LLM.
"""
import asyncio
from typing import Any, Dict, List, Literal, Optional

import aiohttp
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from groq import GroqError
from langchain_groq import ChatGroq
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel

from app.config import settings
from app.errors import UpstreamServiceError
from app.logging_config import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are Mirai, a friendly voice assistant. "
    "Your answers are read aloud, so keep them short, conversational and free of "
    "markdown, tables or links."
)

WEB_HINT = "The user allowed web search; say so when an answer depends on recent information."

_OPENAI_ROLES = {"system": "system", "human": "user", "ai": "assistant"}


class HistoryTurn(BaseModel):
    role: Literal["user", "assistant"]
    text: str


def format_bot_response(text: str) -> str:
    """Turn escaped newlines from the retrieval service into real ones."""
    return text.replace("\\n", "\n").strip()


def extract_retrieval_text(payload: Dict[str, Any]) -> Optional[str]:
    """Pull the reply text out of a Langflow-style ``outputs`` payload."""
    outputs = payload.get("outputs") if isinstance(payload, dict) else None
    if not isinstance(outputs, list) or not outputs:
        return None
    first = outputs[0] or {}
    inner = first.get("outputs") or []
    if not inner:
        return None
    result = inner[0] or {}
    text = (((result.get("results") or {}).get("message") or {}).get("data") or {}).get("text")
    if text:
        return text
    messages = result.get("messages") or []
    if messages and messages[0].get("message"):
        return messages[0]["message"]
    return None


class AssistantService:
    """Chat completion for text and voice turns"""

    def __init__(self, llm: Any = None, client: Optional[AsyncOpenAI] = None):
        self.retrieval_url = settings.RETRIEVAL_API_URL
        self.llm = llm
        self.client = client
        if self.llm is None and self.client is None:
            # Prioritize Groq if configured
            if settings.GROQ_API_KEY:
                self.llm = ChatGroq(
                    model=settings.GROQ_MODEL,
                    groq_api_key=settings.GROQ_API_KEY,
                    temperature=settings.OPENAI_TEMPERATURE,
                    max_tokens=settings.OPENAI_MAX_TOKENS,
                )
            # Fallback to standard OpenAI
            else:
                self.client = AsyncOpenAI(
                    api_key=settings.OPENAI_API_KEY or None,
                    base_url=settings.OPENAI_BASE_URL,
                )

    async def generate_reply(
        self,
        text: str,
        use_web: bool,
        use_db: bool,
        db: str,
        history: List[HistoryTurn],
    ) -> str:
        if self.retrieval_url:
            reply = await self._ask_retrieval(text, use_web, use_db, db, history)
        else:
            reply = await self._ask_llm(self._build_messages(history, text, use_web))
        if not reply:
            reply = "I could not generate a response. Please try again."
        return reply

    def _build_messages(self, history: List[HistoryTurn], user_text: str, use_web: bool) -> List[BaseMessage]:
        system = SYSTEM_PROMPT + (" " + WEB_HINT if use_web else "")
        messages: List[BaseMessage] = [SystemMessage(content=system)]
        for item in history:
            if item.role == "user":
                messages.append(HumanMessage(content=item.text))
            else:
                messages.append(AIMessage(content=item.text))
        messages.append(HumanMessage(content=user_text))
        return messages

    async def _ask_llm(self, messages: List[BaseMessage]) -> str:
        try:
            if self.llm is not None:
                response = await self.llm.ainvoke(messages)
                return (response.content or "").strip()

            response = await self.client.chat.completions.create(
                model=settings.OPENAI_MODEL,
                messages=[{"role": _OPENAI_ROLES[m.type], "content": m.content} for m in messages],
                temperature=settings.OPENAI_TEMPERATURE,
                max_tokens=settings.OPENAI_MAX_TOKENS,
            )
            return (response.choices[0].message.content or "").strip()
        except (OpenAIError, GroqError) as e:
            raise UpstreamServiceError("chat", f"Chat completion failed: {e}") from e

    def _retrieval_payload(
        self,
        text: str,
        use_web: bool,
        use_db: bool,
        db: str,
        history: List[HistoryTurn],
    ) -> Dict[str, Any]:
        return {
            "input_value": text,
            "input_type": "chat",
            "output_type": "chat",
            "tweaks": {
                "options": {
                    "use_web": use_web,
                    "use_db": use_db,
                    "db": db,
                },
                "history": [turn.model_dump() for turn in history],
            },
        }

    async def _ask_retrieval(
        self,
        text: str,
        use_web: bool,
        use_db: bool,
        db: str,
        history: List[HistoryTurn],
    ) -> str:
        headers = {"Content-Type": "application/json"}
        if settings.RETRIEVAL_AUTHORIZATION:
            headers["Authorization"] = settings.RETRIEVAL_AUTHORIZATION
        if settings.RETRIEVAL_API_KEY:
            headers["x-api-key"] = settings.RETRIEVAL_API_KEY

        payload = self._retrieval_payload(text, use_web, use_db, db, history)
        timeout = aiohttp.ClientTimeout(total=settings.RETRIEVAL_TIMEOUT_SECONDS)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.retrieval_url, json=payload, headers=headers) as resp:
                    if resp.status != 200:
                        body = await resp.text()
                        logger.error("retrieval_api_error", status=resp.status, body=body[:500])
                        raise UpstreamServiceError(
                            "retrieval",
                            f"Retrieval API responded with status {resp.status}",
                            status=resp.status,
                        )
                    data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamServiceError("retrieval", f"Retrieval API unreachable: {e}") from e

        reply = extract_retrieval_text(data)
        if not reply:
            logger.error("retrieval_unexpected_payload", keys=list(data)[:10] if isinstance(data, dict) else None)
            raise UpstreamServiceError("retrieval", "Could not extract message from AI response")
        return format_bot_response(reply)
