"""
Main FastAPI Application
Entry point for the backend server
"""
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie

from app.config import settings
from app.logging_config import configure_logging, get_logger
from app.models.chat import Chat
from app.models.counter import Counter
from app.models.goal import Goal
from app.models.message import Message
from app.models.note import Note
from app.models.user import User
from app.ai.assistant import AssistantService
from app.services.chat_store import chat_store
from app.services.conversation import Conversation
from app.services.speech import SpeechService
from app.services.voice_mode import VoiceModeHandler
from app.services.voice_sessions import VoiceSessionRegistry

# Import routers
from app.api.routes import auth, chats, goals, notes, votes, voice

configure_logging(settings.LOG_LEVEL, settings.LOG_FILE, settings.LOG_FORMAT)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("app_starting", name=settings.APP_NAME, version=settings.APP_VERSION)

    # Initialize MongoDB
    client = AsyncIOMotorClient(settings.MONGODB_URL)
    database = client[settings.MONGODB_DB_NAME]

    # Initialize Beanie with document models
    await init_beanie(
        database=database,
        document_models=[User, Chat, Message, Note, Goal, Counter]
    )
    logger.info("mongodb_connected", db=settings.MONGODB_DB_NAME)

    assistant = AssistantService()
    app.state.conversation = Conversation(chat_store, assistant)

    registry = VoiceSessionRegistry()
    app.state.voice_registry = registry
    app.state.voice_handler = VoiceModeHandler(
        registry=registry,
        store=chat_store,
        speech=SpeechService(),
        assistant=assistant,
    )
    registry.start()

    logger.info("app_started", host=settings.HOST, port=settings.PORT)

    yield

    # Shutdown
    logger.info("app_stopping")
    await registry.stop()
    client.close()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Chat assistant backend with real-time voice mode",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(chats.router, prefix="/api/chats", tags=["Chats"])
app.include_router(votes.router, prefix="/api/votes", tags=["Votes"])
app.include_router(notes.router, prefix="/api/notes", tags=["Notes"])
app.include_router(goals.router, prefix="/api/goals", tags=["Goals"])
app.include_router(voice.router, tags=["Voice Mode"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": f"{settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "docs": "/api/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    registry = getattr(app.state, "voice_registry", None)
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "voice_sessions": len(registry) if registry is not None else 0,
    }


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
        ws_ping_interval=settings.WS_PING_INTERVAL,
        ws_ping_timeout=settings.WS_PING_TIMEOUT,
    )
