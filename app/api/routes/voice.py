"""
Voice Mode Routes
WebSocket endpoint for real-time voice conversations
"""
from fastapi import APIRouter, WebSocket

router = APIRouter()


@router.websocket("/ws")
async def voice_mode(websocket: WebSocket):
    """
    Voice mode socket. The handler is built at startup and kept on ``app.state``.
    """
    await websocket.app.state.voice_handler.handle(websocket)
