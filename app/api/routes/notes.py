"""
Note Routes
CRUD for the caller's notes
"""
from fastapi import APIRouter, HTTPException, Depends, Response
from pydantic import BaseModel, Field

from app.models.user import User
from app.api.routes.auth import get_current_user
from app.services.planner import NoteStore, note_store


router = APIRouter()


def get_note_store() -> NoteStore:
    return note_store


class NotePayload(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = ""


@router.get("")
async def list_notes(
    current_user: User = Depends(get_current_user),
    store: NoteStore = Depends(get_note_store),
):
    """Notes, most recently updated first"""
    notes = await store.list_notes(current_user.user_id)
    return [note.to_public() for note in notes]


@router.get("/{note_id}")
async def get_note(
    note_id: int,
    current_user: User = Depends(get_current_user),
    store: NoteStore = Depends(get_note_store),
):
    note = await store.get_note(current_user.user_id, note_id)
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return note.to_public()


@router.post("", status_code=201)
async def create_note(
    request: NotePayload,
    current_user: User = Depends(get_current_user),
    store: NoteStore = Depends(get_note_store),
):
    note = await store.create_note(current_user.user_id, request.title, request.content)
    return note.to_public()


@router.put("/{note_id}")
async def update_note(
    note_id: int,
    request: NotePayload,
    current_user: User = Depends(get_current_user),
    store: NoteStore = Depends(get_note_store),
):
    note = await store.update_note(current_user.user_id, note_id, request.title, request.content)
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return note.to_public()


@router.delete("/{note_id}", status_code=204)
async def delete_note(
    note_id: int,
    current_user: User = Depends(get_current_user),
    store: NoteStore = Depends(get_note_store),
):
    if not await store.delete_note(current_user.user_id, note_id):
        raise HTTPException(status_code=404, detail="Note not found")
    return Response(status_code=204)
