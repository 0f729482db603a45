import logging

from fastapi import APIRouter, Depends, HTTPException

from backend.dependencies import get_chat_store, get_session_controller
from backend.exceptions import SessionBusyError
from backend.models.database_models import SavedChat
from backend.models.schemas import (
    SaveChatRequest,
    SavedChatListResponse,
    SavedChatResponse,
    SavedChatSummary,
    SessionResponse,
)
from backend.routers.chat import session_state
from backend.services.chat_store import ChatStore
from backend.services.session_controller import SessionController

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chats", tags=["chats"])


def _to_response(chat: SavedChat) -> SavedChatResponse:
    return SavedChatResponse(
        id=chat.id,
        name=chat.name,
        messages=chat.messages,
        system_prompt=chat.system_prompt,
        model=chat.model,
        provider=chat.provider,
        total_cost=chat.total_cost,
        timestamp=chat.timestamp,
        selected_model_id=chat.selected_model_id,
        selected_provider_id=chat.selected_provider_id,
    )


@router.get("", response_model=SavedChatListResponse)
async def list_chats(store: ChatStore = Depends(get_chat_store)):
    chats = await store.list_chats()
    return SavedChatListResponse(chats=[
        SavedChatSummary(
            id=c.id,
            name=c.name,
            model=c.model,
            provider=c.provider,
            total_cost=c.total_cost,
            timestamp=c.timestamp,
            message_count=len(c.messages),
        )
        for c in chats
    ])


@router.post("", response_model=SavedChatResponse)
async def save_chat(
    body: SaveChatRequest,
    store: ChatStore = Depends(get_chat_store),
    controller: SessionController = Depends(get_session_controller),
):
    """Save the current session, overwriting the chat it was loaded from."""
    if len(controller.transcript) == 0 and controller.saved_chat_id is None:
        raise HTTPException(status_code=400, detail="Nothing to save yet")

    chat = controller.snapshot(body.name)
    if chat.id is not None and await store.update_chat(chat.id, chat):
        logger.info(f"Updated saved chat {chat.id}")
    else:
        chat.id = await store.create_chat(chat)
        controller.saved_chat_id = chat.id
        logger.info(f"Saved chat {chat.id}")
    return _to_response(chat)


@router.get("/{chat_id}", response_model=SavedChatResponse)
async def get_chat(chat_id: int, store: ChatStore = Depends(get_chat_store)):
    chat = await store.get_chat(chat_id)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    return _to_response(chat)


@router.post("/{chat_id}/load", response_model=SessionResponse)
async def load_chat(
    chat_id: int,
    store: ChatStore = Depends(get_chat_store),
    controller: SessionController = Depends(get_session_controller),
):
    chat = await store.get_chat(chat_id)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    try:
        controller.load(chat)
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return session_state(controller)


@router.delete("/{chat_id}")
async def delete_chat(
    chat_id: int,
    store: ChatStore = Depends(get_chat_store),
    controller: SessionController = Depends(get_session_controller),
):
    if not await store.delete_chat(chat_id):
        raise HTTPException(status_code=404, detail="Chat not found")
    if controller.saved_chat_id == chat_id and not controller.busy:
        controller.forget_saved_chat(chat_id)
    return {"status": "deleted"}
