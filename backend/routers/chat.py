import asyncio
import json
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from backend.dependencies import get_model_catalog, get_session_controller
from backend.exceptions import PreconditionError, SessionBusyError
from backend.models.events import TranscriptEvent
from backend.models.schemas import (
    ChatMessage,
    ChatRequest,
    ModelSelection,
    SessionResponse,
    SystemPromptUpdate,
)
from backend.services.model_catalog import ModelCatalog
from backend.services.session_controller import SessionController

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chat", tags=["chat"])

# Turns outlive their SSE client; each task is referenced here until done.
_running_turns: set[asyncio.Task] = set()


def session_state(controller: SessionController) -> SessionResponse:
    return SessionResponse(
        messages=controller.transcript.messages,
        system_prompt=controller.system_prompt,
        model_id=controller.model_id,
        provider=controller.provider,
        chat_info=controller.chat_info,
        saved_chat_id=controller.saved_chat_id,
        total_cost=controller.total_cost,
        is_loading=controller.is_loading,
        is_reconciling=controller.is_reconciling,
    )


def _event_payload(
    controller: SessionController, event: TranscriptEvent, touched: list[ChatMessage]
) -> dict:
    return {
        "event": event.kind,
        "data": json.dumps({
            "event": event.model_dump(mode="json"),
            "messages": [m.model_dump(mode="json") for m in touched],
            "total_cost": controller.total_cost,
        }),
    }


async def stream_transcript_events(
    controller: SessionController, message: str
) -> AsyncIterator[dict]:
    """Run one turn and yield every transcript update as an SSE event."""
    queue: asyncio.Queue = asyncio.Queue()

    def on_event(event: TranscriptEvent, touched: list[ChatMessage]) -> None:
        queue.put_nowait(_event_payload(controller, event, touched))

    unsubscribe = controller.transcript.subscribe(on_event)
    task = asyncio.create_task(controller.send_message(message))
    _running_turns.add(task)
    task.add_done_callback(_running_turns.discard)
    task.add_done_callback(lambda _: queue.put_nowait(None))

    try:
        while True:
            item = await queue.get()
            if item is None:
                break
            yield item
        await task
        yield {
            "event": "done",
            "data": json.dumps({
                "status": "complete",
                "total_cost": controller.total_cost,
            }),
        }
    except Exception as e:
        logger.exception("Chat streaming failed")
        yield {"event": "error", "data": json.dumps({"error": str(e)})}
    finally:
        unsubscribe()


@router.post("/completions")
async def chat_completions(
    request: ChatRequest,
    controller: SessionController = Depends(get_session_controller),
):
    """Stream one turn via SSE."""
    try:
        controller.ensure_ready()
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PreconditionError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return EventSourceResponse(stream_transcript_events(controller, request.message))


# --- Session state ---

@router.get("/session", response_model=SessionResponse)
async def get_session(controller: SessionController = Depends(get_session_controller)):
    return session_state(controller)


@router.post("/session/new", response_model=SessionResponse)
async def new_session(controller: SessionController = Depends(get_session_controller)):
    try:
        controller.reset()
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return session_state(controller)


@router.put("/session/system-prompt", response_model=SessionResponse)
async def update_system_prompt(
    body: SystemPromptUpdate,
    controller: SessionController = Depends(get_session_controller),
):
    controller.system_prompt = body.system_prompt
    return session_state(controller)


@router.put("/session/model", response_model=SessionResponse)
async def select_model(
    body: ModelSelection,
    controller: SessionController = Depends(get_session_controller),
    catalog: ModelCatalog = Depends(get_model_catalog),
):
    if body.model_id and catalog.models and not catalog.has_model(body.model_id):
        raise HTTPException(status_code=404, detail="Model not found")
    if controller.busy:
        raise HTTPException(status_code=409, detail="A response is still in progress")
    controller.select_model(body.model_id, body.provider)
    return session_state(controller)
