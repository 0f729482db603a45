import logging

from fastapi import APIRouter, Depends

from backend.dependencies import get_chat_store, get_session_controller
from backend.models.schemas import HealthResponse
from backend.services.chat_store import ChatStore
from backend.services.session_controller import SessionController

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    store: ChatStore = Depends(get_chat_store),
    controller: SessionController = Depends(get_session_controller),
):
    """Return service health.  If the DB isn't ready yet (before lifespan
    runs), return a 200 with status="starting"."""
    try:
        chat_count = await store.count_chats()
    except Exception as exc:
        logger.warning("Health check: DB not ready yet (%s)", exc)
        return HealthResponse(status="starting", session_busy=controller.busy)
    return HealthResponse(
        status="healthy",
        saved_chat_count=chat_count,
        session_busy=controller.busy,
    )
