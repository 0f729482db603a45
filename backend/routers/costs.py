from fastapi import APIRouter, Depends

from backend.dependencies import get_cost_tracker, get_session_controller
from backend.models.schemas import CostSummaryResponse
from backend.services.cost_tracker import CostTracker
from backend.services.session_controller import SessionController

router = APIRouter(prefix="/costs", tags=["costs"])


@router.get("/summary", response_model=CostSummaryResponse)
async def get_cost_summary(
    cost_tracker: CostTracker = Depends(get_cost_tracker),
    controller: SessionController = Depends(get_session_controller),
):
    return cost_tracker.get_cost_summary(controller.transcript.messages)
