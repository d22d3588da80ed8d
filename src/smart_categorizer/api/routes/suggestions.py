from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends

from smart_categorizer.api.dependencies import get_service
from smart_categorizer.api.schemas import FeedbackRequest, SuggestCategoryRequest, SuggestCategoryResponse
from smart_categorizer.logger import get_logger
from smart_categorizer.manager import SmartCategorizationService

logger = get_logger(__name__)

router = APIRouter(prefix="/ai")


@router.post("/suggest-category", response_model=SuggestCategoryResponse)
async def suggest_category(
    req: SuggestCategoryRequest,
    service: Annotated[SmartCategorizationService, Depends(get_service)],
) -> SuggestCategoryResponse:
    suggestions = await service.suggest_category(
        req.description,
        req.amount,
        req.transaction_type,
        req.user_id,
    )
    return SuggestCategoryResponse(suggestions=suggestions, description=req.description)


@router.post("/feedback")
async def record_feedback(
    req: FeedbackRequest,
    background_tasks: BackgroundTasks,
    service: Annotated[SmartCategorizationService, Depends(get_service)],
) -> dict[str, bool | str]:
    logger.info(
        "[FEEDBACK] User %s: '%s' -> '%s' (%s)",
        req.user_id,
        req.suggested_category,
        req.actual_category,
        "accepted" if req.was_accepted else "corrected",
    )
    # Recording must not hold up the transaction save flow
    background_tasks.add_task(
        service.record_feedback,
        req.user_id,
        req.transaction_description,
        req.suggested_category,
        req.actual_category,
        req.was_accepted,
        req.confidence,
        req.amount,
    )
    return {"success": True, "message": "Feedback recorded successfully"}
