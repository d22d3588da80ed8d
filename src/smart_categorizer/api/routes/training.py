from typing import Annotated, Any

from fastapi import APIRouter, Depends

from smart_categorizer.api.dependencies import get_service
from smart_categorizer.logger import get_logger
from smart_categorizer.manager import SmartCategorizationService

logger = get_logger(__name__)

router = APIRouter(prefix="/ai")


@router.post("/retrain")
async def retrain_model(
    service: Annotated[SmartCategorizationService, Depends(get_service)],
) -> dict[str, Any]:
    logger.info("[TRAIN] Retrain requested via API.")
    await service.retrain_model()
    return service.training.get_status()


@router.post("/reload")
async def reload_patterns(
    service: Annotated[SmartCategorizationService, Depends(get_service)],
) -> dict[str, int]:
    await service.reload()
    return {"patterns": len(service.patterns), "rules": len(service.rules)}


@router.get("/status")
async def get_status(
    service: Annotated[SmartCategorizationService, Depends(get_service)],
) -> dict[str, Any]:
    status = service.training.get_status()
    status.update({
        "initialized": service.is_initialized,
        "patterns": len(service.patterns),
        "rules": len(service.rules),
    })
    return status
