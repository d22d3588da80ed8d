from fastapi import HTTPException, Request

from smart_categorizer.manager import SmartCategorizationService


def get_service(request: Request) -> SmartCategorizationService:
    service = getattr(request.app.state, "service", None)
    if not service:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return service
