from typing import Any, Dict

from fastapi import APIRouter, Request

from ...utils.service_health import create_inventory_health_checker

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> Dict[str, Any]:
    """Health check endpoint for the inventory sync service."""
    container = getattr(request.app.state, "container", None)
    if container is None:
        return {"service": "inventory_sync_service", "status": "starting"}
    return await create_inventory_health_checker(container).run_checks()
