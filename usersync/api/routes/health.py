from typing import Any, Dict

from fastapi import APIRouter, Request

health_router = APIRouter(tags=["health"])


@health_router.get("/health")
async def health(request: Request) -> Dict[str, Any]:
    container = request.app.state.container
    return {
        "status": "ok",
        "vhosts": {
            vhost.name: vhost.ready
            for vhost in (container.home_vhost, container.work_vhost)
        },
    }
