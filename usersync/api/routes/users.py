"""
Users API endpoints.
"""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from usersync.container import Container
from usersync.storage.repositories import User

users_router = APIRouter(prefix="/users", tags=["users"])


def get_container(request: Request) -> Container:
    return request.app.state.container


class FetchUsersResponse(BaseModel):
    fetched_ids: List[str] = Field(default_factory=list, description="ID созданных пользователей")


class SyncRequestedResponse(BaseModel):
    status: str = Field(default="queued")
    requested_at: datetime


@users_router.get("", response_model=List[User])
async def list_users(container: Container = Depends(get_container)) -> List[User]:
    return await container.user_service.all()


@users_router.get("/{user_id}", response_model=User)
async def get_user(user_id: str, container: Container = Depends(get_container)) -> User:
    return await container.user_service.find_by_id(user_id)


@users_router.post("/fetch", response_model=FetchUsersResponse)
async def fetch_users(container: Container = Depends(get_container)) -> FetchUsersResponse:
    """Синхронно забрать пользователей из JSONPlaceholder."""
    fetched_ids = await container.user_service.fetch_from_json_placeholder()
    return FetchUsersResponse(fetched_ids=fetched_ids)


@users_router.post("/sync", response_model=SyncRequestedResponse, status_code=202)
async def request_sync(container: Container = Depends(get_container)) -> SyncRequestedResponse:
    """Поставить синхронизацию в очередь воркера (work vhost)."""
    command = await container.producers.request_user_sync(reason="http")
    return SyncRequestedResponse(requested_at=command.requested_at)
