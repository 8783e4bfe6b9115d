"""
JSONPlaceholder client: внешний источник пользователей.

httpx AsyncClient + tenacity retries на сетевые ошибки и 5xx.

Сетевые ошибки и 5xx после всех попыток: ExternalFetchUnavailableError
(recoverable). 4xx и битый payload: ExternalFetchError, повтор не поможет.
"""

from __future__ import annotations

from typing import List, Optional

import httpx
from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from usersync.config.external_api import JsonPlaceholderSettings
from usersync.shared.exceptions import ExternalFetchError, ExternalFetchUnavailableError
from usersync.utility.logging_client import logger

API_NAME = "JSONPlaceholder"


class JsonPlaceholderUser(BaseModel):
    id: int
    name: str
    username: str
    email: str


class _RetryableStatus(Exception):
    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


class JsonPlaceholderClient:
    """Lazy httpx client; one connection pool per process."""

    def __init__(self, settings: JsonPlaceholderSettings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self.settings.base_url

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url,
                timeout=self.settings.timeout,
                transport=self._transport,
                event_hooks={
                    "request": [logger.log_request],
                    "response": [logger.log_response],
                },
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str) -> httpx.Response:
        client = self._get_client()
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max(1, self.settings.max_retries)),
                wait=wait_exponential(multiplier=0.5, max=5),
                retry=retry_if_exception_type((httpx.TransportError, _RetryableStatus)),
                reraise=False,
            ):
                with attempt:
                    response = await client.get(path)
                    if response.status_code >= 500:
                        raise _RetryableStatus(response)
        except RetryError as e:
            last = e.last_attempt.exception()
            status = last.response.status_code if isinstance(last, _RetryableStatus) else None
            raise ExternalFetchUnavailableError(
                f"GET {path} failed after {self.settings.max_retries} attempt(s)",
                status_code=status,
                api_name=API_NAME,
                original_error=last,
            ) from e

        if response.is_error:
            raise ExternalFetchError(
                f"GET {path} failed",
                status_code=response.status_code,
                api_name=API_NAME,
            )
        return response

    async def get_users(self) -> List[JsonPlaceholderUser]:
        response = await self._get("/users")
        try:
            return [JsonPlaceholderUser.model_validate(item) for item in response.json()]
        except (ValueError, TypeError, ValidationError) as e:
            raise ExternalFetchError(
                "Unexpected /users payload",
                api_name=API_NAME,
                original_error=e,
            ) from e
