from __future__ import annotations

import asyncio
import logging
import random
from pathlib import Path
from typing import Any, Awaitable, Callable, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field

from clipline.errors import ProviderError, ProviderHTTPError

logger = logging.getLogger(__name__)

RETRY_STATUSES = {408, 429, 502, 503, 504}

CONTENT_TYPES = {
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".webm": "video/webm",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}


class IntegrationInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    identifier: str | None = None
    name: str | None = None
    profile: str | None = None
    disabled: bool = False
    customer: dict[str, Any] | None = None


class UploadedMedia(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    path: str = Field(min_length=1)


class PostingProvider(Protocol):
    async def list_integrations(self) -> list[IntegrationInfo]: ...

    async def upload(self, path: Path) -> UploadedMedia: ...

    async def schedule_post(self, body: dict[str, Any]) -> str | None: ...


def is_transient_status(status_code: int) -> bool:
    return status_code in RETRY_STATUSES or status_code >= 500


def guess_content_type(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")


class PostizClient:
    """Postiz public API client with jittered exponential retries."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        *,
        timeout_sec: float = 600,
        max_retries: int = 5,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        if not api_key or not base_url:
            raise ValueError("Postiz API key and base URL are required")
        self.api_key = api_key
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout_sec = timeout_sec
        self.max_retries = max_retries
        self._transport = transport
        self._sleep = sleep
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(cls, settings) -> "PostizClient":
        return cls(
            settings.postiz_api_key,
            settings.postiz_base_url,
            timeout_sec=settings.postiz_timeout_sec,
            max_retries=settings.postiz_max_retries,
        )

    def backoff_delay(self, attempt: int) -> float:
        return float(2 ** attempt) + self._rng.uniform(0, 0.75)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": self.api_key},
            timeout=self.timeout_sec,
            transport=self._transport,
        )

    async def _send_once(self, method: str, url: str, *, json: Any = None, file_path: Path | None = None) -> httpx.Response:
        async with self._client() as client:
            if file_path is not None:
                with file_path.open("rb") as fh:
                    files = {"file": (file_path.name, fh, guess_content_type(file_path))}
                    return await client.request(method, url, files=files)
            return await client.request(method, url, json=json)

    async def _send_with_retries(self, method: str, url: str, **kwargs) -> httpx.Response:
        attempt = 0
        while True:
            try:
                resp = await self._send_once(method, url, **kwargs)
            except httpx.TransportError as exc:
                if attempt >= self.max_retries:
                    raise ProviderError(f"Postiz {method} {url} failed: {exc}", component="postiz") from exc
                attempt += 1
                delay = self.backoff_delay(attempt)
                logger.warning(f"[postiz] {method} {url} transport error ({exc}), retry {attempt} in {delay:.2f}s")
                await self._sleep(delay)
                continue

            if is_transient_status(resp.status_code) and attempt < self.max_retries:
                attempt += 1
                delay = self.backoff_delay(attempt)
                logger.warning(f"[postiz] {method} {url} -> {resp.status_code}, retry {attempt} in {delay:.2f}s")
                await self._sleep(delay)
                continue

            if resp.status_code >= 400:
                raise ProviderHTTPError(resp.status_code, resp.text, component="postiz", url=url)
            return resp

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await asyncio.wait_for(self._send_with_retries(method, url, **kwargs), self.timeout_sec)
        except asyncio.TimeoutError as exc:
            raise ProviderError(
                f"Postiz {method} {url} exceeded {self.timeout_sec}s", component="postiz"
            ) from exc

    async def list_integrations(self) -> list[IntegrationInfo]:
        resp = await self._request("GET", "integrations")
        data = resp.json()
        if isinstance(data, dict):
            data = data.get("integrations") or data.get("data") or []
        return [IntegrationInfo.model_validate(row) for row in data]

    async def upload(self, path: Path) -> UploadedMedia:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"upload file not found: {path}")
        resp = await self._request("POST", "upload", file_path=path)
        try:
            return UploadedMedia.model_validate(resp.json())
        except ValueError as exc:
            raise ProviderError(f"Postiz upload returned invalid payload: {exc}", component="postiz") from exc

    async def schedule_post(self, body: dict[str, Any]) -> str | None:
        logger.info(f"[postiz] schedule payload date={body.get('date')} posts={len(body.get('posts') or [])}")
        resp = await self._request("POST", "posts", json=body)
        data = resp.json() if resp.content else None
        if isinstance(data, dict):
            data = data.get("posts") or [data]
        for row in data or []:
            if isinstance(row, dict) and row.get("postId"):
                return str(row["postId"])
        return None
