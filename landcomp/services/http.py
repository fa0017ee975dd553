"""HTTP client for the image generation proxy."""
from __future__ import annotations

import base64
import binascii
from typing import Any, Sequence

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import GenerationBackendSettings
from ..core.logging import get_logger
from .backends import BackendError, BackendTimeoutError, GenerationResult

logger = get_logger(name=__name__)

DEFAULT_MIME_TYPE = "image/png"


class HttpGenerationBackend:
    """Calls a JSON image generation endpoint.

    Request body: ``{"prompt", "images": [base64...], "language", "image_count"}``.
    Response body: ``{"text", "images": [{"data": base64, "mime_type"}]}``.
    Connection errors are retried a couple of times; timeouts and HTTP errors
    surface immediately as :class:`BackendError` so the caller's fallback
    chain takes over.
    """

    def __init__(
        self,
        settings: GenerationBackendSettings,
        *,
        client: httpx.AsyncClient | None = None,
        max_attempts: int = 2,
    ) -> None:
        self._settings = settings
        self.backend_id = settings.backend_id
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
            verify=settings.verify_ssl,
        )
        self._max_attempts = max(1, max_attempts)

    @classmethod
    def from_settings(cls, settings: GenerationBackendSettings) -> "HttpGenerationBackend":
        return cls(settings)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._settings.api_key:
            headers["Authorization"] = f"Bearer {self._settings.api_key}"
        return headers

    async def _post(self, body: dict[str, Any]) -> httpx.Response:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(httpx.ConnectError),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            stop=stop_after_attempt(self._max_attempts),
            reraise=True,
        ):
            with attempt:
                return await self._client.post(self._settings.endpoint_path, json=body, headers=self._headers())
        raise BackendError("Generation backend retry loop exited without a response")  # pragma: no cover

    async def generate(
        self,
        prompt: str,
        images: Sequence[bytes],
        language: str,
        image_count: int,
    ) -> GenerationResult:
        body = {
            "prompt": prompt,
            "images": [base64.b64encode(image).decode("ascii") for image in images],
            "language": language,
            "image_count": image_count,
        }
        try:
            response = await self._post(body)
        except httpx.TimeoutException as exc:
            logger.warning("generation_backend_timeout", backend=self.backend_id)
            raise BackendTimeoutError(f"Generation backend '{self.backend_id}' timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("generation_backend_transport_error", backend=self.backend_id, error=str(exc))
            raise BackendError(f"Generation backend '{self.backend_id}' unreachable: {exc}") from exc

        if response.status_code >= 400:
            raise BackendError(
                f"Generation backend '{self.backend_id}' returned {response.status_code}: {response.text[:200]}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise BackendError("Generation backend returned a non-JSON body") from exc
        return _parse_generation_payload(payload)


def _parse_generation_payload(payload: Any) -> GenerationResult:
    if not isinstance(payload, dict):
        raise BackendError("Generation backend payload must be a JSON object")
    text = payload.get("text")
    result = GenerationResult(text=text if isinstance(text, str) else "")
    for item in payload.get("images") or []:
        if not isinstance(item, dict) or not isinstance(item.get("data"), str):
            continue
        try:
            decoded = base64.b64decode(item["data"], validate=True)
        except (binascii.Error, ValueError):
            logger.warning("generation_backend_bad_image")
            continue
        result.images.append(decoded)
        mime_type = item.get("mime_type")
        result.mime_types.append(mime_type if isinstance(mime_type, str) and mime_type else DEFAULT_MIME_TYPE)
    return result
