"""
Generation Provider - Client for the external image generation/training API.

The provider works asynchronously: a dispatch returns its correlation id right
away and the results arrive later on the callback URL embedded in the request.
"""

import time
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from structlog import get_logger

from photoforge.exceptions import ExternalProviderError
from photoforge.observability.metrics import metrics
from photoforge.observability.tracing import trace_operation

logger = get_logger(__name__)


@dataclass(frozen=True)
class PromptDispatch:
    """One generation request as sent to the provider."""

    tune_id: str
    text: str
    num_images: int
    aspect_ratio: str
    callback_url: str
    super_resolution: bool = True
    film_grain: bool = False
    inpaint_faces: bool = False
    style_image_url: str | None = None


@dataclass(frozen=True)
class TuneDispatch:
    """One fine-tuning request as sent to the provider."""

    title: str
    subject_class: str
    token: str
    base_tune_id: str
    image_urls: tuple[str, ...]
    callback_url: str


class GenerationProvider(Protocol):
    """Protocol for image generation providers."""

    async def create_prompt(self, request: PromptDispatch) -> str:
        """Start a generation and return the provider's prompt id."""
        ...

    async def create_tune(self, request: TuneDispatch) -> str:
        """Start a training and return the provider's tune id."""
        ...


class AstriaProvider:
    """Astria-compatible REST client (tunes and prompts)."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.astria.ai",
        timeout_seconds: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._http_client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def create_prompt(self, request: PromptDispatch) -> str:
        """POST /tunes/{tune_id}/prompts"""
        prompt: dict[str, Any] = {
            "text": request.text,
            "num_images": request.num_images,
            "aspect_ratio": request.aspect_ratio,
            "callback": request.callback_url,
            "super_resolution": request.super_resolution,
            "film_grain": request.film_grain,
            "inpaint_faces": request.inpaint_faces,
        }
        if request.style_image_url:
            prompt["input_image_url"] = request.style_image_url

        with trace_operation(
            "provider.create_prompt", tune_id=request.tune_id, num_images=request.num_images
        ):
            data = await self._post(
                f"/tunes/{request.tune_id}/prompts", {"prompt": prompt}, kind="prompt"
            )

        return self._extract_id(data, kind="prompt")

    async def create_tune(self, request: TuneDispatch) -> str:
        """POST /tunes"""
        tune = {
            "title": request.title,
            "name": request.subject_class,
            "token": request.token,
            "base_tune_id": request.base_tune_id,
            "model_type": "lora",
            "image_urls": list(request.image_urls),
            "callback": request.callback_url,
        }

        with trace_operation(
            "provider.create_tune", images=len(request.image_urls), subject=request.subject_class
        ):
            data = await self._post("/tunes", {"tune": tune}, kind="tune")

        return self._extract_id(data, kind="tune")

    async def _post(self, path: str, body: dict[str, Any], kind: str) -> dict[str, Any]:
        if not self.api_key:
            raise ExternalProviderError("Provider API key is not configured")

        started = time.perf_counter()
        try:
            response = await self.http_client.post(
                f"{self.base_url}{path}", headers=self._headers(), json=body
            )
        except httpx.HTTPError as e:
            logger.error("provider_request_failed", kind=kind, path=path, error=str(e))
            raise ExternalProviderError(f"{kind} request failed: {e}") from e
        finally:
            metrics.record_dispatch(kind, time.perf_counter() - started)

        if response.status_code >= 400:
            logger.error(
                "provider_request_rejected",
                kind=kind,
                path=path,
                status=response.status_code,
                text=response.text[:500],
            )
            raise ExternalProviderError(
                f"{kind} request rejected with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ExternalProviderError(f"{kind} response is not JSON") from e

        if not isinstance(data, dict):
            raise ExternalProviderError(f"{kind} response is not an object")
        return data

    @staticmethod
    def _extract_id(data: dict[str, Any], kind: str) -> str:
        value = str(data.get("id") or "").strip()
        if not value:
            raise ExternalProviderError(f"{kind} response carries no id")
        return value
