"""
Prompt Enhancer - Best-effort translation and enrichment of user prompts.

Never fails: any problem falls back to the raw prompt.
"""

import httpx
from structlog import get_logger

from photoforge.observability.metrics import metrics

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You rewrite prompts for a photorealistic portrait generator. "
    "Translate the user's text to English if needed and add concise photographic "
    "detail: lighting, lens, composition, mood. Keep the subject and intent. "
    "Answer with the rewritten prompt only."
)


class PromptEnhancer:
    """OpenAI-compatible chat completion client with graceful fallback."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
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

    async def enhance(self, prompt: str) -> str:
        """Return an enhanced prompt, or the raw prompt on any failure."""
        if not self.api_key:
            metrics.prompt_enhancements_total.labels(outcome="skipped").inc()
            logger.debug("prompt_enhancement_skipped", reason="not_configured")
            return prompt

        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.7,
            "max_tokens": 300,
        }

        try:
            response = await self.http_client.post(
                f"{self.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=body,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            enhanced = response.json()["choices"][0]["message"]["content"]
        except httpx.TimeoutException:
            metrics.prompt_enhancements_total.labels(outcome="timeout").inc()
            logger.warning("prompt_enhancement_timeout", timeout=self.timeout_seconds)
            return prompt
        except httpx.HTTPError as e:
            metrics.prompt_enhancements_total.labels(outcome="error").inc()
            logger.warning("prompt_enhancement_failed", error=str(e))
            return prompt
        except (ValueError, KeyError, IndexError, TypeError) as e:
            metrics.prompt_enhancements_total.labels(outcome="malformed").inc()
            logger.warning("prompt_enhancement_malformed_response", error=str(e))
            return prompt

        if not isinstance(enhanced, str) or not enhanced.strip():
            metrics.prompt_enhancements_total.labels(outcome="empty").inc()
            logger.warning("prompt_enhancement_empty")
            return prompt

        metrics.prompt_enhancements_total.labels(outcome="enhanced").inc()
        return enhanced.strip()
