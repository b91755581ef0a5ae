"""
Image generation provider - chat-completions style AI gateway.

Sends one prompt per call and extracts the first returned image.
"""

import time
from typing import Any

import httpx
from structlog import get_logger

from app.exceptions import (
    GenerationFailedError,
    ProviderError,
    ProviderQuotaExhaustedError,
    RateLimitedError,
)
from app.observability.metrics import metrics

logger = get_logger(__name__)


def extract_image_url(payload: Any) -> str | None:
    """Pull ``choices[0].message.images[0].image_url.url`` out of a response body."""
    try:
        url = payload["choices"][0]["message"]["images"][0]["image_url"]["url"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(url, str) or not url:
        return None
    return url


class ImageProvider:
    """Client for the external image generation API."""

    def __init__(
        self,
        api_key: str,
        url: str,
        model: str,
        timeout: float = 120.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.url = url
        self.model = model
        self.timeout = timeout
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    def build_payload(self, prompt: str, aspect_ratio: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "modalities": ["image", "text"],
            "image_config": {"aspect_ratio": aspect_ratio},
        }

    async def generate(self, prompt: str, aspect_ratio: str = "1:1") -> str:
        """
        Generate one image and return its URL.

        Raises:
            RateLimitedError: Provider answered 429
            ProviderQuotaExhaustedError: Provider answered 402
            GenerationFailedError: Any other failure, or no image in the response
        """
        start_time = time.time()
        try:
            image_url = await self._generate(prompt, aspect_ratio)
        except ProviderError as exc:
            metrics.record_provider_call(type(exc).__name__, time.time() - start_time)
            raise

        metrics.record_provider_call("success", time.time() - start_time)
        return image_url

    async def _generate(self, prompt: str, aspect_ratio: str) -> str:
        try:
            response = await self.http_client.post(
                self.url,
                json=self.build_payload(prompt, aspect_ratio),
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except httpx.HTTPError as exc:
            logger.error("provider_request_error", error=str(exc), error_type=type(exc).__name__)
            raise GenerationFailedError() from exc

        if response.status_code == 429:
            logger.warning("provider_rate_limited", body=response.text[:500])
            raise RateLimitedError(response.status_code)

        if response.status_code == 402:
            logger.error("provider_quota_exhausted", body=response.text[:500])
            raise ProviderQuotaExhaustedError(response.status_code)

        if not response.is_success:
            logger.error(
                "provider_request_failed", status=response.status_code, body=response.text[:500]
            )
            raise GenerationFailedError(status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            logger.error("provider_response_not_json", body=response.text[:500])
            raise GenerationFailedError() from exc

        image_url = extract_image_url(payload)
        if image_url is None:
            logger.error("provider_response_missing_image", body=response.text[:500])
            raise GenerationFailedError("No image generated", response.status_code)

        logger.info("provider_image_received", model=self.model)
        return image_url

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
