"""
StudyShare Backend - AI Gateway Completion Service
===================================================

What:  CompletionService for an OpenAI-compatible chat-completion gateway.
How:   One POST to {AI_GATEWAY_URL}/chat/completions through a shared
       httpx.AsyncClient. Upstream status codes are mapped onto the
       AIServiceError hierarchy; the caller decides what to do with them.
Who:   Created once at import; used by RecommendationService.

Status mapping:
    2xx + non-empty choices[0].message.content → text
    429                                         → AIRateLimitError (429)
    402                                         → AIQuotaExceededError (402)
    other status, transport error, empty text   → AIGatewayError (500)

There is no retry loop and no circuit breaker. Rate limit and quota answers
go straight back to the UI, which owns the retry policy.
"""

import logging
import time
from typing import List, Optional

import httpx

from studyshare.config import Settings, settings as default_settings
from studyshare.exceptions import (
    AIGatewayError,
    AIQuotaExceededError,
    AIRateLimitError,
)
from studyshare.services.llm_base import ChatMessage, CompletionService

logger = logging.getLogger(__name__)


class AIGatewayService(CompletionService):
    """
    Chat completions over HTTP.

    Args:
        config: Settings to read key, URL, model and timeout from.
        client: Optional preconfigured httpx.AsyncClient (tests pass one
                built on httpx.MockTransport). When omitted, a client is
                created lazily and closed by close().
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or default_settings
        self._client = client
        self._owns_client = client is None

    def is_configured(self) -> bool:
        return bool(self.config.ai_gateway_api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.config.ai_gateway_url}/chat/completions"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.ai_timeout)
        return self._client

    async def complete(
        self,
        messages: List[ChatMessage],
        temperature: Optional[float] = None,
    ) -> str:
        self.config.validate_required(["AI_GATEWAY_API_KEY"])

        payload = {
            "model": self.config.ai_model,
            "messages": messages,
            "temperature": self.config.ai_temperature if temperature is None else temperature,
        }
        headers = {
            "Authorization": f"Bearer {self.config.ai_gateway_api_key}",
            "Content-Type": "application/json",
        }

        start_time = time.perf_counter()
        try:
            response = await self._get_client().post(
                self.endpoint,
                json=payload,
                headers=headers,
                timeout=self.config.ai_timeout,
            )
        except httpx.HTTPError as e:
            logger.error("AI gateway request failed: %s", str(e))
            raise AIGatewayError(
                message="AI gateway error",
                context={"error_type": type(e).__name__},
            ) from e

        duration_ms = (time.perf_counter() - start_time) * 1000

        if response.status_code == 429:
            logger.warning("AI gateway rate limited the request after %.0fms", duration_ms)
            raise AIRateLimitError(context={"upstream_status": 429})
        if response.status_code == 402:
            logger.warning("AI gateway reported exhausted credits")
            raise AIQuotaExceededError(context={"upstream_status": 402})
        if not response.is_success:
            logger.error(
                "AI gateway error: %d %s",
                response.status_code,
                response.text[:500],
            )
            raise AIGatewayError(
                message="AI gateway error",
                context={"upstream_status": response.status_code},
            )

        content = self._extract_content(response)
        if not content:
            raise AIGatewayError(message="No response from AI")

        logger.info(
            "AI gateway completion in %.0fms (model=%s, %d chars)",
            duration_ms,
            self.config.ai_model,
            len(content),
        )
        return content

    @staticmethod
    def _extract_content(response: httpx.Response) -> Optional[str]:
        """choices[0].message.content, or None when any level is missing."""
        try:
            body = response.json()
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        choices = body.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return None
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        return content if isinstance(content, str) else None

    async def close(self) -> None:
        """Close the HTTP client if this service created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


ai_gateway_service = AIGatewayService()
