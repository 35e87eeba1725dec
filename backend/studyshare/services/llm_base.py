"""
StudyShare Backend - Abstract Completion Service Interface
===========================================================

What:  Contract for chat-completion providers used by the recommendation ranker.
How:   Concrete implementations inherit from CompletionService and implement
       complete(). RecommendationService only sees this interface, so tests
       hand it a fake and a different gateway needs no change elsewhere.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

ChatMessage = Dict[str, str]


class CompletionService(ABC):
    """
    Abstract interface for a single-shot chat completion.

    Contract:
        - complete() returns the text of the first choice, never empty
        - Provider-specific failures are translated into AIServiceError
          subclasses (rate limit, quota, generic gateway failure)
        - No retries: transient failures are surfaced to the caller

    Implementations:
        - AIGatewayService: OpenAI-compatible /chat/completions over httpx
    """

    @abstractmethod
    async def complete(
        self,
        messages: List[ChatMessage],
        temperature: Optional[float] = None,
    ) -> str:
        """
        Send a system + user message list and return the completion text.

        Args:
            messages:    [{"role": "system"|"user", "content": "..."}]
            temperature: Sampling temperature; None uses the configured default.

        Raises:
            AIRateLimitError:     upstream answered 429
            AIQuotaExceededError: upstream answered 402
            AIGatewayError:       any other failure or an empty completion
        """
        ...

    @abstractmethod
    def is_configured(self) -> bool:
        """True when credentials for the provider are present."""
        ...
