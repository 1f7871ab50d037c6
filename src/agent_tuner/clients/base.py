"""Base LLM client interface."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

CHARS_PER_TOKEN_ESTIMATE = 4


class BaseLLMClient(ABC):
    """Abstract chat-completion client used by agent runners and the prompt rewriter."""

    @abstractmethod
    async def achat_completion(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_mode: bool = False,
    ) -> str:
        """Send asynchronous chat completion request."""
        pass

    def count_tokens(self, text: str) -> int:
        """Estimate token count using character-based approximation."""
        return len(text) // CHARS_PER_TOKEN_ESTIMATE
