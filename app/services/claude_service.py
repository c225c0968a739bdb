"""
app/services/claude_service.py

Purpose: Claude (Anthropic) client

- Single-turn replies for the Claude webhook
- Multi-turn replies for the terminal chat script
"""

from typing import Dict, List, Optional

import anthropic

from app.core.config import settings
from app.core.exceptions import ProviderError
from app.core.logging import get_logger

logger = get_logger(__name__)


class ClaudeService:
    """Thin async wrapper around the Messages API"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ):
        self.api_key = api_key or settings.ANTHROPIC_API_KEY
        self.model = model or settings.CLAUDE_MODEL
        self.max_tokens = max_tokens or settings.CLAUDE_MAX_TOKENS
        self._client: Optional[anthropic.AsyncAnthropic] = None

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
            logger.info(f"Claude client initialized (model={self.model})")
        return self._client

    async def reply(self, history: List[Dict[str, str]], system: Optional[str] = None) -> str:
        """
        Generates the assistant's next turn.

        Args:
            history: Alternating user/assistant messages, ending with a user turn
            system: Optional system prompt

        Returns:
            Reply text (stripped)
        """
        kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": history,
        }
        if system:
            kwargs["system"] = system

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.APIStatusError as e:
            logger.error(f"Claude API error: {e.status_code} - {e.message}")
            raise ProviderError("Claude request failed", details=e.message, upstream_status=e.status_code)
        except anthropic.APIError as e:
            logger.error(f"Claude API error: {e}")
            raise ProviderError("Claude request failed", details=str(e))

        text = "".join(block.text for block in response.content if block.type == "text")
        return text.strip()

    async def ask(self, message: str, system: Optional[str] = None) -> str:
        return await self.reply([{"role": "user", "content": message}], system=system)

    def is_configured(self) -> bool:
        return bool(self.api_key)


# Singleton instance
claude_service = ClaudeService()
