"""
Oracle adapters backed by real services.

- SentenceTransformerEmbedder: local sentence-transformers model
- ClaudeCompleter: Anthropic Messages API

Both are optional: the resolver only needs objects with async ``embed`` /
``complete`` methods. Heavy imports happen on construction.

Usage:
    from matching.providers import ClaudeCompleter, SentenceTransformerEmbedder

    embedder = SentenceTransformerEmbedder()
    completer = ClaudeCompleter()
    code = await resolve_card_code(seller, partners, index, embedder, completer)
"""

import asyncio
import logging
from typing import Optional

from config.settings import settings
from matching.exceptions import OracleError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You match invoice data to master data records of an ERP system. "
    "Answer with a single code and nothing else."
)


class SentenceTransformerEmbedder:
    """Embeds text with a sentence-transformers model, off the event loop."""

    def __init__(self, model_name: Optional[str] = None, model=None):
        """
        Args:
            model_name: Model to load (default: settings.EMBEDDING_MODEL)
            model: Preloaded model with an ``encode(list[str])`` method
        """
        self.model_name = model_name or settings.EMBEDDING_MODEL
        if model is None:
            logger.info("Loading sentence-transformer model: %s", self.model_name)
            from sentence_transformers import SentenceTransformer
            model = SentenceTransformer(self.model_name)
        self._model = model

    async def embed(self, text: str) -> list[float]:
        vectors = await asyncio.to_thread(self._model.encode, [text])
        if vectors is None or len(vectors) == 0:
            raise OracleError(f"{self.model_name} returned no embedding")
        return [float(x) for x in vectors[0]]


class ClaudeCompleter:
    """Answers arbitration prompts with Claude."""

    def __init__(
        self,
        client=None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ):
        """
        Args:
            client: anthropic.AsyncAnthropic instance (default: built from
                    settings.ANTHROPIC_API_KEY)
            model: Claude model (default: settings.ARBITRATION_MODEL)
            max_tokens: Answer budget (default: settings.ARBITRATION_MAX_TOKENS)
        """
        if client is None:
            from anthropic import AsyncAnthropic
            client = AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY or None)
        self.client = client
        self.model = model or settings.ARBITRATION_MODEL
        self.max_tokens = max_tokens or settings.ARBITRATION_MAX_TOKENS

    async def complete(self, prompt: str) -> Optional[str]:
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )

        texts = [block.text for block in response.content if getattr(block, "type", "text") == "text"]
        if not texts:
            raise OracleError(f"{self.model} returned no text content")
        return "".join(texts).strip()
