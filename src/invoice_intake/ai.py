"""LLM completion client built on pydantic-ai's direct model API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from pydantic_ai import BinaryContent
from pydantic_ai.direct import model_request
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    TextPart,
    UserPromptPart,
)

from invoice_intake.config import get_ai_api_key, get_llm_model
from invoice_intake.errors import ExtractionError

if TYPE_CHECKING:
    from pydantic_ai.models import Model

logger = logging.getLogger(__name__)


class CompletionClient(Protocol):
    """Protocol for the two completion shapes the field extractor needs."""

    async def complete_text(self, instruction: str, document_text: str) -> str: ...

    async def complete_image(
        self, instruction: str, image: bytes, media_type: str
    ) -> str: ...


class PydanticAICompletionClient:
    """CompletionClient backed by any pydantic-ai model.

    Safe to share between concurrent tasks; it holds no per-call state.
    """

    def __init__(self, model: Model | str) -> None:
        self.model = model

    async def complete_text(self, instruction: str, document_text: str) -> str:
        # The document goes in as the assistant's own turn so the model
        # treats it as known context to extract from.
        messages: list[ModelMessage] = [
            ModelRequest(parts=[UserPromptPart(content=instruction)]),
            ModelResponse(parts=[TextPart(content=document_text)]),
        ]
        return await self._request(messages)

    async def complete_image(
        self, instruction: str, image: bytes, media_type: str
    ) -> str:
        messages: list[ModelMessage] = [
            ModelRequest(
                parts=[
                    UserPromptPart(
                        content=[
                            BinaryContent(data=image, media_type=media_type),
                            instruction,
                        ]
                    )
                ]
            )
        ]
        return await self._request(messages)

    async def _request(self, messages: list[ModelMessage]) -> str:
        try:
            response = await model_request(self.model, messages)
        except Exception as exc:
            msg = f"AI completion failed: {exc}"
            raise ExtractionError(msg) from exc

        text = "".join(
            part.content for part in response.parts if isinstance(part, TextPart)
        )
        logger.debug("AI completion returned %d characters", len(text))
        return text


def create_completion_client() -> PydanticAICompletionClient:
    """Create the configured completion client."""
    model_name = get_llm_model()
    # Ensure the provider credential is available (fail fast)
    get_ai_api_key(model_name)
    return PydanticAICompletionClient(model_name)
