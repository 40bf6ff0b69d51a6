"""TextGenerator Protocol: the testable abstraction over the generative-text service.

Decouples orchestration from any particular LLM vendor:
- GatewayTextGenerator: OpenAI-compatible chat completions gateway (httpx)
- AnthropicTextGenerator: Anthropic Messages API
- FakeTextGenerator: deterministic scenarios for tests and local dev
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class TextGenerator(Protocol):
    """Remote text generation returning free-form text.

    Implementations raise TextGenerationError (a TransientServiceError) on
    transport failures, non-2xx responses and empty content.
    """

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float | None = None,
        model: str | None = None,
    ) -> str:
        """Run one completion.

        Args:
            messages: Role-tagged messages ({"role": "system"|"user", "content": ...})
            temperature: Optional sampling temperature
            model: Model id for this call; defaults to the one the client was built with

        Returns:
            Raw text content of the model response
        """
        ...
