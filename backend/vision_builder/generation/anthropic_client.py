"""AnthropicTextGenerator: Anthropic Messages API backend."""

import anthropic
import structlog

from vision_builder.core.exceptions import TextGenerationError

logger = structlog.get_logger(__name__)


class AnthropicTextGenerator:
    """Direct anthropic.AsyncAnthropic call.

    System-role messages are folded into the ``system`` parameter; the rest are
    passed through as the conversation.
    """

    def __init__(self, api_key: str, model: str, max_tokens: int = 2048, client: object | None = None):
        self.model = model
        self.max_tokens = max_tokens
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key)

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float | None = None,
        model: str | None = None,
    ) -> str:
        model = model or self.model
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        conversation = [m for m in messages if m["role"] != "system"]

        kwargs: dict = {
            "model": model,
            "max_tokens": self.max_tokens,
            "system": system,
            "messages": conversation,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            status_code = getattr(exc, "status_code", None)
            logger.warning(
                "anthropic_request_failed",
                model=model,
                status_code=status_code,
                error_type=type(exc).__name__,
            )
            raise TextGenerationError(f"Anthropic API error: {type(exc).__name__}", status_code=status_code) from exc

        if not response.content or not response.content[0].text:
            raise TextGenerationError("No content received from Anthropic")
        return response.content[0].text
