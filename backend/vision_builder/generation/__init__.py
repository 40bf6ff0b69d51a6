"""Text generation backends and the factory that picks one from settings."""

from vision_builder.core.config import Settings, get_settings
from vision_builder.generation.protocol import TextGenerator


def build_text_generator(settings: Settings | None = None) -> TextGenerator:
    """Return the configured TextGenerator.

    Falls back to FakeTextGenerator when the selected backend has no API key,
    so local dev works without credentials.
    """
    settings = settings or get_settings()

    if settings.text_backend == "anthropic" and settings.anthropic_api_key:
        from vision_builder.generation.anthropic_client import AnthropicTextGenerator

        return AnthropicTextGenerator(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            max_tokens=settings.anthropic_max_tokens,
        )

    if settings.text_backend == "gateway" and settings.gateway_api_key:
        from vision_builder.generation.gateway import GatewayTextGenerator

        return GatewayTextGenerator(
            base_url=settings.gateway_url,
            api_key=settings.gateway_api_key,
            model=settings.gateway_model,
            timeout=settings.gateway_timeout_seconds,
        )

    from vision_builder.generation.fake import FakeTextGenerator

    return FakeTextGenerator()


__all__ = ["TextGenerator", "build_text_generator"]
