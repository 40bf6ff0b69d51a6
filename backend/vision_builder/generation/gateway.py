"""GatewayTextGenerator: OpenAI-compatible chat completions over httpx."""

import httpx
import structlog

from vision_builder.core.exceptions import TextGenerationError

logger = structlog.get_logger(__name__)


class GatewayTextGenerator:
    """Calls ``POST {base_url}/chat/completions`` with a Bearer key.

    The orchestrators own timeouts and retries; this client makes exactly one
    request per ``complete()`` call.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float = 90.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.model = model
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float | None = None,
        model: str | None = None,
    ) -> str:
        model = model or self.model
        body: dict = {"model": model, "messages": messages}
        if temperature is not None:
            body["temperature"] = temperature

        try:
            response = await self._client.post("/chat/completions", json=body)
        except httpx.HTTPError as exc:
            logger.warning("gateway_request_failed", model=model, error=str(exc), error_type=type(exc).__name__)
            raise TextGenerationError(f"AI gateway request failed: {type(exc).__name__}") from exc

        if response.is_error:
            logger.error(
                "gateway_http_error",
                model=model,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise TextGenerationError(f"AI gateway error: {response.status_code}", status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            raise TextGenerationError("AI gateway returned a non-JSON body", status_code=response.status_code) from exc

        choices = data.get("choices") or [{}]
        content = (choices[0].get("message") or {}).get("content")
        if not content:
            raise TextGenerationError("No content received from AI gateway", status_code=response.status_code)
        return content

    async def aclose(self) -> None:
        await self._client.aclose()
