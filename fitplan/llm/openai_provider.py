"""OpenAI LLM provider implementation."""
import json
import logging
import re

import httpx

from fitplan.config.settings import get_settings
from fitplan.core.exceptions import LLMConfigurationError, LLMError, LLMResponseError
from fitplan.llm.base import (
    LLMProvider,
    LLMConfig,
    LLMResponse,
    Message,
)

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


def scrub_json(raw: str | None) -> str:
    """Strip surrounding whitespace and a ```json fence, if any."""
    if not isinstance(raw, str):
        return ""
    trimmed = raw.strip()
    fenced = _FENCED_JSON.search(trimmed)
    if fenced:
        return fenced.group(1).strip()
    return trimmed


class OpenAIProvider(LLMProvider):
    """
    OpenAI-compatible LLM provider.

    Works with OpenAI API, OpenRouter, and other compatible endpoints.
    Uses the chat completions endpoint for conversations.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.api_key = (api_key if api_key is not None else settings.openai_api_key).strip()
        self.base_url = (base_url or settings.openai_base_url).rstrip('/')
        self.default_model = default_model or settings.openai_model
        self.timeout = timeout or settings.openai_timeout

        if not self.api_key:
            logger.warning("OpenAI API key not configured. Coaching content will fall back to library text.")

        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def _build_messages(self, messages: list[Message]) -> list[dict]:
        """Convert Message objects to OpenAI format."""
        return [{"role": m.role, "content": m.content} for m in messages]

    async def chat(
        self,
        messages: list[Message],
        config: LLMConfig,
    ) -> LLMResponse:
        """
        Send chat request to OpenAI-compatible API.

        Uses the /chat/completions endpoint with optional JSON response format.

        Raises:
            LLMConfigurationError: No API key is configured
            LLMError: Timeout, network failure or non-2xx response
            LLMResponseError: Empty content, or unparseable JSON when a
                schema was requested
        """
        if not self.api_key:
            raise LLMConfigurationError("OpenAI API key is not configured. Set OPENAI_API_KEY.")

        client = await self._get_client()

        payload = {
            "model": config.model or self.default_model,
            "messages": self._build_messages(messages),
            "temperature": config.temperature,
        }

        if config.max_tokens:
            payload["max_tokens"] = config.max_tokens

        # Request JSON output if schema provided
        if config.json_schema:
            payload["response_format"] = {"type": "json_object"}
            # Add schema hint to system message for better compliance
            schema_hint = f"\n\nRespond with valid JSON matching this schema: {json.dumps(config.json_schema)}"
            if messages and messages[0].role == "system":
                payload["messages"][0]["content"] += schema_hint

        try:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.error("OpenAI request timed out after %.1fs", self.timeout)
            raise LLMError("OpenAI request timed out.", code="LLM_TIMEOUT") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"OpenAI API error: {e.response.status_code} - {e.response.text}")
            raise LLMError(
                f"OpenAI request failed with status {e.response.status_code}",
                code="LLM_HTTP_ERROR",
                details={"status": e.response.status_code},
            ) from e
        except httpx.RequestError as e:
            logger.error("OpenAI request failed: %s", e)
            raise LLMError(f"OpenAI request failed: {e}", code="LLM_NETWORK_ERROR") from e

        try:
            data = response.json()
        except ValueError as e:
            logger.warning("OpenAI response body is not JSON")
            raise LLMResponseError("OpenAI response body is not JSON.", code="LLM_PARSE_ERROR") from e
        if not isinstance(data, dict):
            raise LLMResponseError("OpenAI response body is not a JSON object.", code="LLM_PARSE_ERROR")
        choice = (data.get("choices") or [{}])[0]
        content = scrub_json((choice.get("message") or {}).get("content"))

        if not content:
            raise LLMResponseError("OpenAI response did not include content.", code="LLM_EMPTY_RESPONSE")

        # Parse structured data if schema was provided
        structured_data = None
        if config.json_schema:
            try:
                structured_data = json.loads(content)
            except json.JSONDecodeError as e:
                logger.warning("Failed to parse JSON from OpenAI response")
                raise LLMResponseError("Unable to parse OpenAI response as JSON.", code="LLM_PARSE_ERROR") from e
            if not isinstance(structured_data, dict):
                raise LLMResponseError("OpenAI response JSON is not an object.", code="LLM_PARSE_ERROR")

        usage = data.get("usage", {})

        return LLMResponse(
            content=content,
            structured_data=structured_data,
            usage={
                "prompt_tokens": usage.get("prompt_tokens"),
                "completion_tokens": usage.get("completion_tokens"),
                "total_tokens": usage.get("total_tokens"),
            },
            model=data.get("model"),
            finish_reason=choice.get("finish_reason"),
        )
