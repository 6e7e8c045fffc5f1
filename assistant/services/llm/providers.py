"""LLM provider clients (OpenAI, Anthropic, Google Gemini).

Every client exposes ``send(messages, tools)`` and returns a
``NormalizedResponse``. Vendor-specific replay state travels in
``NormalizedResponse.continuation`` and comes back on the assistant
``Message`` of the next call; only the client that produced it reads it.
"""

import json
import logging
from typing import Any
from uuid import uuid4

import anthropic
import httpx

from assistant.api.exceptions import ProviderError, ProviderUnreachableError

from .models import Message, NormalizedResponse, ProviderConfig, ToolCallRequest, ToolDefinition
from .tools import (
    convert_tools_to_anthropic_format,
    convert_tools_to_google_format,
    convert_tools_to_openai_format,
)

logger = logging.getLogger(__name__)

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
GOOGLE_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_TIMEOUT = 60.0

Tools = list[ToolDefinition] | tuple[ToolDefinition, ...] | None


def _decode_arguments(raw: Any) -> dict[str, Any] | None:
    """Vendor tool arguments as a dict, or None when they are not a JSON object."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            return None
        return decoded if isinstance(decoded, dict) else None
    return None


def _system_text(messages: list[Message]) -> str:
    return "\n\n".join(m.content for m in messages if m.role == "system" and m.content)


class ProviderClient:
    """Base client: owns an httpx.AsyncClient unless one is injected."""

    provider: str = ""
    label: str = ""

    def __init__(
        self,
        config: ProviderConfig,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.config = config
        self.model = config.resolved_model
        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client:
            await self.http_client.aclose()

    async def send(self, messages: list[Message], tools: Tools = None) -> NormalizedResponse:
        raise NotImplementedError

    async def _post_json(
        self,
        url: str,
        body: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self.http_client.post(url, json=body, headers=headers, params=params)
        except httpx.TransportError as e:
            logger.error(f"{self.label} API unreachable: {type(e).__name__}")
            raise ProviderUnreachableError(self.label, reason=str(e) or type(e).__name__) from e

        if response.is_error:
            message = self._error_message(response)
            logger.error(f"{self.label} API error ({response.status_code}): {message}")
            raise ProviderError(self.label, response.status_code, message)

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"{self.label} API returned a non-JSON body ({response.status_code})")
            raise ProviderError(self.label, response.status_code, "Invalid JSON response") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or response.reason_phrase or "Unknown error"
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if error:
            return str(error)
        return json.dumps(data)


class OpenAIClient(ProviderClient):
    """Chat Completions API. System prompt stays as the leading message."""

    provider = "openai"
    label = "OpenAI"

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        converted: list[dict[str, Any]] = []
        for msg in messages:
            if msg.role in ("system", "user"):
                converted.append({"role": msg.role, "content": msg.content})
            elif msg.role == "tool":
                converted.append({
                    "role": "tool",
                    "tool_call_id": msg.tool_call_id,
                    "content": msg.content,
                })
            elif msg.tool_calls:
                if isinstance(msg.continuation, dict):
                    converted.append(msg.continuation)
                else:
                    converted.append({
                        "role": "assistant",
                        "content": msg.content or None,
                        "tool_calls": [
                            {
                                "id": call.id,
                                "type": "function",
                                "function": {
                                    "name": call.name,
                                    "arguments": json.dumps(call.arguments or {}),
                                },
                            }
                            for call in msg.tool_calls
                        ],
                    })
            else:
                converted.append({"role": "assistant", "content": msg.content})
        return converted

    async def send(self, messages: list[Message], tools: Tools = None) -> NormalizedResponse:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": self._convert_messages(messages),
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if tools:
            body["tools"] = convert_tools_to_openai_format(tools)
            body["tool_choice"] = "auto"

        data = await self._post_json(
            self.config.base_url or OPENAI_URL,
            body,
            headers={"Authorization": f"Bearer {self.config.api_key}"},
        )

        choices = data.get("choices") or []
        if not choices:
            return NormalizedResponse()
        message = choices[0].get("message") or {}
        text = message.get("content") or ""

        raw_calls = message.get("tool_calls") or []
        if not raw_calls:
            return NormalizedResponse(text=text)

        calls = [
            ToolCallRequest(
                id=raw.get("id") or f"call_{uuid4().hex[:12]}",
                name=(raw.get("function") or {}).get("name", ""),
                arguments=_decode_arguments((raw.get("function") or {}).get("arguments")),
            )
            for raw in raw_calls
        ]
        # Replay with the ids we hand to the executor
        continuation = {
            "role": "assistant",
            "content": message.get("content"),
            "tool_calls": [
                {**raw, "id": call.id, "type": raw.get("type", "function")}
                for raw, call in zip(raw_calls, calls)
            ],
        }
        return NormalizedResponse(text=text, tool_calls=calls, continuation=continuation)


class AnthropicClient(ProviderClient):
    """Messages API through the anthropic SDK.

    Tool-use content blocks must be replayed verbatim on the follow-up call,
    and every tool_result for one assistant turn goes in a single user
    message.
    """

    provider = "anthropic"
    label = "Anthropic"

    def __init__(
        self,
        config: ProviderConfig,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(config, http_client, timeout)
        self.client = anthropic.AsyncAnthropic(
            api_key=config.api_key,
            base_url=config.base_url,
            http_client=self.http_client,
            max_retries=0,
        )

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        converted: list[dict[str, Any]] = []
        for msg in messages:
            if msg.role == "system":
                continue

            if msg.role == "tool":
                block: dict[str, Any] = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.content,
                }
                if msg.is_error:
                    block["is_error"] = True
                previous = converted[-1] if converted else None
                if (
                    previous is not None
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and all(b.get("type") == "tool_result" for b in previous["content"])
                ):
                    previous["content"].append(block)
                else:
                    converted.append({"role": "user", "content": [block]})
                continue

            if msg.role == "assistant" and msg.tool_calls:
                if isinstance(msg.continuation, list):
                    blocks = msg.continuation
                else:
                    blocks = [{"type": "text", "text": msg.content}] if msg.content else []
                    blocks += [
                        {"type": "tool_use", "id": c.id, "name": c.name, "input": c.arguments or {}}
                        for c in msg.tool_calls
                    ]
                converted.append({"role": "assistant", "content": blocks})
                continue

            # Empty text blocks are rejected by the API
            if not msg.content:
                continue
            converted.append({"role": msg.role, "content": msg.content})
        return converted

    async def send(self, messages: list[Message], tools: Tools = None) -> NormalizedResponse:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": self._convert_messages(messages),
        }
        system = _system_text(messages)
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = convert_tools_to_anthropic_format(tools)

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.APIConnectionError as e:
            logger.error(f"Anthropic API unreachable: {type(e).__name__}")
            raise ProviderUnreachableError(self.label, reason=str(e)) from e
        except anthropic.APIStatusError as e:
            message = e.message
            if isinstance(e.body, dict):
                error = e.body.get("error")
                if isinstance(error, dict) and error.get("message"):
                    message = error["message"]
            logger.error(f"Anthropic API error ({e.status_code}): {message}")
            raise ProviderError(self.label, e.status_code, message) from e

        texts: list[str] = []
        calls: list[ToolCallRequest] = []
        blocks: list[dict[str, Any]] = []
        for block in response.content:
            if block.type == "text":
                texts.append(block.text)
                blocks.append({"type": "text", "text": block.text})
            elif block.type == "tool_use":
                arguments = block.input if isinstance(block.input, dict) else None
                calls.append(ToolCallRequest(id=block.id, name=block.name, arguments=arguments))
                blocks.append({
                    "type": "tool_use",
                    "id": block.id,
                    "name": block.name,
                    "input": block.input,
                })

        text = "\n".join(t for t in texts if t)
        if not calls:
            return NormalizedResponse(text=text)
        return NormalizedResponse(text=text, tool_calls=calls, continuation=blocks)


class GoogleClient(ProviderClient):
    """Gemini generateContent API. API key goes in the query string."""

    provider = "google"
    label = "Google"

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        contents: list[dict[str, Any]] = []
        for msg in messages:
            if msg.role == "system":
                continue

            if msg.role == "tool":
                key = "error" if msg.is_error else "result"
                part = {
                    "functionResponse": {
                        "name": msg.tool_name or "",
                        "response": {key: msg.content},
                    }
                }
                previous = contents[-1] if contents else None
                if (
                    previous is not None
                    and previous["role"] == "user"
                    and all("functionResponse" in p for p in previous["parts"])
                ):
                    previous["parts"].append(part)
                else:
                    contents.append({"role": "user", "parts": [part]})
                continue

            if msg.role == "assistant" and msg.tool_calls:
                if isinstance(msg.continuation, list):
                    parts = msg.continuation
                else:
                    parts = [{"text": msg.content}] if msg.content else []
                    parts += [
                        {"functionCall": {"name": c.name, "args": c.arguments or {}}}
                        for c in msg.tool_calls
                    ]
                contents.append({"role": "model", "parts": parts})
                continue

            if not msg.content:
                continue
            role = "model" if msg.role == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": msg.content}]})
        return contents

    async def send(self, messages: list[Message], tools: Tools = None) -> NormalizedResponse:
        body: dict[str, Any] = {
            "contents": self._convert_messages(messages),
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": self.config.max_tokens,
            },
        }
        system = _system_text(messages)
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        if tools:
            body["tools"] = convert_tools_to_google_format(tools)

        base_url = (self.config.base_url or GOOGLE_BASE_URL).rstrip("/")
        data = await self._post_json(
            f"{base_url}/models/{self.model}:generateContent",
            body,
            params={"key": self.config.api_key},
        )

        candidates = data.get("candidates") or []
        if not candidates:
            return NormalizedResponse()
        parts = (candidates[0].get("content") or {}).get("parts") or []

        texts: list[str] = []
        calls: list[ToolCallRequest] = []
        for part in parts:
            if "functionCall" in part:
                function_call = part["functionCall"] or {}
                calls.append(ToolCallRequest(
                    # Gemini usually omits ids; results are matched by our own
                    id=function_call.get("id") or f"call_{uuid4().hex[:12]}",
                    name=function_call.get("name", ""),
                    arguments=_decode_arguments(function_call.get("args")),
                ))
            elif part.get("text") and not part.get("thought"):
                texts.append(part["text"])

        text = "".join(texts)
        if not calls:
            return NormalizedResponse(text=text)
        # Parts carry thought signatures that must be sent back untouched
        return NormalizedResponse(text=text, tool_calls=calls, continuation=parts)


PROVIDER_CLIENTS: dict[str, type[ProviderClient]] = {
    "openai": OpenAIClient,
    "anthropic": AnthropicClient,
    "google": GoogleClient,
}


def get_provider_client(
    config: ProviderConfig,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> ProviderClient:
    """Build the client for ``config.provider``."""
    client_class = PROVIDER_CLIENTS.get(config.provider)
    if client_class is None:
        raise ValueError(f"Unsupported AI provider: {config.provider}")
    return client_class(config, http_client=http_client, timeout=timeout)
