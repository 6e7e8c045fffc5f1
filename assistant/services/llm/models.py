"""Conversation types shared by the gateway, executor and loop controller."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ProviderName = Literal["openai", "anthropic", "google"]

DEFAULT_MODELS: dict[str, str] = {
    "google": "gemini-2.5-flash-lite",
    "anthropic": "claude-3-haiku-20240307",
    "openai": "gpt-4o-mini",
}


class ToolCallRequest(BaseModel):
    """A tool invocation requested by the model.

    ``arguments`` is None when the vendor sent arguments that could not be
    decoded into a JSON object.
    """

    id: str
    name: str
    arguments: dict[str, Any] | None = Field(default_factory=dict)


class ToolResult(BaseModel):
    tool_call_id: str
    content: str
    is_error: bool = False


class Message(BaseModel):
    role: Literal["user", "assistant", "system", "tool"]
    content: str = ""
    # Set on role="tool" messages
    tool_call_id: str | None = None
    tool_name: str | None = None
    is_error: bool = False
    # Set on assistant turns that requested tools
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)
    continuation: Any = None

    @classmethod
    def from_tool_result(cls, result: ToolResult, tool_name: str) -> "Message":
        return cls(
            role="tool",
            content=result.content,
            tool_call_id=result.tool_call_id,
            tool_name=tool_name,
            is_error=result.is_error,
        )


class ToolDefinition(BaseModel):
    """A named, schema-described tool the model may call."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: dict[str, Any]


class NormalizedResponse(BaseModel):
    """Vendor response reduced to final text or a set of tool calls.

    ``continuation`` holds whatever the vendor needs replayed on the next call
    (raw assistant message, content blocks or parts). Only the adapter that
    produced it reads it.
    """

    text: str = ""
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)
    continuation: Any = None

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


class ProviderConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: ProviderName
    api_key: str
    model: str | None = None
    base_url: str | None = None
    enable_tools: bool = True
    max_tokens: int = 1000
    temperature: float = 0.7

    @property
    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODELS[self.provider]
