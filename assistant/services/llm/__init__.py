"""LLM package for the library assistant.

This module provides:
- AssistantService: answers a question with a bounded tool-calling loop
- ToolExecutor: runs model-requested tools against the library
- LIBRARY_TOOLS: tool definitions exposed to the model
- get_provider_client: OpenAI, Anthropic and Google adapters behind one interface

Usage:
    from assistant.services.llm import AssistantService

    service = AssistantService(library, access, config)
    answer = await service.ask_question(question, history, principal)
"""

from .executor import ToolExecutor
from .models import Message, NormalizedResponse, ProviderConfig, ToolCallRequest, ToolResult
from .providers import get_provider_client
from .service import AssistantService
from .tools import LIBRARY_TOOLS

__all__ = [
    "AssistantService",
    "ToolExecutor",
    "LIBRARY_TOOLS",
    "Message",
    "NormalizedResponse",
    "ProviderConfig",
    "ToolCallRequest",
    "ToolResult",
    "get_provider_client",
]
