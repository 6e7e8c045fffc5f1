"""Assistant service: grounded question answering with a bounded tool loop."""

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from assistant.api.exceptions import AccessDeniedError, LLMNotConfiguredError, ToolLoopError
from assistant.services.access import AccessChecker
from assistant.services.library import LibraryDataSource, Principal, Song, load_snapshot

from .context import ContextBuilder
from .executor import ToolExecutor
from .models import Message, ProviderConfig, ToolCallRequest, ToolResult
from .prompts import build_system_prompt
from .providers import DEFAULT_TIMEOUT, ProviderClient, get_provider_client
from .tools import LIBRARY_TOOLS

if TYPE_CHECKING:
    from assistant.services.app_settings import AppSettingsService

logger = logging.getLogger(__name__)

EMPTY_RESPONSE = "No response from AI"
LOOP_LIMIT_RESPONSE = "Maximum tool call limit reached"

ClientFactory = Callable[[ProviderConfig], ProviderClient]


def match_results(calls: list[ToolCallRequest], results: list[ToolResult]) -> list[ToolResult]:
    """Pair every requested call with exactly one result, in request order.

    Raises ToolLoopError if a call has no result, two results share an id,
    or a result answers a call that was never made.
    """
    by_id: dict[str, ToolResult] = {}
    for result in results:
        if result.tool_call_id in by_id:
            raise ToolLoopError(detail=f"Duplicate result for tool call {result.tool_call_id}")
        by_id[result.tool_call_id] = result

    requested = [call.id for call in calls]
    if len(set(requested)) != len(requested):
        raise ToolLoopError(detail="Model issued duplicate tool call ids")

    missing = [call_id for call_id in requested if call_id not in by_id]
    extra = set(by_id) - set(requested)
    if missing or extra:
        raise ToolLoopError(
            detail=f"Unmatched tool calls: missing={sorted(missing)} unexpected={sorted(extra)}"
        )
    return [by_id[call_id] for call_id in requested]


class AssistantService:
    """Answers library questions through one configured LLM provider."""

    def __init__(
        self,
        library: LibraryDataSource,
        access: AccessChecker,
        config: ProviderConfig | None = None,
        *,
        settings_service: "AppSettingsService | None" = None,
        client_factory: ClientFactory | None = None,
        max_iterations: int = 5,
        history_window: int = 10,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.library = library
        self.access = access
        self.config = config
        self.settings_service = settings_service
        self.client_factory = client_factory or (
            lambda cfg: get_provider_client(cfg, timeout=timeout)
        )
        self.max_iterations = max_iterations
        self.history_window = history_window

    def configure(self, config: ProviderConfig) -> None:
        """Replace the provider configuration."""
        self.config = config

    def load_config(self) -> ProviderConfig | None:
        """Read provider configuration from app settings if none was given."""
        if self.config is None and self.settings_service is not None:
            self.config = self.settings_service.get_provider_config()
        return self.config

    async def check_access(self, principal: Principal | None) -> bool:
        return await self.access.check_access(principal)

    async def ask_question(
        self,
        question: str,
        history: list[Message] | None = None,
        principal: Principal | None = None,
    ) -> str:
        """Answer ``question`` for ``principal``, returning the final model text."""
        if not await self.check_access(principal):
            raise AccessDeniedError()
        assert principal is not None

        config = self.load_config()
        if config is None or not config.api_key or not config.provider:
            raise LLMNotConfiguredError()

        snapshot = await load_snapshot(self.library, principal)
        logger.info(
            f"Assistant turn for {principal.user_id}: {len(snapshot.songs)} songs, "
            f"{len(snapshot.playlists)} playlists, {len(snapshot.groups)} groups "
            f"(provider={config.provider}, tools={config.enable_tools})"
        )

        tools = LIBRARY_TOOLS if config.enable_tools else None
        context = ContextBuilder(config.provider, tools_enabled=config.enable_tools).build(
            snapshot, question
        )

        messages: list[Message] = [
            Message(role="system", content=build_system_prompt(context, tools)),
        ]
        recent = list(history or [])[-self.history_window:] if self.history_window > 0 else []
        messages.extend(m.model_copy() for m in recent)
        messages.append(Message(role="user", content=question))

        client = self.client_factory(config)
        try:
            return await self._run_loop(client, messages, principal, tools is not None)
        finally:
            await client.close()

    async def _run_loop(
        self,
        client: ProviderClient,
        messages: list[Message],
        principal: Principal,
        tools_enabled: bool,
    ) -> str:
        executor = ToolExecutor(self.library, principal)
        tools = executor.list_tools() if tools_enabled else None
        last_text = ""

        for iteration in range(1, self.max_iterations + 1):
            response = await client.send(messages, tools)
            if response.text.strip():
                last_text = response.text

            if not response.wants_tools:
                return response.text or EMPTY_RESPONSE

            if iteration == self.max_iterations:
                break

            calls = response.tool_calls
            logger.info(
                f"Iteration {iteration}: executing {len(calls)} tool call(s): "
                f"{', '.join(c.name for c in calls)}"
            )
            results = await asyncio.gather(*(executor.execute(call) for call in calls))
            ordered = match_results(calls, list(results))

            messages.append(Message(
                role="assistant",
                content=response.text,
                tool_calls=calls,
                continuation=response.continuation,
            ))
            for call, result in zip(calls, ordered):
                messages.append(Message.from_tool_result(result, call.name))

        logger.warning(
            f"Reached maximum tool call limit ({self.max_iterations}), returning last response"
        )
        return last_text or LOOP_LIMIT_RESPONSE

    async def search_songs_by_theme(self, theme: str, principal: Principal) -> list[Song]:
        """Songs whose title, artist or lyrics contain ``theme``."""
        songs: list[Song] = await self.library.get_accessible_entities("songs", principal)
        needle = theme.lower()
        return [
            song
            for song in songs
            if needle in (song.lyrics or "").lower()
            or needle in (song.title or "").lower()
            or needle in (song.artist or "").lower()
        ]
