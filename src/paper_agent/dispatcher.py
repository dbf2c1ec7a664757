from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any

from paper_agent.arguments import ToolArgumentError, parse_arguments
from paper_agent.cache import StructureCache
from paper_agent.catalog import (
    COMPARISON,
    PAPER,
    TOOL_BOUND_PARAMS,
    TOOL_DEFINITIONS,
    WRITE,
    build_tool_catalog,
    canonical_tool_name,
)
from paper_agent.collaborators import TextSource, WriteFlag, always
from paper_agent.models import PaperStructure, ToolCall, ToolDefinition, ToolResult
from paper_agent.tooling import ToolPolicy, ToolRegistry
from paper_tools.paper_parser import ESTIMATED_CHARS_PER_PAGE, parse_structure

logger = logging.getLogger(__name__)

WRITE_DISABLED_MESSAGE = (
    "Error: AI write operations are disabled. Enable write access in the settings to let the assistant "
    "create notes or change tags."
)
NO_TARGET_MESSAGE = "Error: No paper content available. Open a paper or pass itemKey to choose one."


class PaperToolDispatcher:
    """Routes tool calls to handlers.

    Owns the structure cache and the selection state (current paper and
    selected papers). Every failure comes back as an ``Error:`` string.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        text_source: TextSource,
        *,
        policy: ToolPolicy | None = None,
        cache: StructureCache | None = None,
        write_enabled: WriteFlag | None = None,
        chars_per_page: int = ESTIMATED_CHARS_PER_PAGE,
    ) -> None:
        self.registry = registry
        self.text_source = text_source
        self.policy = policy or ToolPolicy()
        self.cache = cache or StructureCache()
        self.write_enabled = write_enabled or always(False)
        self.chars_per_page = chars_per_page
        self.current_key: str | None = None
        self.selected_keys: list[str] = []
        self._inflight: dict[str, asyncio.Task[PaperStructure | None]] = {}

    def set_current(self, key: str | None) -> None:
        self.current_key = key or None

    def select(self, keys: list[str]) -> None:
        self.selected_keys = list(dict.fromkeys(key for key in keys if key))

    async def _extract_and_parse(self, key: str) -> PaperStructure | None:
        try:
            text = await self.text_source.get_raw_text(key)
        except Exception as exc:
            logger.warning("Text extraction failed for %s: %s", key, exc)
            return None
        if not text or not text.strip():
            logger.info("No extractable text for %s", key)
            return None
        structure = parse_structure(text, self.chars_per_page)
        self.cache.put(key, structure)
        logger.debug("Cached structure for %s (%d pages)", key, structure.page_count)
        return structure

    def _forget(self, key: str, task: asyncio.Task[PaperStructure | None]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def ensure_structure(self, key: str) -> PaperStructure | None:
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._extract_and_parse(key))
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        # A cancelled caller must not cancel the shared population.
        return await asyncio.shield(task)

    def catalog(self) -> list[ToolDefinition]:
        definitions = build_tool_catalog(
            has_current_document=self.current_key is not None,
            write_enabled=self.write_enabled(),
            selected_count=len(self.selected_keys),
        )
        return [d for d in self.policy.filter(definitions) if d.name in self.registry]

    def list_tools(self, fmt: str = "openai") -> list[dict[str, Any]]:
        if fmt not in {"openai", "anthropic"}:
            raise ValueError(f"Unknown tool format: {fmt}")
        return [d.as_openai() if fmt == "openai" else d.as_anthropic() for d in self.catalog()]

    async def _bind(self, definition: ToolDefinition, args: Any) -> dict[str, Any] | str:
        bound = TOOL_BOUND_PARAMS.get(definition.name, ["args"])
        kwargs: dict[str, Any] = {}
        if "args" in bound:
            kwargs["args"] = args
        if "current_key" in bound:
            kwargs["current_key"] = self.current_key

        if definition.category == PAPER:
            key = args.item_key or self.current_key
            if not key:
                return NO_TARGET_MESSAGE
            structure = await self.ensure_structure(key)
            if structure is None:
                return (
                    f'Error: Could not extract PDF content for item "{key}". '
                    "The item may have no PDF attachment or its text could not be read."
                )
            if "structure" in bound:
                kwargs["structure"] = structure
            if "key" in bound:
                kwargs["key"] = key

        if definition.category == COMPARISON:
            kwargs["keys"] = list(args.item_keys) or list(self.selected_keys)
            kwargs["load"] = self.ensure_structure
        return kwargs

    async def _dispatch(self, call: ToolCall) -> str:
        name = canonical_tool_name(call.name)
        definition = TOOL_DEFINITIONS.get(name)
        if definition is None or name not in self.registry:
            return f"Error: Unknown tool: {call.name}"

        try:
            self.policy.check(name)
        except PermissionError as exc:
            return f"Error: {exc}"
        if definition.category == WRITE and not self.write_enabled():
            return WRITE_DISABLED_MESSAGE

        try:
            args = parse_arguments(definition, call.arguments)
        except ToolArgumentError as exc:
            return str(exc)

        kwargs = await self._bind(definition, args)
        if isinstance(kwargs, str):
            return kwargs

        tool = self.registry.resolve(name)
        logger.debug("Running %s", name)
        result = tool.run(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return str(result)

    async def dispatch(self, call: ToolCall | dict[str, Any]) -> str:
        if isinstance(call, dict):
            call = ToolCall.from_payload(call)
        try:
            return await self._dispatch(call)
        except Exception as exc:
            logger.exception("Tool %s failed", call.name)
            return f"Error: {call.name} failed: {exc}"

    async def dispatch_many(self, calls: list[ToolCall | dict[str, Any]]) -> list[ToolResult]:
        results: list[ToolResult] = []
        for call in calls:
            if isinstance(call, dict):
                call = ToolCall.from_payload(call)
            results.append(ToolResult(tool_call_id=call.id, content=await self.dispatch(call)))
        return results

    def invalidate(self, key: str) -> None:
        self.cache.invalidate(key)

    async def close(self) -> None:
        self.cache.clear()
        self.selected_keys = []
        self.current_key = None
