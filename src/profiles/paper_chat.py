from __future__ import annotations

from pathlib import Path

from paper_agent.cache import StructureCache
from paper_agent.collaborators import (
    DisabledSemanticSearch,
    LibraryBackend,
    MetadataResolver,
    SemanticSearch,
    TextSource,
    WriteFlag,
    always,
)
from paper_agent.dispatcher import PaperToolDispatcher
from paper_agent.library import LibraryStore
from paper_agent.models import PaperStructure
from paper_agent.settings import ToolSettings, load_settings
from paper_agent.system_prompt import build_paper_context_prompt
from paper_agent.tooling import ToolRegistry
from paper_tools.compare_tools import ComparePapersTool, SearchAcrossPapersTool
from paper_tools.library_tools import (
    BatchUpdateTagsTool,
    CreateNoteTool,
    GetItemMetadataTool,
    GetItemNotesTool,
    GetNoteContentTool,
    GetTagsTool,
    ListAllItemsTool,
    SearchByTagTool,
    SearchItemsTool,
    SearchNotesTool,
)
from paper_tools.paper_tools import (
    GetFullTextTool,
    GetOutlineTool,
    GetPageCountTool,
    GetPagesTool,
    GetPaperMetadataTool,
    GetPaperSectionTool,
    ListSectionsTool,
    SearchPaperContentTool,
    SearchWithRegexTool,
)
from profiles.base import AgentProfile


def build_paper_tool_registry(
    semantic: SemanticSearch | None = None,
    resolver: MetadataResolver | None = None,
    library: LibraryBackend | None = None,
) -> ToolRegistry:
    semantic = semantic or DisabledSemanticSearch()
    registry = ToolRegistry.of(
        GetPaperSectionTool(),
        SearchPaperContentTool(semantic),
        GetPaperMetadataTool(resolver),
        GetPagesTool(),
        GetPageCountTool(),
        SearchWithRegexTool(),
        GetOutlineTool(),
        ListSectionsTool(),
        GetFullTextTool(),
        ComparePapersTool(),
        SearchAcrossPapersTool(semantic),
    )
    if library is not None:
        for tool in (
            ListAllItemsTool(library),
            GetItemMetadataTool(library),
            GetItemNotesTool(library),
            GetNoteContentTool(library),
            SearchItemsTool(library),
            GetTagsTool(library),
            SearchByTagTool(library),
            SearchNotesTool(library),
            CreateNoteTool(library),
            BatchUpdateTagsTool(library),
        ):
            registry.tools[tool.name] = tool
    return registry


def build_paper_chat_profile(
    settings: ToolSettings | None = None,
    semantic: SemanticSearch | None = None,
    resolver: MetadataResolver | None = None,
    library: LibraryBackend | None = None,
) -> AgentProfile:
    settings = settings or load_settings()
    return AgentProfile(
        name="paper_chat",
        registry=build_paper_tool_registry(semantic=semantic, resolver=resolver, library=library),
        policy=settings.policy,
        settings=settings,
    )


def build_dispatcher(
    settings: ToolSettings | None = None,
    text_source: TextSource | None = None,
    semantic: SemanticSearch | None = None,
    library_path: Path | None = None,
    write_enabled: WriteFlag | None = None,
) -> PaperToolDispatcher:
    """Wire a dispatcher from settings.

    With a library file every collaborator is the file-backed LibraryStore
    unless one is passed in explicitly.
    """
    settings = settings or load_settings()
    path = library_path or settings.library_path
    store = LibraryStore(path) if path is not None else None
    source = text_source or store
    if source is None:
        raise ValueError("A text source or a library file is required")

    profile = build_paper_chat_profile(settings, semantic=semantic, resolver=store, library=store)
    return PaperToolDispatcher(
        profile.registry,
        source,
        policy=profile.policy,
        cache=StructureCache(ttl_seconds=settings.cache_ttl_seconds, capacity=settings.cache_capacity),
        write_enabled=write_enabled or always(settings.write_enabled),
        chars_per_page=settings.chars_per_page,
    )


async def render_system_prompt(dispatcher: PaperToolDispatcher, identity_path: Path | None = None) -> str:
    current: PaperStructure | None = None
    if dispatcher.current_key:
        current = await dispatcher.ensure_structure(dispatcher.current_key)
    selected = {key: await dispatcher.ensure_structure(key) for key in dispatcher.selected_keys}
    return build_paper_context_prompt(
        dispatcher.catalog(),
        current_key=dispatcher.current_key,
        current=current,
        selected=selected,
        identity_path=identity_path,
    )
