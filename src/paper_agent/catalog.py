from __future__ import annotations

from paper_agent.models import ToolDefinition, ToolParameter

PAPER = "paper"
LIBRARY = "library"
WRITE = "write"
COMPARISON = "comparison"

_ITEM_KEY = ToolParameter(
    type="string",
    description=(
        "Optional. Key of the paper to query (e.g. 'ABC12345'). Defaults to the current paper. "
        "Pass it to target one specific paper when several are selected."
    ),
)

_PAPER_DEFINITIONS = [
    ToolDefinition(
        name="get_paper_section",
        description=(
            "Get the content of one section of a paper. Heading detection works best for English papers "
            "with standard headings (Introduction, Methodology, Results, ...). If the section is not found, "
            "use search_paper_content with relevant keywords instead."
        ),
        category=PAPER,
        parameters={
            "itemKey": _ITEM_KEY,
            "section": ToolParameter(
                type="string",
                description=(
                    "Section to retrieve. Common names: abstract, introduction, related_work, methodology, "
                    "experiments, results, discussion, conclusion, references. Aliases such as 'methods' work too."
                ),
            ),
        },
        required=("section",),
    ),
    ToolDefinition(
        name="search_paper_content",
        description=(
            "Search a paper for passages about a topic. Uses semantic search when available and falls back "
            "to keyword matching, so it also finds content in papers without clear headings."
        ),
        category=PAPER,
        parameters={
            "itemKey": _ITEM_KEY,
            "query": ToolParameter(type="string", description="Keywords or phrase to look for"),
            "max_results": ToolParameter(type="integer", description="Maximum passages to return (default 5)"),
        },
        required=("query",),
    ),
    ToolDefinition(
        name="get_paper_metadata",
        description="Get a paper's title, authors, abstract, keywords and detected structure.",
        category=PAPER,
        parameters={"itemKey": _ITEM_KEY},
    ),
    ToolDefinition(
        name="get_pages",
        description="Get the text of specific pages of a paper.",
        category=PAPER,
        parameters={
            "itemKey": _ITEM_KEY,
            "pages": ToolParameter(
                type="string",
                description='Page range, e.g. "1", "1-5", "1,3,5" or "1-3,7,10-12"',
            ),
        },
        required=("pages",),
    ),
    ToolDefinition(
        name="get_page_count",
        description="Get the number of pages, characters and words in a paper.",
        category=PAPER,
        parameters={"itemKey": _ITEM_KEY},
    ),
    ToolDefinition(
        name="search_with_regex",
        description=(
            "Line-oriented search with optional regex support. Returns every hit with line numbers, "
            "page and surrounding context lines."
        ),
        category=PAPER,
        parameters={
            "itemKey": _ITEM_KEY,
            "pattern": ToolParameter(type="string", description="Plain text, or a regex when use_regex is true"),
            "use_regex": ToolParameter(type="boolean", description="Treat pattern as a regular expression (default false)"),
            "case_sensitive": ToolParameter(type="boolean", description="Match case (default false)"),
            "context_lines": ToolParameter(type="integer", description="Lines of context before and after each hit (default 2)"),
            "max_results": ToolParameter(type="integer", description="Maximum hits to return (default 10)"),
        },
        required=("pattern",),
    ),
    ToolDefinition(
        name="get_outline",
        description="Get the outline of a paper: detected headings with estimated page and length.",
        category=PAPER,
        parameters={"itemKey": _ITEM_KEY},
    ),
    ToolDefinition(
        name="list_sections",
        description="List the detected sections of a paper with ids, lengths and a short preview.",
        category=PAPER,
        parameters={"itemKey": _ITEM_KEY},
    ),
    ToolDefinition(
        name="get_full_text",
        description=(
            "Get the entire text of a paper. This consumes a very large number of tokens; use it only when "
            "get_paper_section, get_pages and search_paper_content cannot answer the question."
        ),
        category=PAPER,
        parameters={
            "itemKey": _ITEM_KEY,
            "confirm": ToolParameter(
                type="boolean",
                description="Must be true to acknowledge the token cost.",
            ),
        },
        required=("confirm",),
    ),
]

_LIBRARY_DEFINITIONS = [
    ToolDefinition(
        name="list_all_items",
        description="List library items page by page, with keys, titles and whether a PDF is attached.",
        category=LIBRARY,
        parameters={
            "page": ToolParameter(type="integer", description="Page number, 1-based (default 1)"),
            "pageSize": ToolParameter(type="integer", description="Items per page, max 50 (default 20)"),
            "hasPdf": ToolParameter(type="boolean", description="Only items with an attachment (default false)"),
        },
    ),
    ToolDefinition(
        name="get_item_metadata",
        description="Get the bibliographic record of a library item by key.",
        category=LIBRARY,
        parameters={"itemKey": ToolParameter(type="string", description="Item key. Required.")},
        required=("itemKey",),
    ),
    ToolDefinition(
        name="get_item_notes",
        description="List the notes attached to an item, with previews.",
        category=LIBRARY,
        parameters={"itemKey": _ITEM_KEY},
    ),
    ToolDefinition(
        name="get_note_content",
        description="Get the full content of a note. Use get_item_notes to discover note keys.",
        category=LIBRARY,
        parameters={"noteKey": ToolParameter(type="string", description="Note key. Required.")},
        required=("noteKey",),
    ),
    ToolDefinition(
        name="search_items",
        description="Search library items by title, author, tag or any field.",
        category=LIBRARY,
        parameters={
            "query": ToolParameter(type="string", description="Keyword or phrase"),
            "field": ToolParameter(
                type="string",
                description="Where to search (default everywhere)",
                enum=("title", "creator", "tag", "everywhere"),
            ),
            "limit": ToolParameter(type="integer", description="Maximum results, max 50 (default 20)"),
        },
        required=("query",),
    ),
    ToolDefinition(
        name="get_tags",
        description="List the tags used in the library, sorted alphabetically.",
        category=LIBRARY,
        parameters={"limit": ToolParameter(type="integer", description="Maximum tags, max 500 (default 100)")},
    ),
    ToolDefinition(
        name="search_by_tag",
        description="Find items carrying one or more tags.",
        category=LIBRARY,
        parameters={
            "tags": ToolParameter(type="string", description="Comma-separated tags"),
            "mode": ToolParameter(
                type="string",
                description="'and' requires every tag, 'or' any of them (default or)",
                enum=("and", "or"),
            ),
            "limit": ToolParameter(type="integer", description="Maximum results, max 100 (default 30)"),
        },
        required=("tags",),
    ),
    ToolDefinition(
        name="search_notes",
        description="Search note contents across the library.",
        category=LIBRARY,
        parameters={
            "query": ToolParameter(type="string", description="Text to find in notes"),
            "limit": ToolParameter(type="integer", description="Maximum notes, max 50 (default 20)"),
        },
        required=("query",),
    ),
]

_WRITE_DEFINITIONS = [
    ToolDefinition(
        name="create_note",
        description="Create a note in the library, optionally attached to an item.",
        category=WRITE,
        parameters={
            "itemKey": _ITEM_KEY,
            "content": ToolParameter(type="string", description="Note content, plain text or HTML"),
            "tags": ToolParameter(type="string", description="Comma-separated tags to add"),
        },
        required=("content",),
    ),
    ToolDefinition(
        name="batch_update_tags",
        description="Add or remove tags on every item matching a search query.",
        category=WRITE,
        parameters={
            "query": ToolParameter(type="string", description="Search query selecting the items"),
            "addTags": ToolParameter(type="string", description="Comma-separated tags to add"),
            "removeTags": ToolParameter(type="string", description="Comma-separated tags to remove"),
            "limit": ToolParameter(type="integer", description="Maximum items to change, max 100 (default 50)"),
        },
        required=("query",),
    ),
]

_COMPARISON_DEFINITIONS = [
    ToolDefinition(
        name="compare_papers",
        description="Put the methodology, results or conclusions of several papers side by side.",
        category=COMPARISON,
        parameters={
            "itemKeys": ToolParameter(
                type="array",
                description="Keys of the papers to compare. Defaults to every selected paper.",
                items={"type": "string"},
            ),
            "aspect": ToolParameter(
                type="string",
                description="Aspect to compare (default all)",
                enum=("methodology", "results", "conclusions", "all"),
            ),
            "section": ToolParameter(type="string", description="Also compare this section, e.g. 'introduction'"),
        },
    ),
    ToolDefinition(
        name="search_across_papers",
        description="Search several papers at once and get the best passages of each.",
        category=COMPARISON,
        parameters={
            "query": ToolParameter(type="string", description="What to look for"),
            "itemKeys": ToolParameter(
                type="array",
                description="Keys of the papers to search. Defaults to every selected paper.",
                items={"type": "string"},
            ),
            "max_results_per_paper": ToolParameter(type="integer", description="Results per paper (default 3, max 10)"),
        },
        required=("query",),
    ),
]

TOOL_DEFINITIONS: dict[str, ToolDefinition] = {
    definition.name: definition
    for definition in (*_PAPER_DEFINITIONS, *_LIBRARY_DEFINITIONS, *_WRITE_DEFINITIONS, *_COMPARISON_DEFINITIONS)
}

# Context the dispatcher binds for each tool; the model only supplies ``args``.
TOOL_BOUND_PARAMS: dict[str, list[str]] = {
    "get_paper_section": ["structure", "args"],
    "search_paper_content": ["structure", "args", "key"],
    "get_paper_metadata": ["structure", "key"],
    "get_pages": ["structure", "args"],
    "get_page_count": ["structure"],
    "search_with_regex": ["structure", "args"],
    "get_outline": ["structure"],
    "list_sections": ["structure"],
    "get_full_text": ["structure", "args"],
    "get_item_notes": ["args", "current_key"],
    "create_note": ["args", "current_key"],
    "compare_papers": ["keys", "load", "args"],
    "search_across_papers": ["keys", "load", "args"],
}

# Short names accepted at dispatch in addition to the wire names.
TOOL_ALIASES: dict[str, str] = {
    "get_section": "get_paper_section",
    "search": "search_paper_content",
    "compare": "compare_papers",
    "search_across": "search_across_papers",
}


def canonical_tool_name(name: str) -> str:
    stripped = name.strip()
    return TOOL_ALIASES.get(stripped, stripped)


def build_tool_catalog(has_current_document: bool, write_enabled: bool, selected_count: int) -> list[ToolDefinition]:
    catalog: list[ToolDefinition] = []
    if has_current_document:
        catalog.extend(_PAPER_DEFINITIONS)
    catalog.extend(_LIBRARY_DEFINITIONS)
    if write_enabled:
        catalog.extend(_WRITE_DEFINITIONS)
    if selected_count > 1:
        catalog.extend(_COMPARISON_DEFINITIONS)
    return catalog
