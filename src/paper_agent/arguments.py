from __future__ import annotations

import json
import logging
from dataclasses import MISSING, dataclass, field, fields
from typing import Any, ClassVar

from paper_agent.models import ToolDefinition, ToolParameter

logger = logging.getLogger(__name__)


class ToolArgumentError(ValueError):
    def __init__(self, tool_name: str, detail: str) -> None:
        super().__init__(f"Error: Invalid arguments for {tool_name}: {detail}")
        self.tool_name = tool_name
        self.detail = detail


def _wire(name: str, default: Any = None, **limits: int) -> Any:
    return field(default=default, metadata={"wire": name, **limits})


def _limited(default: int, low: int = 1, high: int | None = None) -> Any:
    limits = {"min": low}
    if high is not None:
        limits["max"] = high
    return field(default=default, metadata=limits)


@dataclass(frozen=True)
class GetPaperSectionArgs:
    tool: ClassVar[str] = "get_paper_section"
    section: str
    item_key: str | None = _wire("itemKey")


@dataclass(frozen=True)
class SearchPaperContentArgs:
    tool: ClassVar[str] = "search_paper_content"
    query: str
    max_results: int = _limited(5, high=50)
    item_key: str | None = _wire("itemKey")


@dataclass(frozen=True)
class GetPaperMetadataArgs:
    tool: ClassVar[str] = "get_paper_metadata"
    item_key: str | None = _wire("itemKey")


@dataclass(frozen=True)
class GetPagesArgs:
    tool: ClassVar[str] = "get_pages"
    pages: str
    item_key: str | None = _wire("itemKey")


@dataclass(frozen=True)
class GetPageCountArgs:
    tool: ClassVar[str] = "get_page_count"
    item_key: str | None = _wire("itemKey")


@dataclass(frozen=True)
class SearchWithRegexArgs:
    tool: ClassVar[str] = "search_with_regex"
    pattern: str
    use_regex: bool = False
    case_sensitive: bool = False
    context_lines: int = _limited(2, low=0, high=20)
    max_results: int = _limited(10, high=100)
    item_key: str | None = _wire("itemKey")


@dataclass(frozen=True)
class GetOutlineArgs:
    tool: ClassVar[str] = "get_outline"
    item_key: str | None = _wire("itemKey")


@dataclass(frozen=True)
class ListSectionsArgs:
    tool: ClassVar[str] = "list_sections"
    item_key: str | None = _wire("itemKey")


@dataclass(frozen=True)
class GetFullTextArgs:
    tool: ClassVar[str] = "get_full_text"
    confirm: bool = False
    item_key: str | None = _wire("itemKey")


@dataclass(frozen=True)
class ComparePapersArgs:
    tool: ClassVar[str] = "compare_papers"
    item_keys: tuple[str, ...] = _wire("itemKeys", default=())
    aspect: str = "all"
    section: str | None = None


@dataclass(frozen=True)
class SearchAcrossPapersArgs:
    tool: ClassVar[str] = "search_across_papers"
    query: str
    item_keys: tuple[str, ...] = _wire("itemKeys", default=())
    max_results_per_paper: int = _limited(3, high=10)


@dataclass(frozen=True)
class ListAllItemsArgs:
    tool: ClassVar[str] = "list_all_items"
    page: int = _limited(1)
    page_size: int = _wire("pageSize", default=20, min=1, max=50)
    has_pdf: bool = _wire("hasPdf", default=False)


@dataclass(frozen=True)
class GetItemMetadataArgs:
    tool: ClassVar[str] = "get_item_metadata"
    item_key: str = _wire("itemKey", default="")


@dataclass(frozen=True)
class GetItemNotesArgs:
    tool: ClassVar[str] = "get_item_notes"
    item_key: str | None = _wire("itemKey")


@dataclass(frozen=True)
class GetNoteContentArgs:
    tool: ClassVar[str] = "get_note_content"
    note_key: str = _wire("noteKey", default="")


@dataclass(frozen=True)
class SearchItemsArgs:
    tool: ClassVar[str] = "search_items"
    query: str
    field: str = "everywhere"
    limit: int = _limited(20, high=50)


@dataclass(frozen=True)
class GetTagsArgs:
    tool: ClassVar[str] = "get_tags"
    limit: int = _limited(100, high=500)


@dataclass(frozen=True)
class SearchByTagArgs:
    tool: ClassVar[str] = "search_by_tag"
    tags: str
    mode: str = "or"
    limit: int = _limited(30, high=100)


@dataclass(frozen=True)
class SearchNotesArgs:
    tool: ClassVar[str] = "search_notes"
    query: str
    limit: int = _limited(20, high=50)


@dataclass(frozen=True)
class CreateNoteArgs:
    tool: ClassVar[str] = "create_note"
    content: str
    item_key: str | None = _wire("itemKey")
    tags: str | None = None


@dataclass(frozen=True)
class BatchUpdateTagsArgs:
    tool: ClassVar[str] = "batch_update_tags"
    query: str
    add_tags: str | None = _wire("addTags")
    remove_tags: str | None = _wire("removeTags")
    limit: int = _limited(50, high=100)


ARGUMENT_TYPES: dict[str, type] = {
    cls.tool: cls
    for cls in (
        GetPaperSectionArgs,
        SearchPaperContentArgs,
        GetPaperMetadataArgs,
        GetPagesArgs,
        GetPageCountArgs,
        SearchWithRegexArgs,
        GetOutlineArgs,
        ListSectionsArgs,
        GetFullTextArgs,
        ComparePapersArgs,
        SearchAcrossPapersArgs,
        ListAllItemsArgs,
        GetItemMetadataArgs,
        GetItemNotesArgs,
        GetNoteContentArgs,
        SearchItemsArgs,
        GetTagsArgs,
        SearchByTagArgs,
        SearchNotesArgs,
        CreateNoteArgs,
        BatchUpdateTagsArgs,
    )
}


def _decode(tool_name: str, raw: str | dict[str, Any] | None) -> dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    if not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ToolArgumentError(tool_name, f"arguments are not valid JSON ({exc.msg})") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ToolArgumentError(tool_name, "arguments must be a JSON object")
    return payload


def _check_value(tool_name: str, name: str, param: ToolParameter, value: Any) -> Any:
    kind = param.type
    if kind == "string":
        if not isinstance(value, str):
            raise ToolArgumentError(tool_name, f"'{name}' must be a string")
        value = value.strip()
    elif kind == "integer":
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ToolArgumentError(tool_name, f"'{name}' must be an integer")
    elif kind == "number":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ToolArgumentError(tool_name, f"'{name}' must be a number")
    elif kind == "boolean":
        if not isinstance(value, bool):
            raise ToolArgumentError(tool_name, f"'{name}' must be a boolean")
    elif kind == "array":
        if not isinstance(value, list):
            raise ToolArgumentError(tool_name, f"'{name}' must be an array")
        if (param.items or {}).get("type") == "string":
            if not all(isinstance(item, str) for item in value):
                raise ToolArgumentError(tool_name, f"'{name}' must be an array of strings")
            value = tuple(item.strip() for item in value if item.strip())
        else:
            value = tuple(value)
    if param.enum and value not in param.enum:
        allowed = ", ".join(param.enum)
        raise ToolArgumentError(tool_name, f"'{name}' must be one of: {allowed}")
    return value


def _clamp(value: Any, metadata: Any) -> Any:
    if not isinstance(value, int) or isinstance(value, bool):
        return value
    if "min" in metadata:
        value = max(metadata["min"], value)
    if "max" in metadata:
        value = min(metadata["max"], value)
    return value


def parse_arguments(definition: ToolDefinition, raw: str | dict[str, Any] | None) -> Any:
    """Validate a call's JSON arguments and build the tool's argument dataclass.

    Raises ToolArgumentError on anything the definition rejects.
    """
    tool_name = definition.name
    payload = _decode(tool_name, raw)

    checked: dict[str, Any] = {}
    for name, param in definition.parameters.items():
        value = payload.get(name)
        if value is None:
            continue
        value = _check_value(tool_name, name, param, value)
        if value == "":
            if name in definition.required:
                raise ToolArgumentError(tool_name, f"'{name}' must not be empty")
            continue
        checked[name] = value

    for name in definition.required:
        if name not in checked:
            raise ToolArgumentError(tool_name, f"missing required parameter '{name}'")

    ignored = sorted(set(payload) - set(definition.parameters))
    if ignored:
        logger.debug("Ignoring unknown arguments for %s: %s", tool_name, ", ".join(ignored))

    cls = ARGUMENT_TYPES[tool_name]
    values: dict[str, Any] = {}
    for entry in fields(cls):
        wire_name = entry.metadata.get("wire", entry.name)
        if wire_name in checked:
            values[entry.name] = _clamp(checked[wire_name], entry.metadata)
        elif entry.default is MISSING and entry.default_factory is MISSING:
            raise ToolArgumentError(tool_name, f"missing required parameter '{wire_name}'")
    return cls(**values)
