from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class PaperMetadata:
    title: str | None = None
    authors: tuple[str, ...] = ()
    abstract: str | None = None
    keywords: tuple[str, ...] = ()
    year: int | None = None
    doi: str | None = None


@dataclass(frozen=True)
class Section:
    name: str
    normalized_name: str
    content: str
    start_index: int
    end_index: int


@dataclass(frozen=True)
class PageInfo:
    page_number: int
    start_index: int
    end_index: int
    content: str


@dataclass(frozen=True)
class PaperStructure:
    metadata: PaperMetadata
    sections: tuple[Section, ...]
    full_text: str
    pages: tuple[PageInfo, ...]

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def detected_sections(self) -> tuple[Section, ...]:
        """Sections found by heading detection, without the ``full_text`` fallback."""
        return tuple(s for s in self.sections if s.normalized_name != "full_text")

    def page_for_offset(self, offset: int) -> int:
        page_number = 1
        for page in self.pages:
            if page.start_index > offset:
                break
            page_number = page.page_number
        return page_number

    def section_for_offset(self, offset: int) -> Section | None:
        for section in self.sections:
            if section.start_index <= offset < section.end_index:
                return section
        return None


@dataclass(frozen=True)
class ToolParameter:
    type: str
    description: str
    enum: tuple[str, ...] | None = None
    items: dict[str, str] | None = None

    def as_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.items:
            schema["items"] = dict(self.items)
        return schema


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    category: str  # "paper" | "library" | "write" | "comparison"
    parameters: dict[str, ToolParameter] = field(default_factory=dict)
    required: tuple[str, ...] = ()

    def _json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {name: param.as_schema() for name, param in self.parameters.items()},
        }
        if self.required:
            schema["required"] = list(self.required)
        return schema

    def as_openai(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self._json_schema(),
            },
        }

    def as_anthropic(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "input_schema": self._json_schema()}


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: str = "{}"

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ToolCall":
        """Accept the flat ``{id, name, arguments}`` shape or the OpenAI ``function`` envelope."""
        function = payload.get("function")
        if isinstance(function, dict):
            name = function.get("name", "")
            arguments = function.get("arguments", "{}")
        else:
            name = payload.get("name", "")
            arguments = payload.get("arguments", "{}")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        return cls(id=str(payload.get("id", "")), name=str(name), arguments=arguments)


@dataclass
class ToolResult:
    tool_call_id: str
    content: str

    @property
    def is_error(self) -> bool:
        return self.content.startswith("Error:")


@dataclass(frozen=True)
class SemanticHit:
    text: str
    score: float
    page: int | None = None
    item_key: str | None = None


@dataclass
class LibraryRecord:
    key: str
    title: str = ""
    authors: list[str] = field(default_factory=list)
    year: int | None = None
    doi: str | None = None
    url: str | None = None
    publication: str | None = None
    abstract: str | None = None
    tags: list[str] = field(default_factory=list)
    item_type: str = "journalArticle"
    attachment: str | None = None
    date_added: str | None = None

    @property
    def has_attachment(self) -> bool:
        return bool(self.attachment)


@dataclass
class LibraryNote:
    key: str
    content: str
    parent_key: str | None = None
    tags: list[str] = field(default_factory=list)
