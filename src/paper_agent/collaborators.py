from __future__ import annotations

from typing import Callable, Protocol

from paper_agent.models import LibraryNote, LibraryRecord, SemanticHit

WriteFlag = Callable[[], bool]


class TextSource(Protocol):
    async def get_raw_text(self, key: str) -> str | None:
        ...


class SemanticSearch(Protocol):
    """Embedding-backed passage retrieval. Any failure counts as "no results"."""

    async def is_available(self) -> bool:
        ...

    async def is_indexed(self, key: str) -> bool:
        ...

    async def index_document(self, key: str, text: str) -> None:
        ...

    async def search(self, query: str, key: str, top_k: int) -> list[SemanticHit]:
        ...

    async def search_across(self, query: str, keys: list[str], top_k: int) -> list[SemanticHit]:
        ...


class MetadataResolver(Protocol):
    async def resolve_top_level_record(self, key: str) -> LibraryRecord | None:
        ...


class LibraryBackend(Protocol):
    async def list_items(self, page: int, page_size: int, has_pdf: bool) -> tuple[list[LibraryRecord], int]:
        ...

    async def get_item(self, key: str) -> LibraryRecord | None:
        ...

    async def get_notes(self, parent_key: str) -> list[LibraryNote]:
        ...

    async def get_note(self, note_key: str) -> LibraryNote | None:
        ...

    async def search_items(self, query: str, field: str, limit: int) -> list[LibraryRecord]:
        ...

    async def list_tags(self) -> dict[str, int]:
        ...

    async def items_with_tags(self, tags: list[str], mode: str, limit: int) -> list[LibraryRecord]:
        ...

    async def search_notes(self, query: str, limit: int) -> list[LibraryNote]:
        ...

    async def create_note(self, content: str, parent_key: str | None, tags: list[str]) -> LibraryNote:
        ...

    async def update_tags(self, key: str, add: list[str], remove: list[str]) -> LibraryRecord:
        ...


class DisabledSemanticSearch:
    async def is_available(self) -> bool:
        return False

    async def is_indexed(self, key: str) -> bool:
        return False

    async def index_document(self, key: str, text: str) -> None:
        return None

    async def search(self, query: str, key: str, top_k: int) -> list[SemanticHit]:
        return []

    async def search_across(self, query: str, keys: list[str], top_k: int) -> list[SemanticHit]:
        return []


def always(value: bool) -> WriteFlag:
    def flag() -> bool:
        return value

    return flag
