from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import asdict
from pathlib import Path
from typing import Any

import yaml
from pypdf import PdfReader

from paper_agent.models import LibraryNote, LibraryRecord

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = {".txt", ".md", ".text"}


def _read_pdf_text(path: Path) -> str:
    reader = PdfReader(str(path))
    return "\f".join((page.extract_text() or "").strip() for page in reader.pages)


def _str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(part).strip() for part in value if str(part).strip()]


def _record_from_row(row: dict[str, Any]) -> LibraryRecord:
    if not row.get("key"):
        raise ValueError(f"Library item without a key: {row!r}")
    year = row.get("year")
    return LibraryRecord(
        key=str(row["key"]),
        title=str(row.get("title") or ""),
        authors=_str_list(row.get("authors")),
        year=int(year) if year not in (None, "") else None,
        doi=row.get("doi"),
        url=row.get("url"),
        publication=row.get("publication"),
        abstract=row.get("abstract"),
        tags=_str_list(row.get("tags")),
        item_type=str(row.get("item_type") or "journalArticle"),
        attachment=row.get("attachment"),
        date_added=str(row["date_added"]) if row.get("date_added") else None,
    )


def _note_from_row(row: dict[str, Any]) -> LibraryNote:
    if not row.get("key"):
        raise ValueError(f"Library note without a key: {row!r}")
    return LibraryNote(
        key=str(row["key"]),
        content=str(row.get("content") or ""),
        parent_key=row.get("parent_key"),
        tags=_str_list(row.get("tags")),
    )


def _compact(row: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in row.items() if value not in (None, [], "")}


class LibraryStore:
    """A YAML file of items and notes.

    Serves as text source (attachments are read from disk), metadata
    resolver and library backend for the dispatcher.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.items: dict[str, LibraryRecord] = {}
        self.notes: dict[str, LibraryNote] = {}
        self.load()

    def load(self) -> None:
        if not self.path.exists():
            self.items, self.notes = {}, {}
            return
        payload = yaml.safe_load(self.path.read_text()) or {}
        if not isinstance(payload, dict):
            raise ValueError(f"Library file must contain a YAML object: {self.path}")
        self.items = {record.key: record for record in map(_record_from_row, payload.get("items") or [])}
        self.notes = {note.key: note for note in map(_note_from_row, payload.get("notes") or [])}

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "items": [_compact(asdict(record)) for record in self.items.values()],
            "notes": [_compact(asdict(note)) for note in self.notes.values()],
        }
        self.path.write_text(yaml.safe_dump(data, sort_keys=False, allow_unicode=True))

    def attachment_path(self, record: LibraryRecord) -> Path | None:
        if not record.attachment:
            return None
        path = Path(record.attachment).expanduser()
        return path if path.is_absolute() else self.path.parent / path

    def _top_level(self, key: str) -> LibraryRecord | None:
        if key in self.items:
            return self.items[key]
        note = self.notes.get(key)
        if note is not None and note.parent_key:
            return self.items.get(note.parent_key)
        return None

    # Text source

    async def get_raw_text(self, key: str) -> str | None:
        record = self._top_level(key)
        if record is None:
            return None
        path = self.attachment_path(record)
        if path is None or not path.exists():
            logger.info("No readable attachment for %s", key)
            return None
        if path.suffix.lower() == ".pdf":
            return await asyncio.to_thread(_read_pdf_text, path)
        if path.suffix.lower() in TEXT_SUFFIXES:
            return await asyncio.to_thread(path.read_text, errors="ignore")
        logger.info("Unsupported attachment type for %s: %s", key, path.suffix)
        return None

    # Metadata resolver

    async def resolve_top_level_record(self, key: str) -> LibraryRecord | None:
        return self._top_level(key)

    # Library backend

    async def list_items(self, page: int, page_size: int, has_pdf: bool) -> tuple[list[LibraryRecord], int]:
        records = [r for r in self.items.values() if r.has_attachment or not has_pdf]
        start = (page - 1) * page_size
        return records[start : start + page_size], len(records)

    async def get_item(self, key: str) -> LibraryRecord | None:
        return self.items.get(key)

    async def get_notes(self, parent_key: str) -> list[LibraryNote]:
        return [note for note in self.notes.values() if note.parent_key == parent_key]

    async def get_note(self, note_key: str) -> LibraryNote | None:
        return self.notes.get(note_key)

    async def search_items(self, query: str, field: str, limit: int) -> list[LibraryRecord]:
        needle = query.strip().lower()
        matches: list[LibraryRecord] = []
        for record in self.items.values():
            if field == "title":
                haystack = [record.title]
            elif field == "creator":
                haystack = record.authors
            elif field == "tag":
                if needle in (tag.lower() for tag in record.tags):
                    matches.append(record)
                continue
            else:
                haystack = [
                    record.title,
                    *record.authors,
                    *record.tags,
                    record.abstract or "",
                    record.publication or "",
                    record.doi or "",
                    str(record.year or ""),
                ]
            if any(needle in value.lower() for value in haystack):
                matches.append(record)
        return matches[:limit]

    async def list_tags(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for record in self.items.values():
            for tag in record.tags:
                counts[tag] = counts.get(tag, 0) + 1
        return counts

    async def items_with_tags(self, tags: list[str], mode: str, limit: int) -> list[LibraryRecord]:
        wanted = {tag.lower() for tag in tags}
        matches = []
        for record in self.items.values():
            have = {tag.lower() for tag in record.tags}
            if (wanted <= have) if mode == "and" else (wanted & have):
                matches.append(record)
        return matches[:limit]

    async def search_notes(self, query: str, limit: int) -> list[LibraryNote]:
        needle = query.strip().lower()
        return [note for note in self.notes.values() if needle in note.content.lower()][:limit]

    async def create_note(self, content: str, parent_key: str | None, tags: list[str]) -> LibraryNote:
        key = uuid.uuid4().hex[:8].upper()
        while key in self.notes:
            key = uuid.uuid4().hex[:8].upper()
        note = LibraryNote(key=key, content=content, parent_key=parent_key, tags=list(tags))
        self.notes[key] = note
        self.save()
        return note

    async def update_tags(self, key: str, add: list[str], remove: list[str]) -> LibraryRecord:
        record = self.items.get(key)
        if record is None:
            raise KeyError(f"Item '{key}' is not in the library")
        removing = {tag.lower() for tag in remove}
        tags = [tag for tag in record.tags if tag.lower() not in removing]
        for tag in add:
            if tag.lower() not in {existing.lower() for existing in tags}:
                tags.append(tag)
        record.tags = tags
        self.save()
        return record
