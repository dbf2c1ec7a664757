from __future__ import annotations

import math
import re

from paper_agent.arguments import (
    BatchUpdateTagsArgs,
    CreateNoteArgs,
    GetItemMetadataArgs,
    GetItemNotesArgs,
    GetNoteContentArgs,
    GetTagsArgs,
    ListAllItemsArgs,
    SearchByTagArgs,
    SearchItemsArgs,
    SearchNotesArgs,
)
from paper_agent.collaborators import LibraryBackend
from paper_agent.models import LibraryNote, LibraryRecord

MAX_ITEM_ABSTRACT_CHARS = 1500
NOTE_PREVIEW_CHARS = 100

_TAG_RE = re.compile(r"<[^>]+>")


def split_tags(value: str | None) -> list[str]:
    if not value:
        return []
    return list(dict.fromkeys(tag.strip() for tag in value.split(",") if tag.strip()))


def note_text(note: LibraryNote) -> str:
    return re.sub(r"\s+", " ", _TAG_RE.sub(" ", note.content)).strip()


def _preview(note: LibraryNote) -> str:
    text = note_text(note)
    return text[:NOTE_PREVIEW_CHARS] + "..." if len(text) > NOTE_PREVIEW_CHARS else text


def _item_line(index: int, record: LibraryRecord, with_author: bool = False) -> str:
    year = record.year or "n.d."
    title = record.title or "(untitled)"
    if with_author and record.authors:
        return f"{index}. [{record.key}] {title} ({record.authors[0]}, {year}) - {record.item_type}"
    return f"{index}. [{record.key}] {title} ({year}) - {record.item_type}"


class ListAllItemsTool:
    name = "list_all_items"

    def __init__(self, backend: LibraryBackend) -> None:
        self.backend = backend

    async def run(self, args: ListAllItemsArgs) -> str:
        records, total = await self.backend.list_items(args.page, args.page_size, args.has_pdf)
        total_pages = max(1, math.ceil(total / args.page_size))
        if not records:
            return f"No items found. Page {args.page} of {total_pages} (total: {total} items)"

        offset = (args.page - 1) * args.page_size
        rows = [
            _item_line(offset + index, record) + (" [PDF]" if record.has_attachment else "")
            for index, record in enumerate(records, start=1)
        ]
        return f"Library items - page {args.page} of {total_pages} (total: {total} items):\n\n" + "\n".join(rows)


class GetItemMetadataTool:
    name = "get_item_metadata"

    def __init__(self, backend: LibraryBackend) -> None:
        self.backend = backend

    async def run(self, args: GetItemMetadataArgs) -> str:
        record = await self.backend.get_item(args.item_key)
        if record is None:
            return f'Error: Item with key "{args.item_key}" not found.'

        parts = [f"Item Key: {record.key}", f"Item Type: {record.item_type}"]
        if record.title:
            parts.append(f"Title: {record.title}")
        if record.authors:
            parts.append(f"Authors: {', '.join(record.authors)}")
        if record.year:
            parts.append(f"Year: {record.year}")
        if record.doi:
            parts.append(f"DOI: {record.doi}")
        if record.url:
            parts.append(f"URL: {record.url}")
        if record.publication:
            parts.append(f"Publication: {record.publication}")
        if record.date_added:
            parts.append(f"Date Added: {record.date_added}")
        if record.abstract:
            abstract = record.abstract
            if len(abstract) > MAX_ITEM_ABSTRACT_CHARS:
                abstract = abstract[:MAX_ITEM_ABSTRACT_CHARS] + "..."
            parts.append(f"\nAbstract:\n{abstract}")
        if record.tags:
            parts.append(f"\nTags: {', '.join(record.tags)}")
        if record.attachment:
            parts.append(f"\nAttachment: {record.attachment}")
        notes = await self.backend.get_notes(record.key)
        if notes:
            parts.append(f"\nNotes: {len(notes)} note(s) available")
        return "\n".join(parts)


class GetItemNotesTool:
    name = "get_item_notes"

    def __init__(self, backend: LibraryBackend) -> None:
        self.backend = backend

    async def run(self, args: GetItemNotesArgs, current_key: str | None = None) -> str:
        target = args.item_key or current_key
        if not target:
            return "Error: No item specified. Provide an itemKey or open a paper first."
        record = await self.backend.get_item(target)
        if record is None:
            return f'Error: Item with key "{target}" not found.'

        notes = await self.backend.get_notes(target)
        if not notes:
            return f'No notes found for item "{target}".'
        rows = [f"{index}. [{note.key}]\n   Preview: {_preview(note)}" for index, note in enumerate(notes, start=1)]
        title = record.title or target
        return f'Notes for "{title}" ({len(notes)} notes):\n\n' + "\n\n".join(rows)


class GetNoteContentTool:
    name = "get_note_content"

    def __init__(self, backend: LibraryBackend) -> None:
        self.backend = backend

    async def run(self, args: GetNoteContentArgs) -> str:
        note = await self.backend.get_note(args.note_key)
        if note is None:
            return f'Error: Note with key "{args.note_key}" not found.'
        text = note_text(note)
        if not text:
            return f'Note "{note.key}" is empty.'
        parent = f" (item: {note.parent_key})" if note.parent_key else ""
        tags = f"\nTags: {', '.join(note.tags)}" if note.tags else ""
        return f"Note: {note.key}{parent}{tags}\n\n---\n\n{text}"


class SearchItemsTool:
    name = "search_items"

    def __init__(self, backend: LibraryBackend) -> None:
        self.backend = backend

    async def run(self, args: SearchItemsArgs) -> str:
        records = await self.backend.search_items(args.query, args.field, args.limit)
        if not records:
            scope = f' in field "{args.field}"' if args.field != "everywhere" else ""
            return f'No items found for query "{args.query}"{scope}.'
        rows = [_item_line(index, record, with_author=True) for index, record in enumerate(records, start=1)]
        return f'Found {len(records)} item(s) for "{args.query}":\n\n' + "\n".join(rows)


class GetTagsTool:
    name = "get_tags"

    def __init__(self, backend: LibraryBackend) -> None:
        self.backend = backend

    async def run(self, args: GetTagsArgs) -> str:
        counts = await self.backend.list_tags()
        if not counts:
            return "No tags found in the library."
        names = sorted(counts, key=str.lower)
        shown = names[: args.limit]
        rows = [f"- {name} ({counts[name]})" for name in shown]
        return f"Tags in library (showing {len(shown)} of {len(names)}):\n\n" + "\n".join(rows)


class SearchByTagTool:
    name = "search_by_tag"

    def __init__(self, backend: LibraryBackend) -> None:
        self.backend = backend

    async def run(self, args: SearchByTagArgs) -> str:
        tags = split_tags(args.tags)
        if not tags:
            return "Error: At least one tag is required."
        records = await self.backend.items_with_tags(tags, args.mode, args.limit)
        if not records:
            return f"No items found with tag(s): {', '.join(tags)} (mode: {args.mode.upper()})"
        rows = [
            f"{_item_line(index, record)}\n   Tags: {', '.join(record.tags)}"
            for index, record in enumerate(records, start=1)
        ]
        return f"Found {len(records)} item(s) with tag(s) {', '.join(tags)} (mode: {args.mode.upper()}):\n\n" + "\n".join(rows)


class SearchNotesTool:
    name = "search_notes"

    def __init__(self, backend: LibraryBackend) -> None:
        self.backend = backend

    async def run(self, args: SearchNotesArgs) -> str:
        notes = await self.backend.search_notes(args.query, args.limit)
        if not notes:
            return f'No notes found containing "{args.query}".'
        rows = []
        for index, note in enumerate(notes, start=1):
            parent = f" (item: {note.parent_key})" if note.parent_key else ""
            rows.append(f'{index}. [{note.key}]{parent}\n   "{_preview(note)}"')
        return f'Found {len(notes)} note(s) containing "{args.query}":\n\n' + "\n\n".join(rows)


class CreateNoteTool:
    name = "create_note"

    def __init__(self, backend: LibraryBackend) -> None:
        self.backend = backend

    async def run(self, args: CreateNoteArgs, current_key: str | None = None) -> str:
        parent = args.item_key or current_key
        if parent and await self.backend.get_item(parent) is None:
            return f'Error: Item with key "{parent}" not found.'
        tags = split_tags(args.tags)
        note = await self.backend.create_note(args.content, parent, tags)
        lines = ["Note created successfully!", f"Note key: {note.key}"]
        if note.parent_key:
            lines.append(f"Attached to: {note.parent_key}")
        if tags:
            lines.append(f"Tags: {', '.join(tags)}")
        return "\n".join(lines)


class BatchUpdateTagsTool:
    name = "batch_update_tags"

    def __init__(self, backend: LibraryBackend) -> None:
        self.backend = backend

    async def run(self, args: BatchUpdateTagsArgs) -> str:
        to_add = split_tags(args.add_tags)
        to_remove = split_tags(args.remove_tags)
        if not to_add and not to_remove:
            return "Error: At least one of addTags or removeTags is required."

        records = await self.backend.search_items(args.query, "everywhere", args.limit)
        if not records:
            return f'No items found matching query "{args.query}".'

        added = removed = 0
        for record in records:
            before = set(record.tags)
            updated = await self.backend.update_tags(record.key, to_add, to_remove)
            after = set(updated.tags)
            added += len(after - before)
            removed += len(before - after)

        lines = ["Batch tag update completed!", f"Items affected: {len(records)}"]
        if to_add:
            lines.append(f"Added tags [{', '.join(to_add)}]: {added} additions")
        if to_remove:
            lines.append(f"Removed tags [{', '.join(to_remove)}]: {removed} removals")
        return "\n".join(lines)
