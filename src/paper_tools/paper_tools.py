from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass

from paper_agent.arguments import (
    GetFullTextArgs,
    GetPagesArgs,
    GetPaperSectionArgs,
    SearchPaperContentArgs,
    SearchWithRegexArgs,
)
from paper_agent.collaborators import MetadataResolver, SemanticSearch
from paper_agent.models import LibraryRecord, PaperStructure, SemanticHit
from paper_tools.page_range import parse_page_range
from paper_tools.paper_parser import normalize_section_name

logger = logging.getLogger(__name__)

MAX_SECTION_CHARS = 8000
MAX_PAGES_CHARS = 15000
MAX_EXCERPT_CHARS = 500
MAX_METADATA_ABSTRACT_CHARS = 2000
MIN_PARAGRAPH_CHARS = 50
RESULT_SEPARATOR = "\n\n---\n\n"

_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class KeywordHit:
    text: str
    score: int
    section: str
    offset: int


def excerpt(text: str, limit: int = MAX_EXCERPT_CHARS) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def _paragraphs(text: str) -> list[tuple[int, str]]:
    spans: list[tuple[int, str]] = []
    start = 0
    for match in _PARAGRAPH_BREAK_RE.finditer(text):
        spans.append((start, text[start : match.start()]))
        start = match.end()
    spans.append((start, text[start:]))
    return spans


def keyword_search(structure: PaperStructure, query: str, max_results: int) -> list[KeywordHit]:
    """Score blank-line separated paragraphs against the query.

    One point per query word found, three more for the exact phrase.
    """
    query_lower = query.lower().strip()
    words = query_lower.split()
    if not words:
        return []

    hits: list[KeywordHit] = []
    for offset, paragraph in _paragraphs(structure.full_text):
        stripped = paragraph.strip()
        if len(stripped) < MIN_PARAGRAPH_CHARS:
            continue
        lowered = stripped.lower()
        score = sum(1 for word in words if word in lowered)
        if query_lower in lowered:
            score += 3
        if score <= 0:
            continue
        section = structure.section_for_offset(offset)
        hits.append(
            KeywordHit(text=stripped, score=score, section=section.name if section else "Unknown", offset=offset)
        )

    hits.sort(key=lambda hit: hit.score, reverse=True)
    return hits[:max_results]


def format_keyword_hits(hits: list[KeywordHit]) -> str:
    return RESULT_SEPARATOR.join(
        f"[Result {index}] (Section: {hit.section})\n{excerpt(hit.text)}" for index, hit in enumerate(hits, start=1)
    )


def format_semantic_hits(hits: list[SemanticHit]) -> str:
    rows = []
    for index, hit in enumerate(hits, start=1):
        page = f" Page {hit.page}" if hit.page else ""
        rows.append(f"[Result {index}] (Score: {hit.score * 100:.1f}%{page})\n{excerpt(hit.text)}")
    return RESULT_SEPARATOR.join(rows)


class GetPaperSectionTool:
    name = "get_paper_section"

    def run(self, structure: PaperStructure, args: GetPaperSectionArgs) -> str:
        requested = normalize_section_name(args.section)
        section = next((s for s in structure.sections if s.normalized_name == requested), None)
        if section is None:
            available = ", ".join(dict.fromkeys(s.normalized_name for s in structure.sections))
            return f'Section "{args.section}" not found. Available sections: {available}'

        content = section.content
        if len(content) > MAX_SECTION_CHARS:
            return (
                f"[Section: {section.name}]\n\n{content[:MAX_SECTION_CHARS]}...\n\n"
                f"[truncated, total length {len(content)}]"
            )
        return f"[Section: {section.name}]\n\n{content}"


class SearchPaperContentTool:
    name = "search_paper_content"

    def __init__(self, semantic: SemanticSearch) -> None:
        self.semantic = semantic

    async def _semantic_hits(self, structure: PaperStructure, key: str, query: str, top_k: int) -> list[SemanticHit]:
        try:
            if not await self.semantic.is_available():
                return []
            if not await self.semantic.is_indexed(key):
                logger.info("Indexing %s for semantic search", key)
                await self.semantic.index_document(key, structure.full_text)
            return list(await self.semantic.search(query, key, top_k))
        except Exception as exc:
            logger.warning("Semantic search failed for %s, using keyword search: %s", key, exc)
            return []

    async def run(self, structure: PaperStructure, args: SearchPaperContentArgs, key: str) -> str:
        semantic_hits = await self._semantic_hits(structure, key, args.query, args.max_results)
        if semantic_hits:
            semantic_hits = semantic_hits[: args.max_results]
            return (
                f'Found {len(semantic_hits)} semantically relevant passages for "{args.query}":\n\n'
                f"{format_semantic_hits(semantic_hits)}"
            )

        hits = keyword_search(structure, args.query, args.max_results)
        if not hits:
            return f'No results found for query: "{args.query}"'
        return f'Found {len(hits)} relevant passages for "{args.query}":\n\n{format_keyword_hits(hits)}'


class GetPaperMetadataTool:
    name = "get_paper_metadata"

    def __init__(self, resolver: MetadataResolver | None = None) -> None:
        self.resolver = resolver

    async def _record(self, key: str) -> LibraryRecord | None:
        if self.resolver is None:
            return None
        try:
            return await self.resolver.resolve_top_level_record(key)
        except Exception as exc:
            logger.warning("Metadata lookup failed for %s: %s", key, exc)
            return None

    async def run(self, structure: PaperStructure, key: str) -> str:
        record = await self._record(key)
        parts: list[str] = []
        if record is not None:
            parts.append(f"Item Key: {record.key}")
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
            parts.append(f"Pages: {structure.page_count}")
            if record.abstract:
                parts.append(f"\nAbstract:\n{excerpt(record.abstract, MAX_METADATA_ABSTRACT_CHARS)}")
            if record.tags:
                parts.append(f"\nTags: {', '.join(record.tags)}")
        else:
            metadata = structure.metadata
            if metadata.title:
                parts.append(f"Title: {metadata.title}")
            if metadata.authors:
                parts.append(f"Authors: {', '.join(metadata.authors)}")
            if metadata.year:
                parts.append(f"Year: {metadata.year}")
            if metadata.doi:
                parts.append(f"DOI: {metadata.doi}")
            parts.append(f"Pages: {structure.page_count}")
            if metadata.abstract:
                parts.append(f"\nAbstract:\n{metadata.abstract}")
            if metadata.keywords:
                parts.append(f"\nKeywords: {', '.join(metadata.keywords)}")

        section_list = "\n".join(f"  - {s.name} ({len(s.content)} chars)" for s in structure.detected_sections)
        if section_list:
            parts.append(f"\nPaper Structure:\n{section_list}")
        return "\n".join(parts)


class GetPagesTool:
    name = "get_pages"

    def run(self, structure: PaperStructure, args: GetPagesArgs) -> str:
        requested = parse_page_range(args.pages, structure.page_count)
        if not requested:
            return f'Error: Invalid page range "{args.pages}". Paper has {structure.page_count} pages.'

        by_number = {page.page_number: page for page in structure.pages}
        blocks: list[str] = []
        used = 0
        for number in requested:
            content = by_number[number].content
            if used + len(content) > MAX_PAGES_CHARS:
                blocks.append(
                    f"\n[Page {number}] (truncated due to length limit)\n{content[: MAX_PAGES_CHARS - used]}..."
                )
                blocks.append(
                    f"\n[Output truncated. Requested {len(requested)} pages, showing content up to page {number}]"
                )
                break
            blocks.append(f"\n[Page {number}]\n{content}")
            used += len(content)

        listed = ", ".join(str(number) for number in requested)
        body = "\n\n---".join(blocks)
        return f"Content from pages {listed} (total {structure.page_count} pages):\n{body}"


class GetPageCountTool:
    name = "get_page_count"

    def run(self, structure: PaperStructure) -> str:
        text = structure.full_text
        return f"Page count: {structure.page_count}\nCharacter count: {len(text)}\nEstimated word count: {len(text.split())}"


class SearchWithRegexTool:
    name = "search_with_regex"

    def run(self, structure: PaperStructure, args: SearchWithRegexArgs) -> str:
        flags = 0 if args.case_sensitive else re.IGNORECASE
        source = args.pattern if args.use_regex else re.escape(args.pattern)
        try:
            regex = re.compile(source, flags)
        except re.error as exc:
            return f'Error: Invalid regex pattern "{args.pattern}": {exc}'

        lines = structure.full_text.split("\n")
        matches: list[str] = []
        offset = 0
        for index, line in enumerate(lines):
            if regex.search(line):
                first = max(0, index - args.context_lines)
                last = min(len(lines) - 1, index + args.context_lines)
                context = "\n".join(
                    f"{'>>> ' if number == index else '    '}{number + 1}: {lines[number]}"
                    for number in range(first, last + 1)
                )
                page = structure.page_for_offset(offset)
                matches.append(f"[Match {len(matches) + 1}] Line {index + 1}, Page {page}\n{context}")
                if len(matches) >= args.max_results:
                    break
            offset += len(line) + 1

        if not matches:
            return f'No matches found for pattern: "{args.pattern}"'
        return f'Found {len(matches)} matches for "{args.pattern}":\n\n{RESULT_SEPARATOR.join(matches)}'


class GetOutlineTool:
    name = "get_outline"

    def run(self, structure: PaperStructure) -> str:
        sections = structure.detected_sections
        if not sections:
            return "No structured outline detected. The paper may not have clear section headings."
        rows = [
            f"{index}. {s.name} (Page ~{structure.page_for_offset(s.start_index)}, {len(s.content)} chars)"
            for index, s in enumerate(sections, start=1)
        ]
        return f"Document Outline ({structure.page_count} pages total):\n\n" + "\n".join(rows)


class ListSectionsTool:
    name = "list_sections"

    def run(self, structure: PaperStructure) -> str:
        sections = structure.detected_sections
        if not sections:
            return "No sections detected. Use search_paper_content or get_pages to read the paper."
        rows = []
        for index, s in enumerate(sections, start=1):
            preview = s.content[:100].replace("\n", " ")
            rows.append(
                f"{index}. {s.name}\n   ID: {s.normalized_name}\n   Length: {len(s.content)} chars\n   Preview: {preview}..."
            )
        return f"Available sections ({len(sections)} total):\n\n" + "\n\n".join(rows)


class GetFullTextTool:
    name = "get_full_text"

    def run(self, structure: PaperStructure, args: GetFullTextArgs) -> str:
        if not args.confirm:
            return (
                "Error: You must set confirm=true to use this tool. It returns the entire paper and consumes "
                "many tokens. Try get_paper_section, get_pages or search_paper_content first."
            )
        text = structure.full_text
        tokens = math.ceil(len(text) / 4)
        header = (
            f"[WARNING: Full text retrieved - approximately {tokens} tokens]\n"
            f"[Paper: {structure.page_count} pages, {len(text)} characters]\n\n---\n\n"
        )
        return header + text
