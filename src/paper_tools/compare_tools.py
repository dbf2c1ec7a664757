from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from paper_agent.arguments import ComparePapersArgs, SearchAcrossPapersArgs
from paper_agent.collaborators import SemanticSearch
from paper_agent.models import PaperStructure, SemanticHit
from paper_tools.paper_tools import excerpt, keyword_search

logger = logging.getLogger(__name__)

StructureLoader = Callable[[str], Awaitable[PaperStructure | None]]

MAX_COMPARE_SECTION_CHARS = 2000

ASPECT_SECTIONS: dict[str, tuple[str, ...]] = {
    "methodology": ("methodology", "methods", "approach"),
    "results": ("results", "experiments", "evaluation"),
    "conclusions": ("conclusion", "conclusions", "discussion"),
}


async def load_documents(keys: list[str], load: StructureLoader) -> tuple[dict[str, PaperStructure], list[str]]:
    """Resolve every key, keeping request order. Returns (resolved, unresolvable keys)."""
    unique = list(dict.fromkeys(keys))
    structures = await asyncio.gather(*(load(key) for key in unique))
    resolved = {key: structure for key, structure in zip(unique, structures) if structure is not None}
    missing = [key for key in unique if key not in resolved]
    return resolved, missing


def compare_tags(aspect: str, section: str | None) -> list[str]:
    if aspect == "all":
        tags = [tag for group in ASPECT_SECTIONS.values() for tag in group]
    else:
        tags = list(ASPECT_SECTIONS.get(aspect, ()))
    if section:
        tags.append(section.strip().lower())
    return list(dict.fromkeys(tags))


def _title(key: str, structure: PaperStructure) -> str:
    return structure.metadata.title or key


def _paper_header(key: str, structure: PaperStructure) -> str:
    return f"\n--- Paper [{key}]: {_title(key, structure)} ---\n"


def _missing_note(missing: list[str]) -> list[str]:
    if not missing:
        return []
    return [f"\nCould not read content for: {', '.join(missing)}"]


class ComparePapersTool:
    name = "compare_papers"

    async def run(self, keys: list[str], load: StructureLoader, args: ComparePapersArgs) -> str:
        if len(set(keys)) < 2:
            return "Error: compare_papers requires at least 2 papers. Select several papers or pass itemKeys."

        documents, missing = await load_documents(keys, load)
        if len(documents) < 2:
            return f"Error: Could only extract {len(documents)} paper(s). Need at least 2 for comparison."

        tags = compare_tags(args.aspect, args.section)
        lines = [f"=== Comparing {len(documents)} Papers ===\n"]
        lines.extend(f'- [{key}] "{_title(key, structure)}"' for key, structure in documents.items())
        lines.append("")

        for key, structure in documents.items():
            lines.append(_paper_header(key, structure))
            matched = [
                section
                for section in structure.sections
                if any(section.normalized_name == tag or tag in section.name.lower() for tag in tags)
            ]
            for section in matched:
                content = section.content
                if len(content) > MAX_COMPARE_SECTION_CHARS:
                    content = content[:MAX_COMPARE_SECTION_CHARS] + "... [truncated]"
                lines.extend([f"**{section.name}:**", content, ""])
            if matched:
                continue
            if structure.metadata.abstract:
                lines.extend(["**Abstract:**", structure.metadata.abstract])
            else:
                lines.append("(No matching sections found for this paper)")

        lines.extend(_missing_note(missing))
        return "\n".join(lines)


class SearchAcrossPapersTool:
    name = "search_across_papers"

    def __init__(self, semantic: SemanticSearch) -> None:
        self.semantic = semantic

    async def _semantic_groups(
        self, documents: dict[str, PaperStructure], query: str, per_paper: int
    ) -> dict[str, list[SemanticHit]] | None:
        """Semantic hits grouped per paper, or None when keyword search should be used for all."""
        try:
            if not await self.semantic.is_available():
                return None
            for key, structure in documents.items():
                if not await self.semantic.is_indexed(key):
                    logger.info("Indexing %s for semantic search", key)
                    await self.semantic.index_document(key, structure.full_text)
            hits = await self.semantic.search_across(query, list(documents), per_paper * len(documents))
        except Exception as exc:
            logger.warning("Semantic search across papers failed, using keyword search: %s", exc)
            return None

        groups: dict[str, list[SemanticHit]] = {key: [] for key in documents}
        for hit in hits:
            bucket = groups.get(hit.item_key or "")
            if bucket is not None and len(bucket) < per_paper:
                bucket.append(hit)
        empty = [key for key, bucket in groups.items() if not bucket]
        if empty:
            logger.info("No semantic hits for %s, using keyword search", ", ".join(empty))
            return None
        return groups

    async def run(self, keys: list[str], load: StructureLoader, args: SearchAcrossPapersArgs) -> str:
        if not keys:
            return "Error: No papers selected. Select papers or pass itemKeys."

        documents, missing = await load_documents(keys, load)
        if not documents:
            return f"Error: Could not extract any paper content (tried: {', '.join(missing)})."

        per_paper = args.max_results_per_paper
        lines = [f'=== Search Results for "{args.query}" across {len(documents)} papers ===\n']
        groups = await self._semantic_groups(documents, args.query, per_paper)

        for key, structure in documents.items():
            lines.append(_paper_header(key, structure))
            if groups is not None:
                hits = groups[key]
                lines.append(f"Found {len(hits)} semantically relevant match(es):\n")
                for index, hit in enumerate(hits, start=1):
                    page = f" (Page {hit.page})" if hit.page else ""
                    lines.append(f"{index}. [Score: {hit.score * 100:.1f}%{page}] {excerpt(hit.text)}\n")
                continue

            keyword_hits = keyword_search(structure, args.query, per_paper)
            if not keyword_hits:
                lines.append("No matches found in this paper.\n")
                continue
            lines.append(f"Found {len(keyword_hits)} match(es):\n")
            for index, hit in enumerate(keyword_hits, start=1):
                lines.append(f"{index}. (Section: {hit.section}) {excerpt(hit.text)}\n")

        lines.extend(_missing_note(missing))
        return "\n".join(lines)
