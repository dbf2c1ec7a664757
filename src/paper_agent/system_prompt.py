from __future__ import annotations

from pathlib import Path

from paper_agent.models import PaperStructure, ToolDefinition

_DEFAULT_IDENTITY = (
    "You are a helpful research assistant analyzing academic papers.\n\n"
    "When working with papers:\n"
    "- Cite the section or page an answer comes from\n"
    "- Prefer targeted tools over get_full_text\n"
    "- Do not make up information; verify it with the tools"
)

_MENTION_NOTE = (
    "Users may reference library items as @[title](key:XXX). "
    "The key is the item key; pass it to tools as itemKey or noteKey."
)


def _load_identity(identity_path: Path | None) -> str:
    if identity_path is None or not identity_path.exists():
        return _DEFAULT_IDENTITY
    lines = identity_path.read_text().strip().splitlines()
    if lines and lines[0].startswith("#"):
        lines = lines[1:]
    return "\n".join(lines).strip() or _DEFAULT_IDENTITY


def _summary(definition: ToolDefinition) -> str:
    first = definition.description.split(". ")[0].rstrip(".")
    return f"- {definition.name}: {first}"


def build_paper_context_prompt(
    tools: list[ToolDefinition],
    current_key: str | None = None,
    current: PaperStructure | None = None,
    current_title: str | None = None,
    selected: dict[str, PaperStructure | None] | None = None,
    identity_path: Path | None = None,
) -> str:
    parts: list[str] = [_load_identity(identity_path), ""]
    selected = selected or {}

    if current_key is None:
        parts.append("=== NO PAPER SELECTED ===")
        parts.append("No paper is open, so only library tools are available.")
        parts.append("Use list_all_items or search_items to find papers and their keys.")
        parts.append("")
    else:
        if len(selected) > 1:
            parts.append(f"=== MULTIPLE PAPERS SELECTED ({len(selected)}) ===")
            for key, structure in selected.items():
                title = (structure.metadata.title if structure else None) or "Unknown Title"
                pages = structure.page_count if structure else "?"
                parts.append(f'- [{key}] "{title}" ({pages} pages)')
            parts.append("When comparing papers, say which paper you mean by its itemKey.")
            parts.append("")

        parts.append("=== PRIMARY PAPER ===" if len(selected) > 1 else "=== CURRENT PAPER ===")
        if current is not None:
            title = current_title or current.metadata.title or "Current Paper"
            parts.append(f'Title: "{title}"')
            parts.append(f'itemKey: "{current_key}"')
            parts.append(f"Pages: {current.page_count}")
            if current.metadata.abstract:
                parts.append(f"\nAbstract:\n{current.metadata.abstract}")
            section_list = ", ".join(s.normalized_name for s in current.detected_sections)
            if section_list:
                parts.append(f"\nAvailable sections: {section_list}")
        else:
            parts.append(f'itemKey: "{current_key}" (text could not be extracted; library tools still work)')
        parts.append("")

    if tools:
        parts.append("=== AVAILABLE TOOLS ===")
        parts.extend(_summary(definition) for definition in tools)
        parts.append("")

    parts.append("=== MENTION FORMAT ===")
    parts.append(_MENTION_NOTE)
    parts.append("")
    parts.append(
        "Paper tools take an optional itemKey; without it they read the current paper. "
        "Ground every answer in what the tools return."
    )
    return "\n".join(parts)
