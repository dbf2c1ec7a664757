from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass

from paper_agent.models import PageInfo, PaperMetadata, PaperStructure, Section

logger = logging.getLogger(__name__)

ESTIMATED_CHARS_PER_PAGE = 3000
PARAGRAPH_SNAP_WINDOW = 200
MIN_HEADING_LENGTH = 3
MAX_HEADING_LENGTH = 100
MAX_ABSTRACT_LENGTH = 2000
FULL_TEXT_SECTION = "full_text"

# "3.", "3.1", "III." style numbering in front of a heading.
_HEADING_PREFIX = r"^(?:(?:\d+(?:\.\d+)*\.?|[IVX]+\.)\s*)?"


@dataclass(frozen=True)
class SectionRule:
    tag: str
    pattern: re.Pattern[str]

    def matches(self, line: str) -> bool:
        return bool(self.pattern.match(line))


def _rule(tag: str, names: str) -> SectionRule:
    return SectionRule(tag=tag, pattern=re.compile(_HEADING_PREFIX + rf"(?i:{names})\b"))


# Order is priority: "Background" resolves to introduction before related_work.
SECTION_RULES: tuple[SectionRule, ...] = (
    _rule("abstract", r"abstract"),
    _rule("introduction", r"introduction|background"),
    _rule("related_work", r"related\s+works?|literature\s+review"),
    _rule("methodology", r"methods?|methodology|approach(?:es)?|materials?\s+and\s+methods?"),
    _rule("experiments", r"experiments?|experimental\s+setup|evaluation|implementation"),
    _rule("results", r"results?|findings?"),
    _rule("discussion", r"discussion|analysis"),
    _rule("conclusion", r"conclusions?|summary|future\s+work"),
    _rule("references", r"references|bibliography"),
    _rule("appendix", r"appendix|appendices|supplementary"),
)

SECTION_ALIASES: dict[str, str] = {
    "abstract": "abstract",
    "introduction": "introduction",
    "intro": "introduction",
    "background": "introduction",
    "related work": "related_work",
    "related works": "related_work",
    "literature review": "related_work",
    "method": "methodology",
    "methods": "methodology",
    "methodology": "methodology",
    "approach": "methodology",
    "materials and methods": "methodology",
    "experiment": "experiments",
    "experiments": "experiments",
    "evaluation": "experiments",
    "implementation": "experiments",
    "result": "results",
    "results": "results",
    "finding": "results",
    "findings": "results",
    "discussion": "discussion",
    "analysis": "discussion",
    "conclusion": "conclusion",
    "conclusions": "conclusion",
    "summary": "conclusion",
    "future work": "conclusion",
    "references": "references",
    "bibliography": "references",
    "appendix": "appendix",
    "supplementary": "appendix",
}

ABSTRACT_RE = re.compile(
    r"\babstract[:\s]*\n?(.*?)(?=\n\s*(?:1\.?\s*)?(?:introduction|keywords?|background)\b)",
    re.IGNORECASE | re.DOTALL,
)
KEYWORDS_RE = re.compile(
    r"^\s*(?:key\s*words?|index\s+terms)\s*[:—-]\s*([^\n]+(?:\n(?![A-Z0-9\s])[^\n]+)*)",
    re.IGNORECASE | re.MULTILINE,
)
DOI_RE = re.compile(r"\b(10\.\d{4,9}/\S+)")
YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")


def match_section_heading(line: str) -> str | None:
    """Return the canonical tag for a heading line, or None for body text."""
    trimmed = line.strip()
    if not MIN_HEADING_LENGTH <= len(trimmed) <= MAX_HEADING_LENGTH:
        return None
    for rule in SECTION_RULES:
        if rule.matches(trimmed):
            return rule.tag
    return None


def normalize_section_name(name: str) -> str:
    spaced = re.sub(r"[\s_\-]+", " ", name.strip().lower())
    if spaced in SECTION_ALIASES:
        return SECTION_ALIASES[spaced]
    return spaced.replace(" ", "_")


def extract_metadata(text: str) -> PaperMetadata:
    title: str | None = None
    first_line = next((line.strip() for line in text.splitlines() if line.strip()), "")
    if 10 < len(first_line) < 200:
        title = first_line

    abstract: str | None = None
    abstract_match = ABSTRACT_RE.search(text)
    if abstract_match:
        abstract = abstract_match.group(1).strip()[:MAX_ABSTRACT_LENGTH] or None

    keywords: tuple[str, ...] = ()
    keywords_match = KEYWORDS_RE.search(text)
    if keywords_match:
        tokens = (tok.strip() for tok in re.split(r"[,;]", keywords_match.group(1)))
        keywords = tuple(tok for tok in tokens if 0 < len(tok) < 50)

    doi: str | None = None
    doi_match = DOI_RE.search(text)
    if doi_match:
        doi = doi_match.group(1).rstrip(").,;]")

    year: int | None = None
    year_match = YEAR_RE.search(text)
    if year_match:
        year = int(year_match.group(0))

    return PaperMetadata(title=title, abstract=abstract, keywords=keywords, year=year, doi=doi)


def _nearest_paragraph_break(text: str, cut: int, lower: int) -> int | None:
    lo = max(lower, cut - PARAGRAPH_SNAP_WINDOW)
    hi = min(len(text), cut + PARAGRAPH_SNAP_WINDOW)
    left = text.rfind("\n\n", lo, cut)
    right = text.find("\n\n", cut, hi)
    candidates = [pos for pos in (left, right) if pos != -1 and lower < pos + 2 < len(text)]
    if not candidates:
        return None
    best = min(candidates, key=lambda pos: abs(pos - cut))
    return best + 2


def _page_spans(text: str, chars_per_page: int) -> list[tuple[int, int]]:
    if "\f" in text:
        spans: list[tuple[int, int]] = []
        start = 0
        for chunk in text.split("\f"):
            spans.append((start, start + len(chunk)))
            start += len(chunk) + 1
        return spans

    total = len(text)
    page_count = max(1, math.ceil(total / chars_per_page))
    spans = []
    start = 0
    for index in range(page_count):
        if index == page_count - 1:
            end = total
        else:
            cut = min(total, (index + 1) * chars_per_page)
            snapped = _nearest_paragraph_break(text, cut, start)
            end = snapped if snapped is not None else cut
        end = max(start, end)
        spans.append((start, end))
        start = end
    return spans


def parse_pages(text: str, chars_per_page: int = ESTIMATED_CHARS_PER_PAGE) -> tuple[PageInfo, ...]:
    if chars_per_page < 1:
        raise ValueError("chars_per_page must be positive")
    return tuple(
        PageInfo(page_number=number, start_index=start, end_index=end, content=text[start:end].strip())
        for number, (start, end) in enumerate(_page_spans(text, chars_per_page), start=1)
    )


def _parse_sections(text: str) -> tuple[Section, ...]:
    sections: list[Section] = []
    open_name: str | None = None
    open_tag = ""
    open_start = 0
    buffer: list[str] = []

    def close(end: int) -> None:
        if open_name is None:
            return
        sections.append(
            Section(
                name=open_name,
                normalized_name=open_tag,
                content="\n".join(buffer).strip(),
                start_index=open_start,
                end_index=end,
            )
        )

    offset = 0
    for line in text.split("\n"):
        tag = match_section_heading(line)
        if tag is not None:
            close(offset)
            open_name, open_tag, open_start, buffer = line.strip(), tag, offset, []
        elif open_name is not None:
            buffer.append(line)
        offset += len(line) + 1
    close(len(text))

    if not sections:
        sections.append(
            Section(name="Full Text", normalized_name=FULL_TEXT_SECTION, content=text, start_index=0, end_index=len(text))
        )
    return tuple(sections)


def parse_structure(text: str, chars_per_page: int = ESTIMATED_CHARS_PER_PAGE) -> PaperStructure:
    sections = _parse_sections(text)
    pages = parse_pages(text, chars_per_page)
    logger.debug("Parsed %d sections and %d pages from %d chars", len(sections), len(pages), len(text))
    return PaperStructure(metadata=extract_metadata(text), sections=sections, full_text=text, pages=pages)
