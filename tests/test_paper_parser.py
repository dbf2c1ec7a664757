import unittest

from paper_samples import NO_HEADINGS, SAMPLE_PAPER

from paper_tools.paper_parser import (
    extract_metadata,
    match_section_heading,
    normalize_section_name,
    parse_pages,
    parse_structure,
)


class SectionHeadingRuleTests(unittest.TestCase):
    def test_plain_and_numbered_headings(self) -> None:
        self.assertEqual(match_section_heading("Abstract"), "abstract")
        self.assertEqual(match_section_heading("1. Introduction"), "introduction")
        self.assertEqual(match_section_heading("3.1 Methods"), "methodology")
        self.assertEqual(match_section_heading("  4 Experimental Setup  "), "experiments")
        self.assertEqual(match_section_heading("Materials and Methods"), "methodology")
        self.assertEqual(match_section_heading("Future Work"), "conclusion")
        self.assertEqual(match_section_heading("Bibliography"), "references")
        self.assertEqual(match_section_heading("Supplementary Material"), "appendix")

    def test_roman_numeral_prefix(self) -> None:
        self.assertEqual(match_section_heading("III. Results"), "results")
        self.assertEqual(match_section_heading("II. Literature Review"), "related_work")

    def test_background_resolves_to_introduction_first(self) -> None:
        self.assertEqual(match_section_heading("Background"), "introduction")

    def test_length_bounds_and_body_text(self) -> None:
        self.assertIsNone(match_section_heading("ab"))
        self.assertIsNone(match_section_heading("Results " + "x" * 120))
        self.assertIsNone(match_section_heading("We present a new method"))
        self.assertIsNone(match_section_heading("Methodological notes"))


class NormalizeSectionNameTests(unittest.TestCase):
    def test_aliases(self) -> None:
        self.assertEqual(normalize_section_name("methods"), "methodology")
        self.assertEqual(normalize_section_name("Literature Review"), "related_work")
        self.assertEqual(normalize_section_name("future_work"), "conclusion")
        self.assertEqual(normalize_section_name("related-work"), "related_work")

    def test_unknown_name_is_snake_cased(self) -> None:
        self.assertEqual(normalize_section_name("Threats to Validity"), "threats_to_validity")


class MetadataTests(unittest.TestCase):
    def test_sample_metadata(self) -> None:
        metadata = extract_metadata(SAMPLE_PAPER)
        self.assertEqual(metadata.title, "Sparse Attention for Citation Graph Learning")
        self.assertTrue(metadata.abstract.startswith("We study sparse attention on citation graphs."))
        self.assertNotIn("Keywords", metadata.abstract)
        self.assertEqual(metadata.keywords, ("graph learning", "sparse attention", "citation networks"))
        self.assertEqual(metadata.doi, "10.1234/gat.2018")
        self.assertEqual(metadata.year, 2021)
        self.assertEqual(metadata.authors, ())

    def test_missing_patterns_leave_fields_empty(self) -> None:
        metadata = extract_metadata("short\n\nnothing else here")
        self.assertIsNone(metadata.title)
        self.assertIsNone(metadata.abstract)
        self.assertIsNone(metadata.doi)
        self.assertIsNone(metadata.year)
        self.assertEqual(metadata.keywords, ())


class StructureTests(unittest.TestCase):
    def test_sections_in_document_order(self) -> None:
        structure = parse_structure(SAMPLE_PAPER)
        names = [s.normalized_name for s in structure.sections]
        self.assertEqual(
            names,
            ["abstract", "introduction", "related_work", "methodology", "experiments", "results", "conclusion", "references"],
        )
        methods = structure.sections[3]
        self.assertEqual(methods.name, "3. Methods")
        self.assertIn("top k neighbours", methods.content)
        self.assertNotIn("4. Experiments", methods.content)

    def test_spans_are_contiguous_and_monotonic(self) -> None:
        structure = parse_structure(SAMPLE_PAPER)
        sections = structure.sections
        self.assertGreater(sections[0].start_index, 0)
        for left, right in zip(sections, sections[1:]):
            self.assertLess(left.start_index, left.end_index)
            self.assertEqual(left.end_index, right.start_index)
        self.assertEqual(sections[-1].end_index, len(SAMPLE_PAPER))
        self.assertTrue(SAMPLE_PAPER[sections[1].start_index :].startswith("1. Introduction"))

    def test_fallback_single_full_text_section(self) -> None:
        structure = parse_structure(NO_HEADINGS)
        self.assertEqual(len(structure.sections), 1)
        only = structure.sections[0]
        self.assertEqual(only.normalized_name, "full_text")
        self.assertEqual((only.start_index, only.end_index), (0, len(NO_HEADINGS)))
        self.assertEqual(structure.detected_sections, ())

    def test_empty_text_still_has_one_section_and_page(self) -> None:
        structure = parse_structure("")
        self.assertEqual(len(structure.sections), 1)
        self.assertEqual(structure.page_count, 1)


class PageTests(unittest.TestCase):
    def _assert_covers(self, text: str, pages) -> None:
        self.assertEqual(pages[0].start_index, 0)
        for left, right in zip(pages, pages[1:]):
            self.assertEqual(left.end_index, right.start_index)
            self.assertEqual(right.page_number, left.page_number + 1)
        self.assertEqual(pages[-1].end_index, len(text))

    def test_budget_split_covers_text(self) -> None:
        paragraph = ("word " * 60).strip() + "\n\n"
        text = paragraph * 40
        pages = parse_pages(text, chars_per_page=1000)
        self.assertEqual(len(pages), -(-len(text) // 1000))
        self._assert_covers(text, pages)

    def test_boundaries_snap_after_paragraph_break(self) -> None:
        paragraph = ("word " * 60).strip() + "\n\n"
        text = paragraph * 40
        pages = parse_pages(text, chars_per_page=1000)
        for page in pages[:-1]:
            self.assertEqual(text[page.end_index - 2 : page.end_index], "\n\n")
            self.assertLessEqual(abs(page.end_index - 1000 * page.page_number), 202 + 1000)

    def test_no_break_nearby_cuts_at_budget(self) -> None:
        text = "x" * 2500
        pages = parse_pages(text, chars_per_page=1000)
        self.assertEqual([p.end_index for p in pages], [1000, 2000, 2500])
        self._assert_covers(text, pages)

    def test_form_feed_pages(self) -> None:
        text = "page one text\fpage two text\f  page three  "
        pages = parse_pages(text)
        self.assertEqual([p.content for p in pages], ["page one text", "page two text", "page three"])
        self.assertEqual(pages[1].start_index, pages[0].end_index + 1)
        self.assertEqual(pages[-1].end_index, len(text))

    def test_page_for_offset(self) -> None:
        structure = parse_structure("first page\fsecond page\fthird page")
        self.assertEqual(structure.page_for_offset(0), 1)
        self.assertEqual(structure.page_for_offset(11), 2)
        self.assertEqual(structure.page_for_offset(10_000), 3)


if __name__ == "__main__":
    unittest.main()
