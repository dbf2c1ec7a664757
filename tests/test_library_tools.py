import asyncio
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import yaml
from paper_samples import SAMPLE_PAPER

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
from paper_agent.library import LibraryStore
from paper_tools.library_tools import (
    BatchUpdateTagsTool,
    CreateNoteTool,
    GetItemMetadataTool,
    GetItemNotesTool,
    GetNoteContentTool,
    GetTagsTool,
    ListAllItemsTool,
    SearchByTagTool,
    SearchItemsTool,
    SearchNotesTool,
    split_tags,
)

LIBRARY = {
    "items": [
        {
            "key": "GRAPH001",
            "title": "Sparse Attention for Citation Graph Learning",
            "authors": ["Jane Doe", "John Smith"],
            "year": 2021,
            "doi": "10.1234/gat.2018",
            "abstract": "We study sparse attention on citation graphs.",
            "tags": ["graphs", "attention"],
            "attachment": "papers/sparse.txt",
        },
        {
            "key": "MOL00002",
            "title": "Contrastive Pretraining for Molecules",
            "authors": ["Alice Chen"],
            "year": 2022,
            "tags": ["chemistry", "graphs"],
        },
    ],
    "notes": [
        {"key": "NOTE0001", "parent_key": "GRAPH001", "content": "<p>Check the <b>top k</b> ablation.</p>"},
    ],
}


class _LibraryCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name)
        (root / "papers").mkdir()
        (root / "papers" / "sparse.txt").write_text(SAMPLE_PAPER)
        self.path = root / "library.yaml"
        self.path.write_text(yaml.safe_dump(LIBRARY, sort_keys=False))
        self.store = LibraryStore(self.path)

    def tearDown(self) -> None:
        self._tmp.cleanup()


class LibraryStoreTests(_LibraryCase):
    async def test_raw_text_from_text_attachment(self) -> None:
        self.assertEqual(await self.store.get_raw_text("GRAPH001"), SAMPLE_PAPER)

    async def test_text_attachment_is_read_off_the_event_loop(self) -> None:
        with mock.patch("paper_agent.library.asyncio.to_thread", wraps=asyncio.to_thread) as to_thread:
            text = await self.store.get_raw_text("GRAPH001")
        self.assertEqual(text, SAMPLE_PAPER)
        to_thread.assert_called_once()

    async def test_note_key_resolves_to_parent(self) -> None:
        self.assertEqual(await self.store.get_raw_text("NOTE0001"), SAMPLE_PAPER)
        record = await self.store.resolve_top_level_record("NOTE0001")
        self.assertEqual(record.key, "GRAPH001")

    async def test_items_without_attachment_have_no_text(self) -> None:
        self.assertIsNone(await self.store.get_raw_text("MOL00002"))
        self.assertIsNone(await self.store.get_raw_text("MISSING"))

    async def test_missing_file_is_an_empty_library(self) -> None:
        store = LibraryStore(Path(self._tmp.name) / "absent.yaml")
        self.assertEqual(await store.list_items(1, 20, False), ([], 0))

    async def test_update_tags_rejects_unknown_item(self) -> None:
        with self.assertRaises(KeyError):
            await self.store.update_tags("NOPE", ["x"], [])

    def test_non_mapping_file_is_rejected(self) -> None:
        self.path.write_text("- just\n- a list\n")
        with self.assertRaises(ValueError):
            LibraryStore(self.path)


class BrowseToolTests(_LibraryCase):
    async def test_list_all_items(self) -> None:
        result = await ListAllItemsTool(self.store).run(ListAllItemsArgs())
        self.assertTrue(result.startswith("Library items - page 1 of 1 (total: 2 items):"))
        self.assertIn("1. [GRAPH001] Sparse Attention for Citation Graph Learning (2021) - journalArticle [PDF]", result)
        self.assertIn("2. [MOL00002]", result)

    async def test_list_only_items_with_attachments(self) -> None:
        result = await ListAllItemsTool(self.store).run(ListAllItemsArgs(has_pdf=True))
        self.assertIn("(total: 1 items)", result)
        self.assertNotIn("MOL00002", result)

    async def test_page_past_the_end(self) -> None:
        result = await ListAllItemsTool(self.store).run(ListAllItemsArgs(page=3, page_size=1))
        self.assertEqual(result, "No items found. Page 3 of 2 (total: 2 items)")

    async def test_item_metadata(self) -> None:
        result = await GetItemMetadataTool(self.store).run(GetItemMetadataArgs(item_key="GRAPH001"))
        self.assertTrue(result.startswith("Item Key: GRAPH001\nItem Type: journalArticle\nTitle: Sparse Attention"))
        self.assertIn("Authors: Jane Doe, John Smith", result)
        self.assertIn("Notes: 1 note(s) available", result)

    async def test_item_metadata_not_found(self) -> None:
        result = await GetItemMetadataTool(self.store).run(GetItemMetadataArgs(item_key="NOPE"))
        self.assertEqual(result, 'Error: Item with key "NOPE" not found.')

    async def test_notes_default_to_current_item(self) -> None:
        result = await GetItemNotesTool(self.store).run(GetItemNotesArgs(), current_key="GRAPH001")
        self.assertIn("Notes for \"Sparse Attention for Citation Graph Learning\" (1 notes):", result)
        self.assertIn("Preview: Check the top k ablation.", result)

    async def test_notes_need_a_target(self) -> None:
        result = await GetItemNotesTool(self.store).run(GetItemNotesArgs())
        self.assertTrue(result.startswith("Error: No item specified."))

    async def test_note_content_strips_html(self) -> None:
        result = await GetNoteContentTool(self.store).run(GetNoteContentArgs(note_key="NOTE0001"))
        self.assertEqual(result, "Note: NOTE0001 (item: GRAPH001)\n\n---\n\nCheck the top k ablation.")

    async def test_search_items_by_field(self) -> None:
        result = await SearchItemsTool(self.store).run(SearchItemsArgs(query="chen", field="creator"))
        self.assertIn("1. [MOL00002] Contrastive Pretraining for Molecules (Alice Chen, 2022)", result)
        empty = await SearchItemsTool(self.store).run(SearchItemsArgs(query="chen", field="title"))
        self.assertEqual(empty, 'No items found for query "chen" in field "title".')

    async def test_tags_sorted_with_counts(self) -> None:
        result = await GetTagsTool(self.store).run(GetTagsArgs())
        self.assertEqual(
            result,
            "Tags in library (showing 3 of 3):\n\n- attention (1)\n- chemistry (1)\n- graphs (2)",
        )

    async def test_search_by_tag_modes(self) -> None:
        either = await SearchByTagTool(self.store).run(SearchByTagArgs(tags="attention, chemistry"))
        self.assertTrue(either.startswith("Found 2 item(s)"))
        both = await SearchByTagTool(self.store).run(SearchByTagArgs(tags="attention, chemistry", mode="and"))
        self.assertEqual(both, "No items found with tag(s): attention, chemistry (mode: AND)")

    async def test_search_notes(self) -> None:
        result = await SearchNotesTool(self.store).run(SearchNotesArgs(query="ablation"))
        self.assertIn('1. [NOTE0001] (item: GRAPH001)', result)


class WriteToolTests(_LibraryCase):
    async def test_create_note_is_persisted(self) -> None:
        result = await CreateNoteTool(self.store).run(
            CreateNoteArgs(content="Follow up on dynamic graphs", tags="todo, graphs"), current_key="GRAPH001"
        )
        self.assertIn("Attached to: GRAPH001", result)
        self.assertIn("Tags: todo, graphs", result)

        reloaded = LibraryStore(self.path)
        notes = await reloaded.get_notes("GRAPH001")
        self.assertEqual(len(notes), 2)
        self.assertIn("Follow up on dynamic graphs", [note.content for note in notes])

    async def test_create_note_for_unknown_item(self) -> None:
        result = await CreateNoteTool(self.store).run(CreateNoteArgs(content="x", item_key="NOPE"))
        self.assertEqual(result, 'Error: Item with key "NOPE" not found.')

    async def test_batch_update_counts_changes(self) -> None:
        result = await BatchUpdateTagsTool(self.store).run(
            BatchUpdateTagsArgs(query="graphs", add_tags="reviewed", remove_tags="attention")
        )
        self.assertEqual(
            result,
            "Batch tag update completed!\nItems affected: 2\n"
            "Added tags [reviewed]: 2 additions\nRemoved tags [attention]: 1 removals",
        )
        reloaded = LibraryStore(self.path)
        self.assertEqual(reloaded.items["GRAPH001"].tags, ["graphs", "reviewed"])

    async def test_batch_update_needs_tags(self) -> None:
        result = await BatchUpdateTagsTool(self.store).run(BatchUpdateTagsArgs(query="graphs"))
        self.assertEqual(result, "Error: At least one of addTags or removeTags is required.")


class SplitTagsTests(unittest.TestCase):
    def test_split_dedupes_and_trims(self) -> None:
        self.assertEqual(split_tags(" a, b ,,a "), ["a", "b"])
        self.assertEqual(split_tags(None), [])


if __name__ == "__main__":
    unittest.main()
