import contextlib
import io
import json
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

import yaml
from paper_samples import SAMPLE_PAPER, SECOND_PAPER

from main import build_parser, run
from paper_agent.models import ToolCall
from paper_agent.settings import ToolSettings
from profiles.paper_chat import build_dispatcher, render_system_prompt


def _write_library(root: Path) -> Path:
    (root / "a.txt").write_text(SAMPLE_PAPER)
    (root / "b.txt").write_text(SECOND_PAPER)
    path = root / "library.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "items": [
                    {"key": "AAAA1111", "title": "Sparse Attention (library title)", "year": 2021, "attachment": "a.txt"},
                    {"key": "BBBB2222", "title": "Contrastive Pretraining", "attachment": "b.txt"},
                ]
            }
        )
    )
    return path


class PaperChatFlowTests(unittest.IsolatedAsyncioTestCase):
    async def test_library_backed_dispatcher(self) -> None:
        with TemporaryDirectory() as tmp:
            dispatcher = build_dispatcher(ToolSettings(), library_path=_write_library(Path(tmp)))
            dispatcher.set_current("AAAA1111")
            dispatcher.select(["AAAA1111", "BBBB2222"])

            names = [d.name for d in dispatcher.catalog()]
            self.assertIn("get_paper_section", names)
            self.assertIn("search_items", names)
            self.assertIn("compare_papers", names)
            self.assertNotIn("create_note", names)

            metadata = await dispatcher.dispatch(ToolCall(id="1", name="get_paper_metadata"))
            self.assertTrue(metadata.startswith("Item Key: AAAA1111\nTitle: Sparse Attention (library title)"))

            across = await dispatcher.dispatch(
                ToolCall(id="2", name="search_across_papers", arguments='{"query": "pretraining"}')
            )
            self.assertIn("across 2 papers", across)

            prompt = await render_system_prompt(dispatcher)
            self.assertIn("=== MULTIPLE PAPERS SELECTED (2) ===", prompt)
            await dispatcher.close()

    async def test_dispatcher_needs_a_source(self) -> None:
        with self.assertRaises(ValueError):
            build_dispatcher(ToolSettings())


class CommandLineTests(unittest.IsolatedAsyncioTestCase):
    async def _run(self, *argv: str) -> tuple[int, str]:
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = await run(build_parser().parse_args(list(argv)))
        return code, out.getvalue()

    async def test_tools_listing(self) -> None:
        with TemporaryDirectory() as tmp:
            library = str(_write_library(Path(tmp)))
            code, output = await self._run("--library", library, "--item", "AAAA1111", "tools", "--format", "anthropic")
        self.assertEqual(code, 0)
        names = [tool["name"] for tool in json.loads(output)]
        self.assertEqual(names[0], "get_paper_section")
        self.assertNotIn("compare_papers", names)

    async def test_call_reports_errors_with_exit_code(self) -> None:
        with TemporaryDirectory() as tmp:
            library = str(_write_library(Path(tmp)))
            code, output = await self._run("--library", library, "call", "get_outline")
            self.assertEqual(code, 1)
            self.assertTrue(output.startswith("Error: No paper content available"))

            code, output = await self._run(
                "--library", library, "--item", "BBBB2222", "call", "get_section", "--args", '{"section": "methods"}'
            )
            self.assertEqual(code, 0)
            self.assertTrue(output.startswith("[Section: Methodology]"))

    async def test_deny_option_and_repeated_selection(self) -> None:
        with TemporaryDirectory() as tmp:
            library = str(_write_library(Path(tmp)))
            code, output = await self._run(
                "--library", library, "--item", "AAAA1111",
                "--select", "AAAA1111", "--select", "BBBB2222",
                "--deny", "get_full_*", "tools",
            )
            names = [tool["function"]["name"] for tool in json.loads(output)]
            self.assertEqual(code, 0)
            self.assertIn("compare_papers", names)
            self.assertNotIn("get_full_text", names)

            code, output = await self._run(
                "--library", library, "--item", "AAAA1111", "--deny", "get_full_*",
                "call", "get_full_text", "--args", '{"confirm": true}',
            )
            self.assertEqual(code, 1)
            self.assertEqual(output.strip(), "Error: Tool 'get_full_text' is denied by policy")


if __name__ == "__main__":
    unittest.main()
