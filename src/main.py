from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from paper_agent.models import ToolCall
from paper_agent.settings import load_settings
from paper_agent.tooling import ToolPolicy
from profiles.paper_chat import build_dispatcher, render_system_prompt


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="paper-tools", description="Run paper tools against a local library")
    parser.add_argument("--library", help="Path to the library YAML file (default: settings or PAPER_TOOLS_LIBRARY)")
    parser.add_argument("--settings", help="Path to a settings YAML file")
    parser.add_argument("--item", help="Key of the current paper")
    parser.add_argument(
        "--select",
        action="append",
        default=[],
        help="Key of a selected paper, repeatable (more than one enables the comparison tools)",
    )
    parser.add_argument("--allow-write", action="store_true", help="Enable note and tag write tools")
    parser.add_argument("--deny", action="append", default=[], help="Tool name pattern to refuse for this run, repeatable")
    parser.add_argument("--debug", action="store_true", help="Verbose logging on stderr")

    commands = parser.add_subparsers(dest="command", required=True)
    tools = commands.add_parser("tools", help="Print the current tool catalog as JSON")
    tools.add_argument("--format", choices=["openai", "anthropic"], default="openai")

    call = commands.add_parser("call", help="Run one tool call and print the result")
    call.add_argument("tool", help="Tool name, e.g. get_paper_section")
    call.add_argument("--args", default="{}", help="Tool arguments as a JSON object")

    prompt = commands.add_parser("prompt", help="Print the system prompt for the current selection")
    prompt.add_argument("--identity", help="Markdown file replacing the default assistant identity")
    return parser


async def run(args: argparse.Namespace) -> int:
    settings = load_settings(args.settings)
    if args.allow_write:
        settings.write_enabled = True
    library_path = Path(args.library).expanduser().resolve() if args.library else None
    if library_path is None and settings.library_path is None:
        raise SystemExit("A library file is required: pass --library or set PAPER_TOOLS_LIBRARY")

    dispatcher = build_dispatcher(settings, library_path=library_path)
    if args.deny:
        dispatcher.policy = dispatcher.policy.merged(ToolPolicy(deny=args.deny))
    dispatcher.set_current(args.item)
    dispatcher.select(args.select or ([args.item] if args.item else []))
    try:
        if args.command == "tools":
            print(json.dumps(dispatcher.list_tools(args.format), indent=2))
            return 0
        if args.command == "prompt":
            identity = Path(args.identity) if args.identity else None
            print(await render_system_prompt(dispatcher, identity_path=identity))
            return 0

        result = await dispatcher.dispatch(ToolCall(id="cli", name=args.tool, arguments=args.args))
        print(result)
        return 1 if result.startswith("Error:") else 0
    finally:
        await dispatcher.close()


def main() -> int:
    load_dotenv()
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
