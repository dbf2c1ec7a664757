from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Protocol

from paper_agent.models import ToolDefinition


class Tool(Protocol):
    name: str

    def run(self, *args: Any, **kwargs: Any) -> Any:
        ...


@dataclass
class ToolRegistry:
    tools: dict[str, Tool] = field(default_factory=dict)

    @classmethod
    def of(cls, *tools: Tool) -> "ToolRegistry":
        return cls(tools={tool.name: tool for tool in tools})

    def resolve(self, name: str) -> Tool:
        if name not in self.tools:
            raise KeyError(f"Tool '{name}' is not registered")
        return self.tools[name]

    def __contains__(self, name: object) -> bool:
        return name in self.tools


def _compile_pattern(pattern: str) -> re.Pattern[str]:
    escaped = re.escape(pattern.strip()).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(rf"^{escaped}$")


@dataclass
class ToolPolicy:
    """Glob allow/deny lists over tool names. Deny wins."""

    allow: list[str] | None = None
    deny: list[str] | None = None

    def _matches(self, tool_name: str, patterns: list[str]) -> bool:
        return any(_compile_pattern(pattern).match(tool_name) for pattern in patterns)

    def check(self, tool_name: str) -> None:
        normalized = tool_name.strip()
        if self._matches(normalized, self.deny or []):
            raise PermissionError(f"Tool '{tool_name}' is denied by policy")
        if not self._matches(normalized, self.allow or ["*"]):
            raise PermissionError(f"Tool '{tool_name}' is not allowed by policy")

    def allows(self, tool_name: str) -> bool:
        try:
            self.check(tool_name)
        except PermissionError:
            return False
        return True

    def filter(self, definitions: list[ToolDefinition]) -> list[ToolDefinition]:
        return [definition for definition in definitions if self.allows(definition.name)]

    def merged(self, override: "ToolPolicy | None" = None) -> "ToolPolicy":
        if override is None:
            return ToolPolicy(allow=list(self.allow or ["*"]), deny=list(self.deny or []))

        base_allow = list(self.allow or ["*"])
        over_allow = list(override.allow or ["*"])

        # A narrower allow list from the override restricts the base one.
        if over_allow == ["*"]:
            allow = base_allow
        elif base_allow == ["*"]:
            allow = over_allow
        else:
            allow = [item for item in base_allow if item in set(over_allow)]
        deny = sorted(set((self.deny or []) + (override.deny or [])))
        return ToolPolicy(allow=allow, deny=deny)
