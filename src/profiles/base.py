from __future__ import annotations

from dataclasses import dataclass

from paper_agent.settings import ToolSettings
from paper_agent.tooling import ToolPolicy, ToolRegistry


@dataclass
class AgentProfile:
    name: str
    registry: ToolRegistry
    policy: ToolPolicy
    settings: ToolSettings
