from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from paper_agent.tooling import ToolPolicy

_DEFAULT_SETTINGS_PATH = Path(__file__).resolve().parent / "settings.yaml"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass
class ToolSettings:
    cache_ttl_seconds: float = 300.0
    cache_capacity: int = 10
    chars_per_page: int = 3000
    write_enabled: bool = False
    allow: list[str] = field(default_factory=lambda: ["*"])
    deny: list[str] = field(default_factory=list)
    library_path: Path | None = None

    @property
    def policy(self) -> ToolPolicy:
        return ToolPolicy(allow=list(self.allow), deny=list(self.deny))


def _read_settings_yaml(path: Path) -> dict[str, Any]:
    payload = yaml.safe_load(path.read_text()) or {}
    if not isinstance(payload, dict):
        raise ValueError(f"Settings file must contain a YAML object: {path}")
    return payload


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _section(payload: dict[str, Any], name: str) -> dict[str, Any]:
    row = payload.get(name) or {}
    if not isinstance(row, dict):
        raise ValueError(f"Settings section '{name}' must be a mapping")
    return row


def _positive(name: str, value: Any, kind: type) -> Any:
    try:
        number = kind(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid value for {name}: {value!r}") from exc
    if number <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return number


def _flag(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"Invalid boolean for {name}: {value!r}")


def _patterns(name: str, value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [item for item in value.split(",") if item.strip()]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"Invalid {name} list in settings")
    return [item.strip() for item in value]


def _normalize_settings(payload: dict[str, Any], base_dir: Path) -> ToolSettings:
    cache = _section(payload, "cache")
    parser = _section(payload, "parser")
    write = _section(payload, "write")
    policy = _section(payload, "policy")
    library = _section(payload, "library")

    library_path = library.get("path")
    resolved_library: Path | None = None
    if library_path:
        resolved_library = Path(str(library_path)).expanduser()
        if not resolved_library.is_absolute():
            resolved_library = (base_dir / resolved_library).resolve()

    return ToolSettings(
        cache_ttl_seconds=_positive("cache.ttl_seconds", cache.get("ttl_seconds", 300), float),
        cache_capacity=_positive("cache.capacity", cache.get("capacity", 10), int),
        chars_per_page=_positive("parser.chars_per_page", parser.get("chars_per_page", 3000), int),
        write_enabled=_flag("write.enabled", write.get("enabled", False)),
        allow=_patterns("policy.allow", policy.get("allow", ["*"])) or ["*"],
        deny=_patterns("policy.deny", policy.get("deny", [])),
        library_path=resolved_library,
    )


def load_settings(path: Path | str | None = None, environ: Mapping[str, str] | None = None) -> ToolSettings:
    """Packaged defaults, then the optional settings file, then PAPER_TOOLS_* variables."""
    env = os.environ if environ is None else environ
    payload = _read_settings_yaml(_DEFAULT_SETTINGS_PATH) if _DEFAULT_SETTINGS_PATH.exists() else {}

    explicit = path or env.get("PAPER_TOOLS_SETTINGS", "").strip() or None
    base_dir = Path.cwd()
    if explicit:
        settings_path = Path(str(explicit)).expanduser().resolve()
        if not settings_path.exists():
            raise ValueError(f"Settings file not found: {settings_path}")
        payload = _merge(payload, _read_settings_yaml(settings_path))
        base_dir = settings_path.parent

    overrides: dict[str, Any] = {}
    if env.get("PAPER_TOOLS_CACHE_TTL", "").strip():
        overrides.setdefault("cache", {})["ttl_seconds"] = env["PAPER_TOOLS_CACHE_TTL"].strip()
    if env.get("PAPER_TOOLS_CACHE_CAPACITY", "").strip():
        overrides.setdefault("cache", {})["capacity"] = env["PAPER_TOOLS_CACHE_CAPACITY"].strip()
    if env.get("PAPER_TOOLS_WRITE_ENABLED", "").strip():
        overrides.setdefault("write", {})["enabled"] = env["PAPER_TOOLS_WRITE_ENABLED"].strip()
    if env.get("PAPER_TOOLS_LIBRARY", "").strip():
        overrides.setdefault("library", {})["path"] = str(Path(env["PAPER_TOOLS_LIBRARY"].strip()).expanduser().resolve())

    return _normalize_settings(_merge(payload, overrides), base_dir)
