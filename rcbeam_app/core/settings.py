from __future__ import annotations

import json
from typing import Any, Dict

from rcbeam_app.core.paths import settings_path


def load_settings() -> Dict[str, Any]:
    p = settings_path()
    if not p.exists():
        return {}
    try:
        return json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return {}


def save_settings(data: Dict[str, Any]) -> None:
    p = settings_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(data, indent=2), encoding="utf-8")


def tool_settings(tool_id: str) -> Dict[str, Any]:
    """Return the settings section for one tool ({} if absent or malformed)."""
    section = load_settings().get(tool_id, {})
    return section if isinstance(section, dict) else {}
