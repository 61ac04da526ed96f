from __future__ import annotations

import hashlib
import json
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from rcbeam_app.core.paths import tool_data_dir

TOOL_ID = "nscp_beam_flexure"


def create_run_dir(tool_id: str = TOOL_ID, input_hash: Optional[str] = None) -> Path:
    """Create a fresh run directory.

    Location: <user data dir>/<tool_id>/runs/YYYYMMDD_HHMMSS_<short_hash>/
    """
    root = tool_data_dir(tool_id) / "runs"
    root.mkdir(parents=True, exist_ok=True)

    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    seed = f"{ts}:{os.getpid()}:{time.time_ns()}"
    rand = hashlib.sha256(seed.encode("utf-8")).hexdigest()[:8]
    short = f"{input_hash[:6]}{rand[:2]}" if input_hash else rand

    run_dir = root / f"{ts}_{short}"
    run_dir.mkdir(parents=True, exist_ok=False)
    return run_dir


def _normalize(value: Any) -> Any:
    if isinstance(value, float):
        return float(f"{value:.12g}")
    if isinstance(value, dict):
        return {k: _normalize(value[k]) for k in sorted(value)}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def compute_input_hash(inputs: Dict[str, Any]) -> str:
    """Deterministic hash of the inputs (sorted keys, floats at 12 significant digits)."""
    payload = json.dumps(_normalize(inputs), sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:12]
