from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from .calc_trace import CalcTrace, dump_trace_json


def export_json(trace: CalcTrace, out_dir: Path, results: Dict[str, Any]) -> Dict[str, Path]:
    p1 = dump_trace_json(trace, out_dir / "calc_trace.json")

    p2 = out_dir / "results.json"
    p2.write_text(json.dumps(results, indent=2, ensure_ascii=False, default=str), encoding="utf-8")
    return {"calc_trace": p1, "results": p2}


def export_all(trace: CalcTrace, out_dir: Path, results: Dict[str, Any]) -> Dict[str, Path]:
    outputs: Dict[str, Path] = {}
    outputs.update(export_json(trace, out_dir, results))
    return outputs
