from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .constants import CODE_BASIS, DEFAULT_UNITS_SYSTEM
from .paths import compute_input_hash


@dataclass(frozen=True)
class TraceMeta:
    tool_id: str
    tool_version: str
    timestamp: str
    units_system: str
    input_hash: str
    code_basis: str = CODE_BASIS
    design_code: str = ""


@dataclass(frozen=True)
class TraceInput:
    id: str
    label: str
    value: Any
    units: str
    source: str = "user"


@dataclass(frozen=True)
class Assumption:
    id: str
    text: str


@dataclass(frozen=True)
class CalcVar:
    symbol: str
    description: str
    value: Any
    units: str


@dataclass(frozen=True)
class Reference:
    type: str  # "code" | "derived" | "note"
    ref: str


@dataclass
class CalcStep:
    id: str
    section: str
    title: str
    output_symbol: str
    equation: str
    substitution: str
    variables: List[CalcVar]
    value: float
    value_rounded: float
    units: str
    references: List[Reference]
    warnings: List[str] = field(default_factory=list)


@dataclass
class CalcTrace:
    """Record of every computed quantity of one run; exports are written from it."""

    meta: TraceMeta
    inputs: List[TraceInput] = field(default_factory=list)
    assumptions: List[Assumption] = field(default_factory=list)
    steps: List[CalcStep] = field(default_factory=list)
    tables: Dict[str, Any] = field(default_factory=dict)
    summary: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def new(
        cls,
        *,
        tool_id: str,
        tool_version: str,
        inputs: Dict[str, Any],
        units_system: str = DEFAULT_UNITS_SYSTEM,
        input_hash: Optional[str] = None,
        design_code: str = "",
    ) -> "CalcTrace":
        if input_hash is None:
            input_hash = compute_input_hash(inputs)

        meta = TraceMeta(
            tool_id=tool_id,
            tool_version=tool_version,
            timestamp=datetime.now().isoformat(timespec="seconds"),
            units_system=units_system,
            input_hash=input_hash,
            design_code=design_code,
        )
        trace_inputs = [
            TraceInput(id=k, label=k.replace("_", " "), value=inputs[k], units=infer_units(k))
            for k in sorted(inputs.keys())
        ]
        return cls(meta=meta, inputs=trace_inputs)

    def step(self, step_id: str) -> CalcStep:
        for s in self.steps:
            if s.id == step_id:
                return s
        raise KeyError(step_id)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def dump_trace_json(trace: CalcTrace, path: Path) -> Path:
    path.write_text(json.dumps(trace.to_dict(), indent=2, ensure_ascii=False, default=str), encoding="utf-8")
    return path


_UNIT_SUFFIXES: Sequence[Tuple[str, str]] = (
    ("_mm2", "mm²"),
    ("_knm", "kN·m"),
    ("_mm", "mm"),
    ("_mpa", "MPa"),
    ("_kn", "kN"),
)


def infer_units(key: str) -> str:
    for suffix, units in _UNIT_SUFFIXES:
        if key.endswith(suffix):
            return units
    return "-"


def _round(x: float, decimals: int) -> float:
    if math.isnan(x) or math.isinf(x):
        return x
    return round(x, decimals)


def _format_value(value: Any, units: str) -> str:
    text = f"{value:.6g}" if isinstance(value, float) else str(value)
    return f"{text} {units}" if units and units != "-" else text


def compute_step(
    trace: CalcTrace,
    *,
    id: str,
    section: str,
    title: str,
    output_symbol: str,
    equation: str,
    variables: Sequence[Tuple[str, str, Any, str]],
    compute_fn: Callable[[], float],
    units: str,
    references: Sequence[str],
    decimals: int = 3,
) -> float:
    """Evaluate one quantity, append it to the trace and return the unrounded value.

    `variables` are (symbol, description, value, units) tuples; each symbol is
    substituted into `equation` to build the substitution line. `references`
    are NSCP 2015 section numbers or "derived".
    """
    if not id or not section or not title:
        raise ValueError("compute_step requires non-empty id/section/title.")

    var_objs = [CalcVar(symbol=s, description=d, value=v, units=u) for s, d, v, u in variables]

    value = float(compute_fn())

    substitution = equation
    for v in sorted(var_objs, key=lambda v: len(v.symbol), reverse=True):
        substitution = substitution.replace(v.symbol, _format_value(v.value, v.units))

    refs = [Reference(type="derived" if r == "derived" else "code", ref=r) for r in references]

    trace.steps.append(
        CalcStep(
            id=id,
            section=section,
            title=title,
            output_symbol=output_symbol,
            equation=equation,
            substitution=substitution,
            variables=var_objs,
            value=value,
            value_rounded=_round(value, decimals),
            units=units,
            references=refs,
        )
    )
    return value
