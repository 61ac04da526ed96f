from __future__ import annotations

from typing import Iterable, Literal

from ..constants import DesignCode

Classification = Literal["tension-controlled", "transition", "compression-controlled"]

_STATUS = {
    "tension-controlled": "Section is tension-controlled (εt ≥ 0.005)",
    "transition": "Section is in transition zone",
    "compression-controlled": "Section is compression-controlled (εt < εy)",
}


def strain_at_depth(c: float, depth: float, eps_cu: float) -> float:
    """Strain at `depth` below the compression face (compression positive)."""
    return eps_cu * (c - depth) / c


def tensile_strain(c: float, d: float, eps_cu: float) -> float:
    return eps_cu * (d - c) / c


def steel_stress(strain: float, fy_mpa: float, Es_mpa: float) -> float:
    """Elastic-perfectly-plastic steel: Es*eps capped at +/- fy."""
    return max(-fy_mpa, min(fy_mpa, strain * Es_mpa))


def classify_section(eps_t: float, fy_mpa: float, code: DesignCode) -> Classification:
    if eps_t >= code.eps_t_tension_controlled:
        return "tension-controlled"
    if eps_t >= code.yield_strain(fy_mpa):
        return "transition"
    return "compression-controlled"


def status_message(classification: Classification) -> str:
    return _STATUS[classification]


def with_warnings(message: str, warnings: Iterable[str]) -> str:
    for w in warnings:
        message += f" | WARNING: {w}"
    return message
