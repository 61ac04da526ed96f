from __future__ import annotations

import math
from dataclasses import asdict
from typing import Any, Callable, Dict, Optional

from loguru import logger

from .analysis.doubly import DoublyReinforcedBeam
from .analysis.polygon import PolygonSection
from .analysis.singly import SinglyReinforcedBeam
from .calc_trace import Assumption, CalcTrace, compute_step
from .constants import NSCP_2015, DesignCode
from .models import SectionDefinition

SECTION_MATERIALS = "Materials and code coefficients"
SECTION_FLEXURE = "Flexural strength"


def _material_steps(trace: CalcTrace, fc: float, fy: float, code: DesignCode) -> None:
    fc_var = ("f'c", "concrete strength", fc, "MPa")
    fy_var = ("fy", "steel yield strength", fy, "MPa")

    compute_step(
        trace,
        id="beta1",
        section=SECTION_MATERIALS,
        title="Equivalent stress block factor",
        output_symbol="β1",
        equation="β1 = 0.85 - 0.05(f'c - 28)/7, 0.65 ≤ β1 ≤ 0.85",
        variables=[fc_var],
        compute_fn=lambda: code.beta1(fc),
        units="-",
        references=["422.2.2.4.3"],
    )
    compute_step(
        trace,
        id="eps_y",
        section=SECTION_MATERIALS,
        title="Steel yield strain",
        output_symbol="εy",
        equation="εy = fy / Es",
        variables=[fy_var, ("Es", "steel modulus", code.Es_mpa, "MPa")],
        compute_fn=lambda: code.yield_strain(fy),
        units="-",
        references=["420.2.2.2"],
        decimals=6,
    )
    compute_step(
        trace,
        id="rho_min",
        section=SECTION_MATERIALS,
        title="Minimum reinforcement ratio",
        output_symbol="ρmin",
        equation="ρmin = max(√f'c / (4 fy), 1.4 / fy)",
        variables=[fc_var, fy_var],
        compute_fn=lambda: code.rho_min(fc, fy),
        units="-",
        references=["409.6.1.2"],
        decimals=5,
    )
    compute_step(
        trace,
        id="rho_max",
        section=SECTION_MATERIALS,
        title="Maximum reinforcement ratio (tension-controlled)",
        output_symbol="ρmax",
        equation="ρmax = 0.85 β1 (f'c / fy) εcu / (εcu + 0.005)",
        variables=[fc_var, fy_var],
        compute_fn=lambda: code.rho_max(fc, fy),
        units="-",
        references=["421.2.2", "derived"],
        decimals=5,
    )
    compute_step(
        trace,
        id="rho_b",
        section=SECTION_MATERIALS,
        title="Balanced reinforcement ratio",
        output_symbol="ρb",
        equation="ρb = 0.85 β1 (f'c / fy) εcu / (εcu + εy)",
        variables=[fc_var, fy_var],
        compute_fn=lambda: code.rho_balanced(fc, fy),
        units="-",
        references=["derived"],
        decimals=5,
    )


def _capacity_steps(trace: CalcTrace, c: float, eps_t: float, phi: float, Mn: float, fy: float) -> None:
    compute_step(
        trace,
        id="eps_t",
        section=SECTION_FLEXURE,
        title="Net tensile strain in extreme tension steel",
        output_symbol="εt",
        equation="εt = εcu (dt - c) / c",
        variables=[("c", "neutral axis depth", c, "mm")],
        compute_fn=lambda: eps_t,
        units="-",
        references=["422.2.2.1"],
        decimals=6,
    )
    compute_step(
        trace,
        id="phi",
        section=SECTION_FLEXURE,
        title="Strength reduction factor",
        output_symbol="φ",
        equation="φ = 0.65 + 0.25 (εt - εy) / 0.003, 0.65 ≤ φ ≤ 0.90",
        variables=[("εt", "net tensile strain", eps_t, "-"), ("fy", "steel yield strength", fy, "MPa")],
        compute_fn=lambda: phi,
        units="-",
        references=["421.2.2"],
    )
    compute_step(
        trace,
        id="phiMn",
        section=SECTION_FLEXURE,
        title="Design flexural strength",
        output_symbol="φMn",
        equation="φMn = φ · Mn",
        variables=[("φ", "strength reduction factor", phi, "-"), ("Mn", "nominal moment", Mn, "kN·m")],
        compute_fn=lambda: phi * Mn,
        units="kN·m",
        references=["409.5.1.1"],
        decimals=2,
    )


def _summary(result: Any, keys: tuple) -> Dict[str, Any]:
    return {k: getattr(result, k) for k in keys if hasattr(result, k)}


# ------------------------------
# Rectangular sections
# ------------------------------
def _solve_rect_singly(trace: CalcTrace, inputs: Dict[str, Any], code: DesignCode, strict: bool) -> Dict[str, Any]:
    beam = SinglyReinforcedBeam(
        b_mm=inputs["b_mm"],
        h_mm=inputs["h_mm"],
        cover_mm=inputs["cover_mm"],
        fc_mpa=inputs["fc_mpa"],
        fy_mpa=inputs["fy_mpa"],
        code=code,
    )
    _material_steps(trace, beam.fc_mpa, beam.fy_mpa, code)
    trace.assumptions.append(Assumption(id="A2", text="Single layer of tension steel at d = h - cover."))

    if inputs["mode"] == "design":
        res = beam.design(inputs["Mu_knm"])
        if res.As_required_mm2 > 0:
            Mn = res.phiMn_knm / res.phi
            _capacity_steps(trace, res.c_mm, res.eps_t, res.phi, Mn, beam.fy_mpa)
        summary = _summary(res, ("As_required_mm2", "phiMn_knm", "phiMn_max_knm", "is_adequate", "message"))
    else:
        res = beam.analyze(inputs["As_mm2"])
        _capacity_steps(trace, res.c_mm, res.eps_t, res.phi, res.Mn_knm, beam.fy_mpa)
        summary = _summary(res, ("a_mm", "c_mm", "eps_t", "phi", "phiMn_knm", "classification", "message"))
    return {"result": asdict(res), "summary": summary}


def _solve_rect_doubly(trace: CalcTrace, inputs: Dict[str, Any], code: DesignCode, strict: bool) -> Dict[str, Any]:
    beam = DoublyReinforcedBeam(
        b_mm=inputs["b_mm"],
        h_mm=inputs["h_mm"],
        cover_mm=inputs["cover_mm"],
        cover_comp_mm=inputs["cover_comp_mm"],
        fc_mpa=inputs["fc_mpa"],
        fy_mpa=inputs["fy_mpa"],
        code=code,
    )
    _material_steps(trace, beam.fc_mpa, beam.fy_mpa, code)
    trace.assumptions.append(
        Assumption(id="A2", text="Compression steel at d' from the compression face; displaced concrete deducted when a ≥ d'.")
    )

    if inputs["mode"] == "design":
        res = beam.design(inputs["Mu_knm"])
        summary = _summary(
            res, ("requires_comp_steel", "As_total_mm2", "Asc_required_mm2", "phiMn_knm", "is_adequate", "message")
        )
    else:
        res = beam.analyze(inputs["As_mm2"], inputs["Asc_mm2"], strict=strict)
        _capacity_steps(trace, res.c_mm, res.eps_t, res.phi, res.Mn_knm, beam.fy_mpa)
        trace.tables["equilibrium"] = {
            "Cc_kn": res.Cc_kn,
            "Cs_kn": res.Cs_kn,
            "T_kn": res.T_kn,
            "residual_kn": res.residual_kn,
            "iterations": res.iterations,
            "converged": res.converged,
        }
        summary = _summary(res, ("c_mm", "fsc_mpa", "comp_yielded", "phi", "phiMn_knm", "converged", "message"))
    return {"result": asdict(res), "summary": summary}


# ------------------------------
# Polygonal sections
# ------------------------------
def _solve_polygon(trace: CalcTrace, inputs: Dict[str, Any], code: DesignCode, strict: bool) -> Dict[str, Any]:
    definition = SectionDefinition.model_validate(inputs["section"])
    section = PolygonSection.from_definition(definition, code=code)
    section.validate_definition()
    props = section.properties

    _material_steps(trace, section.fc_mpa, section.fy_mpa, code)
    trace.assumptions.append(
        Assumption(
            id="A2",
            text="Compression zone area by trapezoidal integration over 100 strips; bars above mid-height are "
            "compression layers unless typed explicitly.",
        )
    )
    trace.tables["section_properties"] = asdict(props)

    if inputs["mode"] == "design":
        res = section.design(inputs["Mu_knm"], strict=strict)
        analysis = res.analysis
        summary = _summary(
            res,
            ("As_required_mm2", "As_min_mm2", "phiMn_knm", "is_adequate", "converged", "hit_area_ceiling", "message"),
        )
    else:
        res = analysis = section.analyze(strict=strict)
        summary = _summary(res, ("c_mm", "a_mm", "eps_t", "phi", "phiMn_knm", "converged", "message"))

    _capacity_steps(trace, analysis.c_mm, analysis.eps_t, analysis.phi, analysis.Mn_knm, section.fy_mpa)
    trace.tables["layers"] = [asdict(lr) for lr in analysis.layers]
    return {"result": asdict(res), "summary": summary}


_DISPATCH: Dict[str, Callable[[CalcTrace, Dict[str, Any], DesignCode, bool], Dict[str, Any]]] = {
    "rect_singly": _solve_rect_singly,
    "rect_doubly": _solve_rect_doubly,
    "polygon_section": _solve_polygon,
}


def solve(
    module: str,
    inputs: Dict[str, Any],
    trace: CalcTrace,
    strict: Optional[bool] = None,
    code: DesignCode = NSCP_2015,
) -> Dict[str, Any]:
    """Run one module on validated inputs, recording steps in `trace`.

    `strict` from the inputs wins over the argument.
    """
    if module not in _DISPATCH:
        raise ValueError(f"Unknown module: {module}")

    strict_run = inputs.get("strict")
    if strict_run is None:
        strict_run = bool(strict)

    trace.assumptions.append(
        Assumption(id="A1", text=f"{code.name} strength design; εcu = {code.eps_cu}, Es = {code.Es_mpa:g} MPa.")
    )
    logger.info(f"Solving {module} ({inputs['mode']})")
    out = _DISPATCH[module](trace, inputs, code, strict_run)

    trace.summary = {k: v for k, v in out["summary"].items() if not (isinstance(v, float) and math.isnan(v))}
    return {"module": module, "mode": inputs["mode"], **out}
