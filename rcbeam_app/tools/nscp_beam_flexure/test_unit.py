from __future__ import annotations

import math

import pytest

from rcbeam_app.core.schema_utils import validate_inputs

from .analysis.mechanics import classify_section, steel_stress, strain_at_depth, tensile_strain, with_warnings
from .calc_trace import CalcTrace, TraceMeta, compute_step, infer_units
from .constants import (
    NSCP_2015,
    DesignCode,
    balanced_reinf_ratio,
    max_reinf_ratio,
    min_reinf_ratio,
    strength_reduction_factor,
    stress_block_factor,
    yield_strain,
)
from .models import RectSinglyInputs
from .paths import compute_input_hash


def _trace() -> CalcTrace:
    meta = TraceMeta(
        tool_id="nscp_beam_flexure",
        tool_version="test",
        timestamp="2000-01-01T00:00:00",
        units_system="SI",
        input_hash="testhash",
    )
    return CalcTrace(meta=meta)


def test_beta1_values() -> None:
    assert stress_block_factor(21.0) == pytest.approx(0.85)
    assert stress_block_factor(28.0) == pytest.approx(0.85)
    assert stress_block_factor(35.0) == pytest.approx(0.80)
    assert stress_block_factor(42.0) == pytest.approx(0.75)
    assert stress_block_factor(56.0) == pytest.approx(0.65)
    assert stress_block_factor(80.0) == pytest.approx(0.65)


def test_phi_limits_and_transition() -> None:
    eps_y = 415.0 / 200000.0
    assert strength_reduction_factor(0.0005, 415.0) == pytest.approx(0.65)
    assert strength_reduction_factor(eps_y, 415.0) == pytest.approx(0.65)
    assert strength_reduction_factor(eps_y + 0.0015, 415.0) == pytest.approx(0.775)
    assert strength_reduction_factor(eps_y + 0.003, 415.0) == pytest.approx(0.90)
    assert strength_reduction_factor(0.02, 415.0) == pytest.approx(0.90)


def test_phi_monotone_and_bounded() -> None:
    last = 0.0
    for i in range(200):
        eps_t = i * 0.00005
        phi = strength_reduction_factor(eps_t, 415.0)
        assert 0.65 <= phi <= 0.90
        assert phi >= last
        last = phi


def test_reinforcement_ratios() -> None:
    # fy = 415: 1.4/fy governs at f'c = 28, sqrt(f'c)/(4 fy) at f'c = 35
    assert min_reinf_ratio(28.0, 415.0) == pytest.approx(1.4 / 415.0)
    assert min_reinf_ratio(35.0, 415.0) == pytest.approx(math.sqrt(35.0) / (4.0 * 415.0))
    assert max_reinf_ratio(28.0, 415.0) == pytest.approx(0.85 * 0.85 * (28.0 / 415.0) * 0.375)
    assert max_reinf_ratio(28.0, 415.0) == pytest.approx(0.018280, rel=1e-3)
    assert balanced_reinf_ratio(28.0, 415.0) == pytest.approx(0.028816, rel=1e-3)
    assert min_reinf_ratio(28.0, 415.0) < max_reinf_ratio(28.0, 415.0) < balanced_reinf_ratio(28.0, 415.0)


def test_design_code_is_injectable() -> None:
    alt = DesignCode(name="alt", phi_tension_controlled=0.85)
    assert strength_reduction_factor(0.02, 415.0, code=alt) == pytest.approx(0.85)
    assert NSCP_2015.phi(0.02, 415.0) == pytest.approx(0.90)


def test_strain_and_stress_primitives() -> None:
    assert strain_at_depth(100.0, 0.0, 0.003) == pytest.approx(0.003)
    assert strain_at_depth(100.0, 100.0, 0.003) == pytest.approx(0.0)
    assert strain_at_depth(100.0, 400.0, 0.003) == pytest.approx(-0.009)
    assert tensile_strain(100.0, 400.0, 0.003) == pytest.approx(0.009)

    assert steel_stress(0.001, 415.0, 200000.0) == pytest.approx(200.0)
    assert steel_stress(0.01, 415.0, 200000.0) == pytest.approx(415.0)
    assert steel_stress(-0.01, 415.0, 200000.0) == pytest.approx(-415.0)


def test_classification() -> None:
    assert classify_section(0.006, 415.0, NSCP_2015) == "tension-controlled"
    assert classify_section(0.005, 415.0, NSCP_2015) == "tension-controlled"
    assert classify_section(0.003, 415.0, NSCP_2015) == "transition"
    assert classify_section(0.001, 415.0, NSCP_2015) == "compression-controlled"


def test_with_warnings_joins_messages() -> None:
    assert with_warnings("OK", []) == "OK"
    assert with_warnings("OK", ["a", "b"]) == "OK | WARNING: a | WARNING: b"


def test_input_hash_deterministic() -> None:
    a = {"b": 2.0, "a": 1.0, "section": {"y": 1.0, "x": [1.0, 2.0]}}
    b = {"a": 1.0, "section": {"x": [1.0, 2.0], "y": 1.0}, "b": 2.0}
    assert compute_input_hash(a) == compute_input_hash(b)
    assert compute_input_hash(a) != compute_input_hash({**a, "b": 2.5})


def test_compute_step_records_substitution() -> None:
    tr = _trace()
    value = compute_step(
        tr,
        id="eps_y",
        section="Materials",
        title="Yield strain",
        output_symbol="εy",
        equation="εy = fy / Es",
        variables=[("fy", "yield strength", 415.0, "MPa"), ("Es", "modulus", 200000.0, "MPa")],
        compute_fn=lambda: 415.0 / 200000.0,
        units="-",
        references=["420.2.2.2"],
        decimals=5,
    )
    assert value == pytest.approx(0.002075)
    step = tr.step("eps_y")
    assert step.value_rounded == pytest.approx(0.002075, abs=1e-5)
    assert "415 MPa" in step.substitution
    assert step.references[0].type == "code"

    with pytest.raises(ValueError):
        compute_step(
            tr,
            id="",
            section="x",
            title="x",
            output_symbol="x",
            equation="x",
            variables=[],
            compute_fn=lambda: 1.0,
            units="-",
            references=[],
        )


def test_infer_units() -> None:
    assert infer_units("As_mm2") == "mm²"
    assert infer_units("b_mm") == "mm"
    assert infer_units("fc_mpa") == "MPa"
    assert infer_units("Mu_knm") == "kN·m"
    assert infer_units("mode") == "-"


def test_validate_inputs_reports_fields() -> None:
    ok, err = validate_inputs(RectSinglyInputs, {"mode": "analysis", "As_mm2": 1000.0})
    assert err is None
    assert ok["b_mm"] == 300.0

    _, err = validate_inputs(RectSinglyInputs, {"mode": "design", "Mu_knm": 100.0, "b_mm": 0.0})
    assert err is not None and err.startswith("b_mm:")

    _, err = validate_inputs(RectSinglyInputs, {"mode": "design", "cover_mm": 600.0, "Mu_knm": 100.0})
    assert "cover_mm must be less than h_mm" in err


def test_yield_strain() -> None:
    assert yield_strain(415.0) == pytest.approx(0.002075)
    assert yield_strain(275.0) == pytest.approx(0.001375)
