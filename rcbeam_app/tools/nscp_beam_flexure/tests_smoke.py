from __future__ import annotations

import json
import os
import shutil
import tempfile
from pathlib import Path

from loguru import logger

from rcbeam_app.__main__ import main as host_main
from rcbeam_app.core.loader import discover_tools
from rcbeam_app.core.logging import configure_logging
from rcbeam_app.core.settings import save_settings

from .section_library import tee_definition
from .tool import TOOL


def _assert_artifacts(run_dir: Path) -> None:
    required = ["calc_trace.json", "results.json", "run.log"]
    missing = [f for f in required if not (run_dir / f).exists()]
    assert not missing, f"Missing artifacts in {run_dir}: {missing}"


def _with_temp_data_dir(fn) -> None:
    tmp = Path(tempfile.mkdtemp(prefix="rcbeam_localappdata_"))
    old = os.environ.get("LOCALAPPDATA")
    try:
        os.environ["LOCALAPPDATA"] = str(tmp)  # force outputs to temp
        fn(tmp)
    finally:
        if old is None:
            os.environ.pop("LOCALAPPDATA", None)
        else:
            os.environ["LOCALAPPDATA"] = old
        shutil.rmtree(tmp, ignore_errors=True)


def test_smoke_rectangular_cases():
    def body(_tmp: Path) -> None:
        r1 = TOOL.run_batch(TOOL.default_inputs())
        assert r1["ok"] is True
        _assert_artifacts(Path(r1["run_dir"]))
        assert r1["summary"]["is_adequate"] is True

        trace = json.loads((Path(r1["run_dir"]) / "calc_trace.json").read_text(encoding="utf-8"))
        assert {"beta1", "rho_min", "rho_max", "phiMn"} <= {s["id"] for s in trace["steps"]}

        r2 = TOOL.run(
            {
                "module": "rect_doubly",
                "inputs": {"mode": "analysis", "As_mm2": 2923.0, "Asc_mm2": 618.0, "cover_comp_mm": 65.0},
            }
        )
        assert r2["ok"] is True
        assert r2["result"]["converged"] is True
        _assert_artifacts(Path(r2["run_dir"]))

    _with_temp_data_dir(body)


def test_smoke_polygon_case():
    def body(_tmp: Path) -> None:
        section = tee_definition(600.0, 100.0, 250.0, 500.0, 28.0, 415.0, As_mm2=1500.0, cover_mm=60.0).model_dump()
        res = TOOL.run_batch({"module": "polygon_section", "inputs": {"mode": "design", "Mu_knm": 250.0, "section": section}})
        assert res["ok"] is True
        assert res["result"]["is_adequate"] is True
        run_dir = Path(res["run_dir"])
        _assert_artifacts(run_dir)
        assert "Solving polygon_section" in (run_dir / "run.log").read_text(encoding="utf-8")

    _with_temp_data_dir(body)


def test_smoke_invalid_inputs_are_reported():
    def body(_tmp: Path) -> None:
        bad_request = TOOL.run_batch({"module": "rect_singly", "inputs": {}, "extra": 1})
        assert bad_request["ok"] is False

        missing_mu = TOOL.run_batch({"module": "rect_singly", "inputs": {"mode": "design"}})
        assert missing_mu["ok"] is False
        assert "Mu_knm" in missing_mu["error"]

        bad_section = TOOL.run_batch(
            {
                "module": "polygon_section",
                "inputs": {
                    "mode": "analysis",
                    "section": {"fc": 28, "fy": 415, "vertices": [{"x": 0, "y": 0}], "reinforcement": []},
                },
            }
        )
        assert bad_section["ok"] is False
        assert bad_section["error_type"] == "SectionValidationError"
        assert "at least 3 vertices" in bad_section["error"]

    _with_temp_data_dir(body)


def test_smoke_strict_convergence_setting():
    def body(_tmp: Path) -> None:
        save_settings({"nscp_beam_flexure": {"strict_convergence": True}})
        res = TOOL.run_batch(
            {"module": "rect_doubly", "inputs": {"mode": "analysis", "As_mm2": 2923.0, "Asc_mm2": 618.0}}
        )
        # converges well within the cap, so strict mode changes nothing here
        assert res["ok"] is True

    _with_temp_data_dir(body)


def test_smoke_host_discovery_and_logging():
    def body(tmp: Path) -> None:
        configure_logging(console_level="WARNING")
        tools = discover_tools()
        assert any(t.meta.id == "nscp_beam_flexure" for t in tools)
        logger.complete()
        assert (tmp / "RCBeamToolbox" / "logs" / "rcbeam.log").exists()
        logger.remove()

    _with_temp_data_dir(body)


def test_smoke_host_entry_point_lists_tools(capsys):
    def body(tmp: Path) -> None:
        try:
            assert host_main(["--log-level", "WARNING"]) == 0
            logger.complete()
        finally:
            logger.remove()
        out = capsys.readouterr().out
        assert "nscp_beam_flexure" in out
        assert (tmp / "RCBeamToolbox" / "logs" / "rcbeam.log").exists()

    _with_temp_data_dir(body)


def test_smoke_host_entry_point_runs_request_file(capsys):
    def body(tmp: Path) -> None:
        request = tmp / "request.json"
        request.write_text(
            json.dumps({"module": "rect_singly", "inputs": {"mode": "design", "Mu_knm": 150.0}}), encoding="utf-8"
        )
        bad = tmp / "bad.json"
        bad.write_text(json.dumps({"module": "rect_singly", "inputs": {"mode": "design"}}), encoding="utf-8")
        try:
            assert host_main(["--tool", "nscp_beam_flexure", "--input", str(request), "--log-level", "WARNING"]) == 0
            res = json.loads(capsys.readouterr().out)
            assert res["ok"] is True
            _assert_artifacts(Path(res["run_dir"]))

            assert host_main(["--tool", "nscp_beam_flexure", "--input", str(bad), "--log-level", "WARNING"]) == 1
            capsys.readouterr()
            assert host_main(["--tool", "no_such_tool", "--log-level", "WARNING"]) == 2
        finally:
            logger.complete()
            logger.remove()

    _with_temp_data_dir(body)
