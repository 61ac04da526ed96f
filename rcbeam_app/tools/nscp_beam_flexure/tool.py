from __future__ import annotations

import traceback
from typing import Any, Dict

from loguru import logger

from rcbeam_app.core.schema_utils import validate_inputs
from rcbeam_app.core.settings import tool_settings
from rcbeam_app.core.tool_base import ToolMeta

from .calc_trace import CalcTrace
from .constants import DEFAULT_UNITS_SYSTEM, NSCP_2015
from .errors import ConvergenceError, InvalidInputError
from .exports import export_all
from .logging_utils import get_run_logger, remove_run_logger_sink
from .models import INPUT_MODELS, RectSinglyInputs, SolveRequest
from .paths import compute_input_hash, create_run_dir
from .solver import solve


class NscpBeamFlexureTool:
    """NSCP 2015 beam flexure tool (headless).

    Inputs are a SolveRequest: {"module": ..., "inputs": {...}} where the inner
    inputs follow the module's model in models.INPUT_MODELS.
    """

    meta = ToolMeta(
        id="nscp_beam_flexure",
        name="NSCP Beam Flexure",
        category="Concrete",
        version="1.0.0",
        description="Flexural design and analysis of RC beams (rectangular singly/doubly and polygonal sections) to NSCP 2015.",
    )

    InputModel = SolveRequest

    def default_inputs(self) -> dict:
        inputs = RectSinglyInputs(Mu_knm=150.0).model_dump()
        return {"module": "rect_singly", "inputs": inputs}

    def _strict_default(self) -> bool:
        return bool(tool_settings(self.meta.id).get("strict_convergence", False))

    def run_batch(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        """Validate, solve and export one request. Invalid input gives {"ok": False, "error": ...}."""
        request, err = validate_inputs(self.InputModel, inputs)
        if err is None:
            module = request["module"]
            inputs_norm, err = validate_inputs(INPUT_MODELS[module], request["inputs"])
        if err is not None:
            logger.warning(f"{self.meta.id}: rejected inputs: {err}")
            return {"ok": False, "error": err}

        input_hash = compute_input_hash({"module": module, "inputs": inputs_norm})
        run_dir = create_run_dir(self.meta.id, input_hash)
        log, sink_id = get_run_logger(run_dir, self.meta.id, input_hash)

        try:
            with logger.contextualize(tool_id=self.meta.id, run_dir=str(run_dir)):
                log.info(f"Starting {module} batch run")
                log.info(f"Inputs (validated): {inputs_norm}")

                trace = CalcTrace.new(
                    tool_id=self.meta.id,
                    tool_version=self.meta.version,
                    units_system=DEFAULT_UNITS_SYSTEM,
                    inputs={"module": module, **{k: v for k, v in inputs_norm.items() if k != "section"}},
                    input_hash=input_hash,
                    design_code=NSCP_2015.name,
                )
                if "section" in inputs_norm:
                    trace.tables["section_definition"] = inputs_norm["section"]

                solved = solve(module, inputs_norm, trace, strict=self._strict_default(), code=NSCP_2015)

                results: Dict[str, Any] = {
                    "ok": True,
                    "run_dir": str(run_dir),
                    "input_hash": input_hash,
                    **solved,
                }
                out_paths = export_all(trace, run_dir, results)
                results["outputs"] = {k: str(v) for k, v in out_paths.items()}

                log.info(f"Batch run complete: {solved['summary'].get('message', '')}")
                return results

        except (InvalidInputError, ConvergenceError) as e:
            log.error(f"Batch run rejected: {e}")
            return {
                "ok": False,
                "run_dir": str(run_dir),
                "input_hash": input_hash,
                "error": str(e),
                "error_type": type(e).__name__,
            }

        except Exception as e:
            log.exception("Batch run failed")
            return {
                "ok": False,
                "run_dir": str(run_dir),
                "input_hash": input_hash,
                "error": str(e),
                "error_type": type(e).__name__,
                "traceback": traceback.format_exc(),
            }

        finally:
            remove_run_logger_sink(sink_id)

    def run(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        """Host entry point; this tool has no UI so it always runs the batch."""
        return self.run_batch(inputs)


TOOL = NscpBeamFlexureTool()
