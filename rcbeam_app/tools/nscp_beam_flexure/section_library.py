from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from .analysis.polygon import PolygonSection
from .constants import NSCP_2015, DesignCode
from .errors import InvalidInputError
from .models import SectionDefinition


def load_section_file(path: Union[str, Path], code: DesignCode = NSCP_2015) -> PolygonSection:
    """Read a JSON section record and return the validated section.

    Raises pydantic.ValidationError for a malformed record and
    SectionValidationError when the record fails the section rules.
    """
    p = Path(path)
    definition = SectionDefinition.model_validate_json(p.read_text(encoding="utf-8"))
    section = PolygonSection.from_definition(definition, code=code)
    section.validate_definition()
    logger.debug(f"Loaded section '{section.name}' from {p} ({len(section.vertices)} vertices, {len(section.layers)} layers)")
    return section


def save_section_file(definition: SectionDefinition, path: Union[str, Path]) -> Path:
    p = Path(path)
    p.write_text(json.dumps(definition.model_dump(), indent=2), encoding="utf-8")
    return p


def _layer(y: float, area: float, description: str, type: str) -> Dict[str, Any]:
    return {"y": y, "area": area, "description": description, "type": type}


def rectangle_definition(
    b_mm: float,
    h_mm: float,
    fc_mpa: float,
    fy_mpa: float,
    As_mm2: float,
    cover_mm: float,
    Asc_mm2: float = 0.0,
    cover_comp_mm: Optional[float] = None,
    name: str = "Rectangular beam",
) -> SectionDefinition:
    """b×h rectangle, bottom-left corner at the origin, counter-clockwise."""
    layers: List[Dict[str, Any]] = [_layer(cover_mm, As_mm2, "Bottom bars", "tension")]
    if Asc_mm2 > 0:
        d_prime = cover_comp_mm if cover_comp_mm is not None else cover_mm
        layers.append(_layer(h_mm - d_prime, Asc_mm2, "Top bars", "compression"))

    return SectionDefinition.model_validate(
        {
            "name": name,
            "description": f"{b_mm:g} x {h_mm:g} mm rectangle",
            "fc": fc_mpa,
            "fy": fy_mpa,
            "vertices": [
                {"x": 0.0, "y": 0.0},
                {"x": b_mm, "y": 0.0},
                {"x": b_mm, "y": h_mm},
                {"x": 0.0, "y": h_mm},
            ],
            "reinforcement": layers,
        }
    )


def tee_definition(
    flange_width_mm: float,
    flange_thickness_mm: float,
    web_width_mm: float,
    h_mm: float,
    fc_mpa: float,
    fy_mpa: float,
    As_mm2: float,
    cover_mm: float,
    name: str = "T-beam",
) -> SectionDefinition:
    """T-section with the flange on top, web centered, bottom of web at y = 0."""
    if flange_thickness_mm >= h_mm or web_width_mm >= flange_width_mm:
        raise InvalidInputError("T-beam flange must be thinner than h and wider than the web.")

    x0 = 0.5 * (flange_width_mm - web_width_mm)
    x1 = x0 + web_width_mm
    y_f = h_mm - flange_thickness_mm
    return SectionDefinition.model_validate(
        {
            "name": name,
            "description": f"T-beam bf={flange_width_mm:g} hf={flange_thickness_mm:g} bw={web_width_mm:g} h={h_mm:g} mm",
            "fc": fc_mpa,
            "fy": fy_mpa,
            "vertices": [
                {"x": x0, "y": 0.0},
                {"x": x1, "y": 0.0},
                {"x": x1, "y": y_f},
                {"x": flange_width_mm, "y": y_f},
                {"x": flange_width_mm, "y": h_mm},
                {"x": 0.0, "y": h_mm},
                {"x": 0.0, "y": y_f},
                {"x": x0, "y": y_f},
            ],
            "reinforcement": [_layer(cover_mm, As_mm2, "Bottom bars", "tension")],
        }
    )
