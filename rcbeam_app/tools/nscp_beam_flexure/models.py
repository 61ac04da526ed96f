from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Mode = Literal["design", "analysis"]
ModuleName = Literal["rect_singly", "rect_doubly", "polygon_section"]


class Vertex(BaseModel):
    x: float
    y: float


class RebarLayerInput(BaseModel):
    y: float = Field(..., description="Layer centroid height from the section bottom (mm).")
    area: float = Field(..., description="Steel area of the layer (mm²).")
    description: str = ""
    type: Literal["tension", "compression", "auto"] = "auto"

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v: Any) -> Any:
        if v is None:
            return "auto"
        if isinstance(v, str):
            v = v.strip().lower()
            return v or "auto"
        return v


class SectionDefinition(BaseModel):
    """
    Polygonal section record, as stored in section JSON files.

    Values are deliberately not range checked here: PolygonSection.validate_definition()
    reports each problem with its own message.
    """

    name: str = ""
    description: str = ""
    fc: float = Field(..., description="Concrete compressive strength f'c (MPa).")
    fy: float = Field(..., description="Steel yield strength fy (MPa).")
    vertices: List[Vertex] = Field(default_factory=list)
    reinforcement: List[RebarLayerInput] = Field(default_factory=list)
    effective_depth: Optional[float] = Field(None, description="Optional effective depth override (mm).")


class _ModeInputs(BaseModel):
    mode: Mode = Field("design", description="design: find steel for Mu; analysis: capacity of given steel.")
    Mu_knm: Optional[float] = Field(None, gt=0.0, description="Factored moment Mu (kN-m), design mode.")
    strict: Optional[bool] = Field(None, description="Raise on non-convergence (defaults to the user setting).")

    @model_validator(mode="after")
    def _mode_requirements(self):
        if self.mode == "design" and self.Mu_knm is None:
            raise ValueError("Mu_knm is required in design mode.")
        return self


class RectSinglyInputs(_ModeInputs):
    """Rectangular beam with tension steel only. cover_mm is measured to the steel centroid."""

    b_mm: float = Field(300.0, gt=0.0, description="Beam width b (mm).")
    h_mm: float = Field(500.0, gt=0.0, description="Overall depth h (mm).")
    cover_mm: float = Field(65.0, gt=0.0, description="Bottom face to tension steel centroid (mm).")
    fc_mpa: float = Field(28.0, gt=0.0, description="f'c (MPa).")
    fy_mpa: float = Field(415.0, gt=0.0, description="fy (MPa).")
    As_mm2: Optional[float] = Field(None, gt=0.0, description="Tension steel area (mm²), analysis mode.")

    @model_validator(mode="after")
    def _cross_checks(self):
        if self.cover_mm >= self.h_mm:
            raise ValueError("cover_mm must be less than h_mm.")
        if self.mode == "analysis" and self.As_mm2 is None:
            raise ValueError("As_mm2 is required in analysis mode.")
        return self


class RectDoublyInputs(RectSinglyInputs):
    cover_comp_mm: float = Field(65.0, gt=0.0, description="Compression face to compression steel centroid d' (mm).")
    Asc_mm2: float = Field(0.0, ge=0.0, description="Compression steel area (mm²), analysis mode.")


class PolygonSectionInputs(_ModeInputs):
    section: SectionDefinition


class SolveRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    module: ModuleName = "rect_singly"
    inputs: Dict[str, Any] = Field(default_factory=dict)


INPUT_MODELS = {
    "rect_singly": RectSinglyInputs,
    "rect_doubly": RectDoublyInputs,
    "polygon_section": PolygonSectionInputs,
}
