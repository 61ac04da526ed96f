"""
Generalized flexural analysis/design for arbitrary polygonal sections.

Coordinates: x to the right, y upward, compression face at the top (max y).
Reinforcement layers are located by their y from the section bottom
(the y origin of the outline). Depths are measured down from the top fiber.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from functools import cached_property
from typing import TYPE_CHECKING, List, Literal, Optional, Sequence, Tuple

from loguru import logger

from ..constants import NMM_PER_KNM, N_PER_KN, NSCP_2015, DesignCode
from ..errors import ConvergenceError, InvalidInputError, SectionValidationError
from . import geometry
from .geometry import Point
from .mechanics import classify_section, status_message, steel_stress, strain_at_depth, with_warnings

if TYPE_CHECKING:
    from ..models import SectionDefinition

# Neutral-axis solver
MAX_ITERATIONS = 100
FORCE_TOLERANCE_KN = 0.1
DAMPING = 0.5
MAX_STEP_MM = 10.0
C_MARGIN_MM = 1.0
C_SEED_FRACTION = 0.3

# Design-by-search
DESIGN_MAX_ITERATIONS = 50
DESIGN_TARGET_RATIO = 0.999
LEVER_ARM_FRACTION = 0.9
AREA_CEILING_FACTOR = 3.0
UNCONVERGED_AREA_STEP = 1.02

LayerType = Literal["tension", "compression", "auto"]


@dataclass(frozen=True)
class RebarLayer:
    y_mm: float
    area_mm2: float
    description: str = ""
    type: LayerType = "auto"

    def resolved_type(self, mid_height_y: float) -> Literal["tension", "compression"]:
        if self.type == "auto":
            return "compression" if self.y_mm > mid_height_y else "tension"
        return self.type


@dataclass(frozen=True)
class SectionProperties:
    width_mm: float  # bounding-box width
    height_mm: float
    area_mm2: float
    centroid_x_mm: float
    centroid_y_mm: float

    min_x_mm: float
    max_x_mm: float
    min_y_mm: float
    max_y_mm: float

    total_tension_steel_mm2: float
    total_compression_steel_mm2: float
    effective_depth_mm: float  # top fiber to tension steel centroid (or override)
    compression_cover_mm: float  # top fiber to compression steel centroid

    @property
    def mid_height_y_mm(self) -> float:
        return 0.5 * (self.min_y_mm + self.max_y_mm)


@dataclass(frozen=True)
class SteelLayerResult:
    y_mm: float
    depth_mm: float
    area_mm2: float
    strain: float  # compression positive
    stress_mpa: float
    force_kn: float  # As*fs
    net_force_kn: float  # less displaced concrete for bars inside the stress block
    is_tension: bool
    has_yielded: bool
    description: str = ""


@dataclass(frozen=True)
class SectionAnalysisResult:
    properties: SectionProperties

    c_mm: float
    a_mm: float
    beta1: float

    compression_area_mm2: float
    compression_centroid_mm: float

    eps_t: float

    Cc_kn: float
    Cs_kn: float
    T_kn: float
    layers: Tuple[SteelLayerResult, ...]

    phi: float
    Mn_knm: float
    phiMn_knm: float

    classification: str
    is_tension_controlled: bool

    converged: bool
    iterations: int
    residual_kn: float
    warnings: Tuple[str, ...]
    message: str


@dataclass(frozen=True)
class SectionDesignResult:
    Mu_knm: float
    properties: SectionProperties

    tension_layer_index: int
    As_required_mm2: float
    As_min_mm2: float
    As_max_mm2: float  # rectangular ρmax·width·d
    As_ceiling_mm2: float
    As_provided_mm2: float

    c_mm: float
    a_mm: float
    beta1: float
    phi: float
    phiMn_knm: float

    is_tension_controlled: bool
    is_adequate: bool
    converged: bool
    iterations: int
    hit_area_ceiling: bool
    clamped_to_min: bool
    analysis: SectionAnalysisResult
    message: str


@dataclass(frozen=True)
class _Trial:
    c: float
    a: float
    compression_area: float
    compression_centroid: float
    Cc: float
    Cs: float
    T: float
    layers: Tuple[SteelLayerResult, ...]

    @property
    def imbalance(self) -> float:
        return self.T - (self.Cc + self.Cs)


@dataclass(frozen=True)
class PolygonSection:
    """Concrete outline (simple polygon, one winding, no holes) with reinforcement layers.

    Instances are never mutated; design works on copies from `with_layer_area`.
    """

    vertices: Tuple[Point, ...]
    layers: Tuple[RebarLayer, ...]
    fc_mpa: float
    fy_mpa: float
    name: str = ""
    description: str = ""
    effective_depth_mm: Optional[float] = None
    code: DesignCode = NSCP_2015

    @classmethod
    def from_definition(cls, definition: "SectionDefinition", code: DesignCode = NSCP_2015) -> "PolygonSection":
        vertices: List[Point] = [(float(v.x), float(v.y)) for v in definition.vertices]
        if len(vertices) > 3 and vertices[0] == vertices[-1]:
            vertices.pop()  # explicitly closed outline
        layers = tuple(
            RebarLayer(y_mm=float(r.y), area_mm2=float(r.area), description=r.description, type=r.type)
            for r in definition.reinforcement
        )
        d_override = definition.effective_depth
        return cls(
            vertices=tuple(vertices),
            layers=layers,
            fc_mpa=float(definition.fc),
            fy_mpa=float(definition.fy),
            name=definition.name,
            description=definition.description,
            effective_depth_mm=float(d_override) if d_override and d_override > 0 else None,
            code=code,
        )

    # ------------------------------
    # Validation and properties
    # ------------------------------
    def validate_definition(self) -> None:
        if len(self.vertices) < 3:
            raise SectionValidationError("section must have at least 3 vertices")
        if not self.fc_mpa > 0:
            raise SectionValidationError("f'c must be positive")
        if not self.fy_mpa > 0:
            raise SectionValidationError("fy must be positive")
        if len(self.layers) == 0:
            raise SectionValidationError("section must have at least one reinforcement layer")
        for i, layer in enumerate(self.layers, start=1):
            if not layer.area_mm2 > 0:
                raise SectionValidationError(f"reinforcement layer {i} must have positive area")
        if self.properties.area_mm2 <= 0:
            raise SectionValidationError("section outline must enclose a positive area")
        if not geometry.is_simple_polygon(self.vertices):
            raise SectionValidationError("section outline must not intersect itself")

    @cached_property
    def properties(self) -> SectionProperties:
        if len(self.vertices) < 3:
            return SectionProperties(*([0.0] * 13))

        min_x, max_x, min_y, max_y = geometry.bounding_box(self.vertices)
        area, cx, cy = geometry.area_and_centroid(self.vertices)
        mid_y = 0.5 * (min_y + max_y)

        tension_area = tension_moment = 0.0
        comp_area = comp_moment = 0.0
        for layer in self.layers:
            if layer.resolved_type(mid_y) == "compression":
                comp_area += layer.area_mm2
                comp_moment += layer.area_mm2 * layer.y_mm
            else:
                tension_area += layer.area_mm2
                tension_moment += layer.area_mm2 * layer.y_mm

        d = max_y - tension_moment / tension_area if tension_area > 0 else 0.0
        if self.effective_depth_mm:
            d = self.effective_depth_mm
        comp_cover = max_y - comp_moment / comp_area if comp_area > 0 else 0.0

        return SectionProperties(
            width_mm=max_x - min_x,
            height_mm=max_y - min_y,
            area_mm2=area,
            centroid_x_mm=cx,
            centroid_y_mm=cy,
            min_x_mm=min_x,
            max_x_mm=max_x,
            min_y_mm=min_y,
            max_y_mm=max_y,
            total_tension_steel_mm2=tension_area,
            total_compression_steel_mm2=comp_area,
            effective_depth_mm=d,
            compression_cover_mm=comp_cover,
        )

    def calculate_properties(self) -> SectionProperties:
        return self.properties

    # ------------------------------
    # Geometry
    # ------------------------------
    def width_at_y(self, y: float) -> float:
        return geometry.width_at_y(self.vertices, y)

    def width_at_depth(self, depth_from_top: float) -> float:
        return geometry.width_at_y(self.vertices, self.properties.max_y_mm - depth_from_top)

    def compression_block_area(self, a: float) -> float:
        area, _ = geometry.compression_block(self.vertices, self.properties.max_y_mm, a)
        return area

    def compression_block_centroid(self, a: float) -> float:
        _, centroid = geometry.compression_block(self.vertices, self.properties.max_y_mm, a)
        return centroid

    # ------------------------------
    # Working copies
    # ------------------------------
    def with_layer_area(self, index: int, area_mm2: float) -> "PolygonSection":
        layers = list(self.layers)
        layers[index] = replace(layers[index], area_mm2=area_mm2)
        return replace(self, layers=tuple(layers))

    def with_layer(self, layer: RebarLayer) -> "PolygonSection":
        return replace(self, layers=self.layers + (layer,))

    # ------------------------------
    # Analysis
    # ------------------------------
    def _trial(self, c: float, beta1: float) -> _Trial:
        code = self.code
        k_conc = code.stress_block_intensity * self.fc_mpa
        eps_y = code.yield_strain(self.fy_mpa)
        max_y = self.properties.max_y_mm

        a = beta1 * c
        comp_area, comp_centroid = geometry.compression_block(self.vertices, max_y, a)
        Cc = k_conc * comp_area / N_PER_KN

        Cs = 0.0
        T = 0.0
        results: List[SteelLayerResult] = []
        for layer in self.layers:
            depth = max_y - layer.y_mm
            strain = strain_at_depth(c, depth, code.eps_cu)
            stress = steel_stress(strain, self.fy_mpa, code.Es_mpa)
            force = layer.area_mm2 * stress / N_PER_KN

            if strain >= 0:
                net = force
                if depth <= a:
                    net = layer.area_mm2 * (stress - k_conc) / N_PER_KN
                Cs += net
            else:
                net = force
                T += -force

            results.append(
                SteelLayerResult(
                    y_mm=layer.y_mm,
                    depth_mm=depth,
                    area_mm2=layer.area_mm2,
                    strain=strain,
                    stress_mpa=stress,
                    force_kn=force,
                    net_force_kn=net,
                    is_tension=strain < 0,
                    has_yielded=abs(strain) >= eps_y,
                    description=layer.description,
                )
            )

        return _Trial(
            c=c,
            a=a,
            compression_area=comp_area,
            compression_centroid=comp_centroid,
            Cc=Cc,
            Cs=Cs,
            T=T,
            layers=tuple(results),
        )

    def analyze(self, strict: bool = False) -> SectionAnalysisResult:
        """Neutral-axis depth from T = Cc + Cs, then moment capacity about the tension steel."""
        self.validate_definition()

        code = self.code
        props = self.properties
        beta1 = code.beta1(self.fc_mpa)
        k_conc = code.stress_block_intensity * self.fc_mpa
        d = props.effective_depth_mm

        c = C_SEED_FRACTION * (d if d > 0 else props.height_mm)
        c = max(c, C_MARGIN_MM)
        c = min(c, props.height_mm - C_MARGIN_MM)

        converged = False
        iterations = 0
        for iterations in range(1, MAX_ITERATIONS + 1):
            trial = self._trial(c, beta1)
            if abs(trial.imbalance) < FORCE_TOLERANCE_KN:
                converged = True
                break

            # T > C needs a deeper neutral axis; T < C a shallower one.
            width = self.width_at_depth(c)
            if width <= 0:
                width = props.width_mm
            step = trial.imbalance / (k_conc * width / N_PER_KN)
            step = max(min(step, MAX_STEP_MM), -MAX_STEP_MM)
            c += DAMPING * step
            c = max(c, C_MARGIN_MM)
            c = min(c, props.height_mm - C_MARGIN_MM)

        tensile = [-lr.strain for lr in trial.layers if lr.is_tension]
        eps_t = max(tensile) if tensile else 0.0
        phi = code.phi(eps_t, self.fy_mpa)
        classification = classify_section(eps_t, self.fy_mpa, code)

        # Moment of every internal force about the tension steel centroid depth
        Mn = trial.Cc * (d - trial.compression_centroid)
        for lr in trial.layers:
            Mn += lr.net_force_kn * (d - lr.depth_mm)
        Mn /= N_PER_KN

        warnings: List[str] = []
        if not converged:
            warnings.append(
                f"Neutral axis did not converge in {MAX_ITERATIONS} iterations (residual {trial.imbalance:.3f} kN)"
            )
            logger.warning(f"Section '{self.name}' analysis not converged: c={trial.c:.3f} mm, residual={trial.imbalance:.3f} kN")
        else:
            logger.debug(f"Section '{self.name}' converged in {iterations} iterations: c={trial.c:.3f} mm")

        result = SectionAnalysisResult(
            properties=props,
            c_mm=trial.c,
            a_mm=trial.a,
            beta1=beta1,
            compression_area_mm2=trial.compression_area,
            compression_centroid_mm=trial.compression_centroid,
            eps_t=eps_t,
            Cc_kn=trial.Cc,
            Cs_kn=trial.Cs,
            T_kn=trial.T,
            layers=trial.layers,
            phi=phi,
            Mn_knm=Mn,
            phiMn_knm=phi * Mn,
            classification=classification,
            is_tension_controlled=classification == "tension-controlled",
            converged=converged,
            iterations=iterations,
            residual_kn=trial.imbalance,
            warnings=tuple(warnings),
            message=with_warnings(status_message(classification), warnings),
        )
        if strict and not converged:
            raise ConvergenceError(warnings[-1], result=result)
        return result

    # ------------------------------
    # Design
    # ------------------------------
    def _design_base(self) -> Tuple["PolygonSection", int]:
        """Section used for the search and the index of the layer whose area is varied.

        The lowest tension layer is used; a section without one gets a new
        tension layer mirrored from the compression cover (or at the effective
        depth override).
        """
        props = self.properties
        mid_y = props.mid_height_y_mm
        tension = [(i, layer) for i, layer in enumerate(self.layers) if layer.resolved_type(mid_y) == "tension"]
        if tension:
            index = min(tension, key=lambda t: t[1].y_mm)[0]
            return self, index

        if self.effective_depth_mm:
            y = props.max_y_mm - self.effective_depth_mm
        else:
            cover = props.compression_cover_mm if props.compression_cover_mm > 0 else 0.1 * props.height_mm
            y = props.min_y_mm + cover
        layer = RebarLayer(y_mm=y, area_mm2=1.0, description="design tension layer", type="tension")
        logger.info(f"Section '{self.name}' has no tension layer; adding one at y={y:.1f} mm")
        return self.with_layer(layer), len(self.layers)

    def design(self, Mu_knm: float, strict: bool = False) -> SectionDesignResult:
        """Find the tension steel area giving φMn >= Mu by repeated analysis."""
        self.validate_definition()
        if not Mu_knm > 0:
            raise InvalidInputError(f"invalid factored moment: Mu={Mu_knm:.2f}")

        code = self.code
        base, index = self._design_base()
        props = base.properties
        d = props.effective_depth_mm
        if d <= 0:
            raise InvalidInputError(f"invalid effective depth: d={d:.2f}")

        As_min = code.rho_min(self.fc_mpa, self.fy_mpa) * props.width_mm * d
        As_max = code.rho_max(self.fc_mpa, self.fy_mpa) * props.width_mm * d
        As_ceiling = AREA_CEILING_FACTOR * As_max

        As = Mu_knm * NMM_PER_KNM / (code.phi_tension_controlled * self.fy_mpa * LEVER_ARM_FRACTION * d)
        As = min(As, As_ceiling)

        adequate = False
        hit_ceiling = False
        iterations = 0
        for iterations in range(1, DESIGN_MAX_ITERATIONS + 1):
            analysis = base.with_layer_area(index, As).analyze()
            reached = analysis.phiMn_knm >= DESIGN_TARGET_RATIO * Mu_knm
            if reached and analysis.converged:
                adequate = True
                break
            if As >= As_ceiling:
                hit_ceiling = True
                break
            if reached:
                # unbalanced trial, step past it
                ratio = UNCONVERGED_AREA_STEP
            else:
                ratio = Mu_knm / analysis.phiMn_knm if analysis.phiMn_knm > 0 else 2.0
            As = min(As * ratio, As_ceiling)

        clamped = False
        if adequate and As < As_min:
            As = As_min
            analysis = base.with_layer_area(index, As).analyze()
            clamped = True

        if adequate:
            message = (
                "Design OK - Section is tension-controlled"
                if analysis.is_tension_controlled
                else "Design OK - Section is in transition zone"
            )
        else:
            message = "Design inadequate - Section cannot resist the required moment"

        warnings: List[str] = []
        if clamped:
            warnings.append(f"Steel area raised to the code minimum As,min={As_min:.1f} mm²")
        if hit_ceiling:
            warnings.append(f"Steel area reached the search ceiling {As_ceiling:.1f} mm² (3·ρmax·b·d)")
            logger.warning(f"Section '{self.name}' design hit area ceiling at Mu={Mu_knm:.2f} kN-m")
        elif not adequate:
            warnings.append(f"Design search did not reach Mu in {DESIGN_MAX_ITERATIONS} iterations")
            logger.warning(f"Section '{self.name}' design search exhausted at As={As:.1f} mm²")
        warnings.extend(analysis.warnings)

        result = SectionDesignResult(
            Mu_knm=Mu_knm,
            properties=props,
            tension_layer_index=index,
            As_required_mm2=As,
            As_min_mm2=As_min,
            As_max_mm2=As_max,
            As_ceiling_mm2=As_ceiling,
            As_provided_mm2=As,
            c_mm=analysis.c_mm,
            a_mm=analysis.a_mm,
            beta1=analysis.beta1,
            phi=analysis.phi,
            phiMn_knm=analysis.phiMn_knm,
            is_tension_controlled=analysis.is_tension_controlled,
            is_adequate=adequate,
            converged=analysis.converged,
            iterations=iterations,
            hit_area_ceiling=hit_ceiling,
            clamped_to_min=clamped,
            analysis=analysis,
            message=with_warnings(message, warnings),
        )
        search_exhausted = not adequate and not hit_ceiling
        if strict and (search_exhausted or not analysis.converged):
            raise ConvergenceError(warnings[-1], result=result)
        return result


def rebar_layers(items: Sequence[Tuple[float, float]], type: LayerType = "auto") -> Tuple[RebarLayer, ...]:
    """Build layers from (y_mm, area_mm2) pairs."""
    return tuple(RebarLayer(y_mm=y, area_mm2=area, type=type) for y, area in items)
