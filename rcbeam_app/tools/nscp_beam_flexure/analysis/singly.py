from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

from loguru import logger

from ..constants import NMM_PER_KNM, N_PER_KN, NSCP_2015, DesignCode
from ..errors import InvalidInputError
from .mechanics import classify_section, status_message, tensile_strain, with_warnings

# closed-form φMn equals Mu up to rounding
ADEQUACY_RTOL = 1e-9


@dataclass(frozen=True)
class SinglyDesignResult:
    Mu_knm: float

    As_required_mm2: float
    As_min_mm2: float
    As_max_mm2: float
    As_provided_mm2: float

    rho_required: float
    rho_min: float
    rho_max: float
    rho_balanced: float

    a_mm: float
    c_mm: float
    eps_t: float
    phi: float

    phiMn_max_knm: float
    phiMn_knm: float

    is_tension_controlled: bool
    is_adequate: bool
    message: str


@dataclass(frozen=True)
class SinglyAnalysisResult:
    As_mm2: float

    a_mm: float
    c_mm: float
    beta1: float
    eps_t: float
    phi: float

    rho: float
    rho_min: float
    rho_max: float
    rho_balanced: float

    Cc_kn: float
    T_kn: float
    Mn_knm: float
    phiMn_knm: float

    classification: str
    is_tension_controlled: bool
    meets_min_reinf: bool
    meets_max_reinf: bool
    warnings: Tuple[str, ...]
    message: str


@dataclass(frozen=True)
class SinglyReinforcedBeam:
    """Rectangular section with one layer of tension steel.

    d = h - cover, where cover is measured to the centroid of the tension steel.
    """

    b_mm: float
    h_mm: float
    cover_mm: float
    fc_mpa: float
    fy_mpa: float
    code: DesignCode = NSCP_2015

    @property
    def d_mm(self) -> float:
        return self.h_mm - self.cover_mm

    def _validate(self) -> None:
        if self.b_mm <= 0 or self.d_mm <= 0:
            raise InvalidInputError(f"invalid beam dimensions: width={self.b_mm:.2f}, d={self.d_mm:.2f}")
        if self.fc_mpa <= 0 or self.fy_mpa <= 0:
            raise InvalidInputError(f"invalid material properties: f'c={self.fc_mpa:.2f}, fy={self.fy_mpa:.2f}")

    def max_tension_controlled_capacity(self) -> Tuple[float, float, float]:
        """Return (As_max, a_max, phiMn_max) for ρ = ρmax with φ = 0.90."""
        code = self.code
        b, d, fc, fy = self.b_mm, self.d_mm, self.fc_mpa, self.fy_mpa
        As_max = code.rho_max(fc, fy) * b * d
        a_max = As_max * fy / (code.stress_block_intensity * fc * b)
        phiMn_max = code.phi_tension_controlled * code.stress_block_intensity * fc * b * a_max * (d - a_max / 2.0) / NMM_PER_KNM
        return As_max, a_max, phiMn_max

    def required_rho(self, Mu_knm: float) -> float:
        """Closed-form ρ for Mu assuming φ = 0.90; NaN when the quadratic has no real root."""
        code = self.code
        k = code.stress_block_intensity * self.fc_mpa
        Rn = Mu_knm * NMM_PER_KNM / (code.phi_tension_controlled * self.b_mm * self.d_mm**2)
        term = 2.0 * Rn / k
        if term > 1.0:
            return float("nan")
        return (k / self.fy_mpa) * (1.0 - math.sqrt(1.0 - term))

    def design(self, Mu_knm: float) -> SinglyDesignResult:
        self._validate()
        if not Mu_knm > 0:
            raise InvalidInputError(f"invalid factored moment: Mu={Mu_knm:.2f}")

        code = self.code
        b, d, fc, fy = self.b_mm, self.d_mm, self.fc_mpa, self.fy_mpa
        beta1 = code.beta1(fc)
        rho_min = code.rho_min(fc, fy)
        rho_max = code.rho_max(fc, fy)
        rho_bal = code.rho_balanced(fc, fy)
        As_min = rho_min * b * d
        As_max, _a_max, phiMn_max = self.max_tension_controlled_capacity()

        def _inadequate(message: str) -> SinglyDesignResult:
            logger.info(f"Singly design inadequate: Mu={Mu_knm:.2f} kN-m, phiMn,max={phiMn_max:.2f} kN-m")
            return SinglyDesignResult(
                Mu_knm=Mu_knm,
                As_required_mm2=0.0,
                As_min_mm2=As_min,
                As_max_mm2=As_max,
                As_provided_mm2=0.0,
                rho_required=0.0,
                rho_min=rho_min,
                rho_max=rho_max,
                rho_balanced=rho_bal,
                a_mm=0.0,
                c_mm=0.0,
                eps_t=0.0,
                phi=0.0,
                phiMn_max_knm=phiMn_max,
                phiMn_knm=phiMn_max,
                is_tension_controlled=False,
                is_adequate=False,
                message=message,
            )

        if Mu_knm > phiMn_max:
            return _inadequate(
                f"Section inadequate for singly reinforced design. Mu={Mu_knm:.2f} kN-m > φMn,max={phiMn_max:.2f} kN-m. "
                "Consider increasing section size or using doubly reinforced design."
            )

        rho_calc = self.required_rho(Mu_knm)
        if math.isnan(rho_calc):
            return _inadequate("Section inadequate - moment too high for singly reinforced design")

        rho = max(rho_calc, rho_min)
        As = rho * b * d

        # Capacity is taken with the actual φ; ρ <= ρmax keeps the section near tension control.
        a = As * fy / (code.stress_block_intensity * fc * b)
        c = a / beta1
        eps_t = tensile_strain(c, d, code.eps_cu)
        phi = code.phi(eps_t, fy)
        phiMn = phi * As * fy * (d - a / 2.0) / NMM_PER_KNM
        tension_controlled = classify_section(eps_t, fy, code) == "tension-controlled"
        adequate = phiMn >= Mu_knm * (1.0 - ADEQUACY_RTOL)

        if adequate and tension_controlled:
            message = "Design OK - Section is tension-controlled"
        elif adequate:
            message = "Design OK - Section is in transition zone"
        else:
            message = (
                f"Design inadequate - φ={phi:.3f} in the transition zone gives φMn={phiMn:.2f} kN-m < Mu={Mu_knm:.2f} kN-m"
            )

        return SinglyDesignResult(
            Mu_knm=Mu_knm,
            As_required_mm2=As,
            As_min_mm2=As_min,
            As_max_mm2=As_max,
            As_provided_mm2=As,
            rho_required=rho_calc,
            rho_min=rho_min,
            rho_max=rho_max,
            rho_balanced=rho_bal,
            a_mm=a,
            c_mm=c,
            eps_t=eps_t,
            phi=phi,
            phiMn_max_knm=phiMn_max,
            phiMn_knm=phiMn,
            is_tension_controlled=tension_controlled,
            is_adequate=adequate,
            message=message,
        )

    def analyze(self, As_mm2: float) -> SinglyAnalysisResult:
        self._validate()
        if not As_mm2 > 0:
            raise InvalidInputError(f"invalid reinforcement area: As={As_mm2:.2f}")

        code = self.code
        b, d, fc, fy = self.b_mm, self.d_mm, self.fc_mpa, self.fy_mpa
        beta1 = code.beta1(fc)
        rho_min = code.rho_min(fc, fy)
        rho_max = code.rho_max(fc, fy)
        rho = As_mm2 / (b * d)

        # T = C: As*fy = 0.85*f'c*b*a
        a = As_mm2 * fy / (code.stress_block_intensity * fc * b)
        c = a / beta1
        eps_t = tensile_strain(c, d, code.eps_cu)
        phi = code.phi(eps_t, fy)
        classification = classify_section(eps_t, fy, code)

        T = As_mm2 * fy / N_PER_KN
        Mn = As_mm2 * fy * (d - a / 2.0) / NMM_PER_KNM

        warnings = []
        if rho < rho_min:
            warnings.append("Below minimum reinforcement")
        if rho > rho_max:
            warnings.append("Exceeds maximum reinforcement")

        return SinglyAnalysisResult(
            As_mm2=As_mm2,
            a_mm=a,
            c_mm=c,
            beta1=beta1,
            eps_t=eps_t,
            phi=phi,
            rho=rho,
            rho_min=rho_min,
            rho_max=rho_max,
            rho_balanced=code.rho_balanced(fc, fy),
            Cc_kn=T,
            T_kn=T,
            Mn_knm=Mn,
            phiMn_knm=phi * Mn,
            classification=classification,
            is_tension_controlled=classification == "tension-controlled",
            meets_min_reinf=rho >= rho_min,
            meets_max_reinf=rho <= rho_max,
            warnings=tuple(warnings),
            message=with_warnings(status_message(classification), warnings),
        )
