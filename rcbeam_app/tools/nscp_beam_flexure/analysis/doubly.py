from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from loguru import logger

from ..constants import NMM_PER_KNM, N_PER_KN, NSCP_2015, DesignCode
from ..errors import ConvergenceError, InvalidInputError
from .mechanics import classify_section, status_message, steel_stress, strain_at_depth, tensile_strain, with_warnings
from .singly import SinglyDesignResult, SinglyReinforcedBeam

MAX_ITERATIONS = 50
C_TOLERANCE_MM = 0.01
FORCE_TOLERANCE_KN = 0.1
DAMPING = 0.5
C_FLOOR_MM = 1.0


@dataclass(frozen=True)
class DoublyDesignResult:
    Mu_knm: float
    requires_comp_steel: bool

    Mu1_knm: float  # concrete couple
    Mu2_knm: float  # steel couple

    As1_mm2: float
    As2_mm2: float
    As_total_mm2: float
    Asc_required_mm2: float

    As_min_mm2: float
    As_max_mm2: float
    rho_min: float
    rho_max: float
    rho_balanced: float

    a_max_mm: float
    c_max_mm: float

    fsc_mpa: float
    comp_yielded: bool
    eps_t: float
    eps_sc: float

    phi: float
    phiMn_knm: float

    is_tension_controlled: bool
    is_adequate: bool
    message: str
    singly: Optional[SinglyDesignResult] = None


@dataclass(frozen=True)
class DoublyAnalysisResult:
    As_mm2: float
    Asc_mm2: float

    a_mm: float
    c_mm: float
    beta1: float

    eps_t: float
    eps_sc: float
    fs_mpa: float
    fsc_mpa: float
    tension_yielded: bool
    comp_yielded: bool

    rho: float
    rho_comp: float
    rho_min: float
    rho_max: float
    rho_balanced: float

    Cc_kn: float
    Cs_kn: float
    T_kn: float

    phi: float
    Mn_knm: float
    phiMn_knm: float

    classification: str
    is_tension_controlled: bool
    meets_min_reinf: bool

    converged: bool
    iterations: int
    residual_kn: float
    warnings: Tuple[str, ...]
    message: str


@dataclass(frozen=True)
class DoublyReinforcedBeam:
    """Rectangular section with tension steel at d and compression steel at d'."""

    b_mm: float
    h_mm: float
    cover_mm: float
    cover_comp_mm: float
    fc_mpa: float
    fy_mpa: float
    code: DesignCode = NSCP_2015

    @property
    def d_mm(self) -> float:
        return self.h_mm - self.cover_mm

    def as_singly(self) -> SinglyReinforcedBeam:
        return SinglyReinforcedBeam(
            b_mm=self.b_mm, h_mm=self.h_mm, cover_mm=self.cover_mm, fc_mpa=self.fc_mpa, fy_mpa=self.fy_mpa, code=self.code
        )

    def _validate(self) -> None:
        if self.b_mm <= 0 or self.d_mm <= 0:
            raise InvalidInputError(f"invalid beam dimensions: width={self.b_mm:.2f}, d={self.d_mm:.2f}")
        if self.fc_mpa <= 0 or self.fy_mpa <= 0:
            raise InvalidInputError(f"invalid material properties: f'c={self.fc_mpa:.2f}, fy={self.fy_mpa:.2f}")
        if self.cover_comp_mm <= 0:
            raise InvalidInputError(f"invalid compression cover: d'={self.cover_comp_mm:.2f}")

    # ------------------------------
    # Design
    # ------------------------------
    def design(self, Mu_knm: float) -> DoublyDesignResult:
        self._validate()
        if not Mu_knm > 0:
            raise InvalidInputError(f"invalid factored moment: Mu={Mu_knm:.2f}")

        code = self.code
        b, d, dp, fc, fy = self.b_mm, self.d_mm, self.cover_comp_mm, self.fc_mpa, self.fy_mpa
        beta1 = code.beta1(fc)
        rho_min = code.rho_min(fc, fy)
        rho_max = code.rho_max(fc, fy)
        rho_bal = code.rho_balanced(fc, fy)
        As_min = rho_min * b * d

        singly = self.as_singly()
        As_max, a_max, Mu1_max = singly.max_tension_controlled_capacity()
        c_max = a_max / beta1

        if Mu_knm <= Mu1_max:
            sd = singly.design(Mu_knm)
            return DoublyDesignResult(
                Mu_knm=Mu_knm,
                requires_comp_steel=False,
                Mu1_knm=Mu_knm,
                Mu2_knm=0.0,
                As1_mm2=sd.As_required_mm2,
                As2_mm2=0.0,
                As_total_mm2=sd.As_required_mm2,
                Asc_required_mm2=0.0,
                As_min_mm2=As_min,
                As_max_mm2=As_max,
                rho_min=rho_min,
                rho_max=rho_max,
                rho_balanced=rho_bal,
                a_max_mm=a_max,
                c_max_mm=c_max,
                fsc_mpa=0.0,
                comp_yielded=False,
                eps_t=sd.eps_t,
                eps_sc=0.0,
                phi=sd.phi,
                phiMn_knm=sd.phiMn_knm,
                is_tension_controlled=sd.is_tension_controlled,
                is_adequate=sd.is_adequate,
                message=f"Singly reinforced design is adequate ({sd.message})" if sd.is_adequate else sd.message,
                singly=sd,
            )

        phi = code.phi_tension_controlled
        Mu2 = Mu_knm - Mu1_max
        lever_arm = d - dp
        if lever_arm <= 0:
            raise InvalidInputError(f"invalid compression cover: d'={dp:.2f} must be less than d={d:.2f}")

        # Compression steel strain with the neutral axis at c_max
        eps_sc = strain_at_depth(c_max, dp, code.eps_cu)
        eps_y = code.yield_strain(fy)
        comp_yielded = eps_sc >= eps_y
        fsc = fy if comp_yielded else eps_sc * code.Es_mpa
        if fsc <= 0:
            raise InvalidInputError(
                f"compression steel at d'={dp:.2f} lies below the neutral axis c={c_max:.2f}; it cannot act in compression"
            )

        As1 = As_max
        As2 = Mu2 * NMM_PER_KNM / (phi * fy * lever_arm)
        Asc = As2 * fy / fsc

        # Pinned at εt = 0.005 by construction
        Mn1 = As1 * fy * (d - a_max / 2.0)
        Mn2 = As2 * fy * lever_arm
        phiMn = phi * (Mn1 + Mn2) / NMM_PER_KNM
        adequate = phiMn >= Mu_knm * 0.999

        if not adequate:
            message = "Design inadequate - Consider increasing section size"
        elif comp_yielded:
            message = "Doubly reinforced design OK - Compression steel yields"
        else:
            message = f"Doubly reinforced design OK - Compression steel does not yield (f'sc = {fsc:.1f} MPa)"

        logger.debug(f"Doubly design: Mu1={Mu1_max:.2f} Mu2={Mu2:.2f} As={As1 + As2:.1f} Asc={Asc:.1f}")

        return DoublyDesignResult(
            Mu_knm=Mu_knm,
            requires_comp_steel=True,
            Mu1_knm=Mu1_max,
            Mu2_knm=Mu2,
            As1_mm2=As1,
            As2_mm2=As2,
            As_total_mm2=As1 + As2,
            Asc_required_mm2=Asc,
            As_min_mm2=As_min,
            As_max_mm2=As_max,
            rho_min=rho_min,
            rho_max=rho_max,
            rho_balanced=rho_bal,
            a_max_mm=a_max,
            c_max_mm=c_max,
            fsc_mpa=fsc,
            comp_yielded=comp_yielded,
            eps_t=code.eps_t_tension_controlled,
            eps_sc=eps_sc,
            phi=phi,
            phiMn_knm=phiMn,
            is_tension_controlled=True,
            is_adequate=adequate,
            message=message,
        )

    # ------------------------------
    # Analysis
    # ------------------------------
    def _net_comp_stress(self, fsc: float, a: float) -> float:
        """Compression steel stress less the displaced concrete when the bars sit inside the block."""
        if a >= self.cover_comp_mm:
            return fsc - self.code.stress_block_intensity * self.fc_mpa
        return fsc

    def _tension_stress(self, eps_t: float) -> float:
        # Tension steel pushed into compression (c > d) is taken as unstressed.
        if eps_t < 0:
            return 0.0
        return min(eps_t * self.code.Es_mpa, self.fy_mpa)

    def analyze(self, As_mm2: float, Asc_mm2: float, strict: bool = False) -> DoublyAnalysisResult:
        self._validate()
        if not As_mm2 > 0:
            raise InvalidInputError(f"invalid tension reinforcement: As={As_mm2:.2f}")
        if Asc_mm2 < 0:
            raise InvalidInputError(f"invalid compression reinforcement: A'sc={Asc_mm2:.2f}")

        code = self.code
        b, d, dp, fc, fy = self.b_mm, self.d_mm, self.cover_comp_mm, self.fc_mpa, self.fy_mpa
        Es = code.Es_mpa
        k_conc = code.stress_block_intensity * fc
        beta1 = code.beta1(fc)
        rho_min = code.rho_min(fc, fy)

        def c_from_equilibrium(c: float) -> float:
            eps_t = tensile_strain(c, d, code.eps_cu)
            eps_sc = strain_at_depth(c, dp, code.eps_cu)
            fs = self._tension_stress(eps_t)
            fsc = steel_stress(eps_sc, fy, Es)
            fsc_net = self._net_comp_stress(fsc, beta1 * c)
            return (As_mm2 * fs - Asc_mm2 * fsc_net) / (k_conc * b * beta1)

        # Seed: both steels yield
        c = (As_mm2 * fy - Asc_mm2 * (fy - k_conc)) / (k_conc * b * beta1)
        c = max(c, C_FLOOR_MM)

        converged = False
        iterations = 0
        for iterations in range(1, MAX_ITERATIONS + 1):
            c_new = c_from_equilibrium(c)
            # T - (Cc + Cs) at c, in kN
            imbalance = k_conc * b * beta1 * (c_new - c) / N_PER_KN
            if abs(c_new - c) < C_TOLERANCE_MM and abs(imbalance) < FORCE_TOLERANCE_KN:
                converged = True
                break
            c = max(c + DAMPING * (c_new - c), C_FLOOR_MM)

        a = beta1 * c
        eps_t = tensile_strain(c, d, code.eps_cu)
        eps_sc = strain_at_depth(c, dp, code.eps_cu)
        eps_y = code.yield_strain(fy)
        fs = self._tension_stress(eps_t)
        fsc = steel_stress(eps_sc, fy, Es)

        Cc = k_conc * b * a / N_PER_KN
        Cs = Asc_mm2 * self._net_comp_stress(fsc, a) / N_PER_KN
        T = As_mm2 * fs / N_PER_KN
        residual = T - (Cc + Cs)

        phi = code.phi(eps_t, fy)
        classification = classify_section(eps_t, fy, code)

        # Moments about the tension steel
        Mn = (Cc * (d - a / 2.0) + Cs * (d - dp)) / N_PER_KN

        rho = As_mm2 / (b * d)
        warnings = []
        if rho < rho_min:
            warnings.append("Below minimum reinforcement")
        if not converged:
            warnings.append(
                f"Neutral axis did not converge in {MAX_ITERATIONS} iterations (residual {residual:.3f} kN)"
            )
            logger.warning(f"Doubly analysis not converged: As={As_mm2:.1f} Asc={Asc_mm2:.1f} c={c:.3f} residual={residual:.3f} kN")
        else:
            logger.debug(f"Doubly analysis converged in {iterations} iterations: c={c:.3f} mm")

        result = DoublyAnalysisResult(
            As_mm2=As_mm2,
            Asc_mm2=Asc_mm2,
            a_mm=a,
            c_mm=c,
            beta1=beta1,
            eps_t=eps_t,
            eps_sc=eps_sc,
            fs_mpa=fs,
            fsc_mpa=fsc,
            tension_yielded=eps_t >= eps_y,
            comp_yielded=eps_sc >= eps_y,
            rho=rho,
            rho_comp=Asc_mm2 / (b * d),
            rho_min=rho_min,
            rho_max=code.rho_max(fc, fy),
            rho_balanced=code.rho_balanced(fc, fy),
            Cc_kn=Cc,
            Cs_kn=Cs,
            T_kn=T,
            phi=phi,
            Mn_knm=Mn,
            phiMn_knm=phi * Mn,
            classification=classification,
            is_tension_controlled=classification == "tension-controlled",
            meets_min_reinf=rho >= rho_min,
            converged=converged,
            iterations=iterations,
            residual_kn=residual,
            warnings=tuple(warnings),
            message=with_warnings(status_message(classification), warnings),
        )
        if strict and not converged:
            raise ConvergenceError(result.warnings[-1], result=result)
        return result
