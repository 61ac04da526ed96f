"""NSCP 2015 flexural design coefficients.

All coefficients live on a frozen `DesignCode` object that is passed into every
section engine. `NSCP_2015` is the default; a different code revision is a new
instance with different field values, the solvers do not change.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

DEFAULT_UNITS_SYSTEM = "SI"
CODE_BASIS = "NSCP 2015 (Vol. 1) Chapter 4"

# Unit conversions used throughout (N-mm -> kN-m, N -> kN)
NMM_PER_KNM = 1.0e6
N_PER_KN = 1.0e3


@dataclass(frozen=True)
class DesignCode:
    name: str = "NSCP 2015"

    # 422.2.2.1 / 420.2.2.2
    eps_cu: float = 0.003
    Es_mpa: float = 200000.0

    # 422.2.2.4 equivalent rectangular stress block
    stress_block_intensity: float = 0.85
    beta1_max: float = 0.85
    beta1_min: float = 0.65
    beta1_fc_limit_mpa: float = 28.0
    beta1_step_mpa: float = 7.0
    beta1_drop_per_step: float = 0.05

    # 421.2.2 strength reduction factors
    phi_tension_controlled: float = 0.90
    phi_compression_controlled: float = 0.65
    transition_strain_width: float = 0.003
    eps_t_tension_controlled: float = 0.005

    # 409.6.1.2 minimum flexural reinforcement
    rho_min_sqrt_divisor: float = 4.0
    rho_min_constant: float = 1.4

    def yield_strain(self, fy_mpa: float) -> float:
        return fy_mpa / self.Es_mpa

    def beta1(self, fc_mpa: float) -> float:
        if fc_mpa <= self.beta1_fc_limit_mpa:
            return self.beta1_max
        b1 = self.beta1_max - self.beta1_drop_per_step * (fc_mpa - self.beta1_fc_limit_mpa) / self.beta1_step_mpa
        return max(self.beta1_min, b1)

    def phi(self, eps_t: float, fy_mpa: float) -> float:
        eps_ty = self.yield_strain(fy_mpa)
        if eps_t >= eps_ty + self.transition_strain_width:
            return self.phi_tension_controlled
        if eps_t <= eps_ty:
            return self.phi_compression_controlled
        span = self.phi_tension_controlled - self.phi_compression_controlled
        return self.phi_compression_controlled + span * (eps_t - eps_ty) / self.transition_strain_width

    def rho_min(self, fc_mpa: float, fy_mpa: float) -> float:
        return max(math.sqrt(fc_mpa) / (self.rho_min_sqrt_divisor * fy_mpa), self.rho_min_constant / fy_mpa)

    def rho_max(self, fc_mpa: float, fy_mpa: float) -> float:
        """Ratio at which the net tensile strain is exactly the tension-controlled limit."""
        c_over_d = self.eps_cu / (self.eps_cu + self.eps_t_tension_controlled)
        return self.stress_block_intensity * self.beta1(fc_mpa) * (fc_mpa / fy_mpa) * c_over_d

    def rho_balanced(self, fc_mpa: float, fy_mpa: float) -> float:
        c_over_d = self.eps_cu / (self.eps_cu + self.yield_strain(fy_mpa))
        return self.stress_block_intensity * self.beta1(fc_mpa) * (fc_mpa / fy_mpa) * c_over_d


NSCP_2015 = DesignCode()


def stress_block_factor(fc_mpa: float, code: DesignCode = NSCP_2015) -> float:
    """β1 for the equivalent rectangular stress block (NSCP 422.2.2.4.3)."""
    return code.beta1(fc_mpa)


def strength_reduction_factor(eps_t: float, fy_mpa: float, code: DesignCode = NSCP_2015) -> float:
    """φ from net tensile strain (NSCP 421.2.2), linear through the transition zone."""
    return code.phi(eps_t, fy_mpa)


def min_reinf_ratio(fc_mpa: float, fy_mpa: float, code: DesignCode = NSCP_2015) -> float:
    return code.rho_min(fc_mpa, fy_mpa)


def max_reinf_ratio(fc_mpa: float, fy_mpa: float, code: DesignCode = NSCP_2015) -> float:
    return code.rho_max(fc_mpa, fy_mpa)


def balanced_reinf_ratio(fc_mpa: float, fy_mpa: float, code: DesignCode = NSCP_2015) -> float:
    return code.rho_balanced(fc_mpa, fy_mpa)


def yield_strain(fy_mpa: float, code: DesignCode = NSCP_2015) -> float:
    return code.yield_strain(fy_mpa)
