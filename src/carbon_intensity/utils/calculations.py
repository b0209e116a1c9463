import math
from typing import Dict, Optional, Sequence, Tuple

from ..constants import (
    DECIMALS, FOSSIL_FUEL_COMPARATOR, CI_RATING_THRESHOLDS, FAILING_RATING,
    NATIONAL_GRID_REGION,
)


def is_finite_number(value) -> bool:
    """True for real ints/floats that are not NaN or infinite (bools excluded)."""
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def f2(x: float) -> str:
    """
    Format a float with a fixed number of decimal places (DECIMALS).
    """
    return f"{x:.{DECIMALS}f}"


# ============================================================================
# SCOPE TOTALS
# ============================================================================

def calculate_scope1_total(cultivation: float, processing: float, transport: float) -> float:
    """Scope 1 (direct) emissions, gCO2e/MJ."""
    return cultivation + processing + transport


def calculate_scope2_total(electricity: float, steam_heat: float) -> float:
    """Scope 2 (purchased energy) emissions, gCO2e/MJ."""
    return electricity + steam_heat


def calculate_scope3_total(
    upstream_inputs: float, land_use_change: float, distribution: float, end_of_life: float
) -> float:
    """Scope 3 (value chain) emissions, gCO2e/MJ. end_of_life may be a credit."""
    return upstream_inputs + land_use_change + distribution + end_of_life


def calculate_total_ci(scope1_total: float, scope2_total: float, scope3_total: float) -> float:
    return scope1_total + scope2_total + scope3_total


# ============================================================================
# RATING / SAVINGS / SCORE
# ============================================================================

def calculate_ghg_savings(ci_value: float, comparator: float = FOSSIL_FUEL_COMPARATOR) -> float:
    """
    GHG savings (%) against the fossil fuel comparator:
        (comparator - CI) / comparator * 100
    Not rounded and not clamped: a negative CI gives savings above 100%.
    """
    return (comparator - ci_value) / comparator * 100


def get_ci_rating(
    ci_value: float,
    thresholds: Sequence[Tuple[str, float]] = CI_RATING_THRESHOLDS,
) -> str:
    """
    Letter rating for a CI value, walking the thresholds in ascending order.
    A value sitting exactly on a boundary belongs to the better bucket
    (10.0 -> A+, 10.001 -> A). Anything above the last bound is F.
    """
    for rating, upper in thresholds:
        if ci_value <= upper:
            return rating
    return FAILING_RATING


def get_ci_score(ci_value: float, comparator: float = FOSSIL_FUEL_COMPARATOR) -> float:
    """Score in [0, 100]; 100 at zero CI, 0 at or above the comparator."""
    return max(0.0, min(100.0, calculate_ghg_savings(ci_value, comparator)))


# ============================================================================
# COMPLIANCE
# ============================================================================

def check_compliance(
    ghg_savings: float,
    thresholds: Dict[str, float],
    red_ii_new_installation_threshold: float,
    is_new_installation: Optional[bool] = None,
) -> Dict[str, bool]:
    """
    Compliance flags for every scheme; a threshold is met when savings >= threshold.
    RED II applies the new-installation threshold only when the installation is
    explicitly flagged as new; an absent flag means the standard threshold.
    """
    red_ii_threshold = (
        red_ii_new_installation_threshold if is_new_installation is True else thresholds["RED_II"]
    )
    return {
        "red_ii_compliant": ghg_savings >= red_ii_threshold,
        "rtfo_compliant": ghg_savings >= thresholds["RTFO"],
        "cfp_compliant": ghg_savings >= thresholds["CFP"],
        "iscc_compliant": ghg_savings >= thresholds["ISCC"],
        "rsb_compliant": ghg_savings >= thresholds["RSB"],
    }


# ============================================================================
# UNCERTAINTY
# ============================================================================

def combined_uncertainty_multiplier(
    data_quality_factor: float, verification_multiplier: float, methodology_factor: float
) -> float:
    return data_quality_factor * verification_multiplier * methodology_factor


def calculate_uncertainty_range(ci_value: float, multiplier: float) -> Tuple[float, float]:
    """
    Symmetric band around the point estimate. The band width is taken from the
    magnitude of the CI so that low <= CI <= high also holds for negative CI.
    Bounds are not clamped at zero.
    """
    band = abs(ci_value) * (multiplier - 1.0)
    return ci_value - band, ci_value + band


# ============================================================================
# UNIT CONVERSIONS
# ============================================================================

def electricity_emissions_g_per_mj(kwh: float, output_mj: float, grid_factor_kg_per_kwh: float) -> float:
    """
    kWh consumed over the period -> gCO2e per MJ of fuel delivered.
    kgCO2e/kWh * 1000 converts to grams.
    """
    return kwh * grid_factor_kg_per_kwh * 1000.0 / output_mj


def transport_emissions_g_per_mj(
    tonnes: float, distance_km: float, output_mj: float, factor_g_per_tkm: float
) -> float:
    """Freight leg (gCO2e/t.km * t * km) normalised by fuel energy delivered."""
    return factor_g_per_tkm * tonnes * distance_km / output_mj


def grid_adjustment_ratio(registry, region: Optional[str]) -> float:
    """
    Ratio of the region's grid factor to the national average. Default
    scope2_electricity values are benchmarked on the national grid.
    """
    national = registry.get_grid_factor(NATIONAL_GRID_REGION)
    return registry.get_grid_factor(region) / national
