"""
Carbon intensity calculation engine.

`calculate_ci` turns a (possibly partial) `CIEmissionInput` into an immutable
`CICalculationResult`:

1. validate the classification fields against the closed enums
2. resolve each of the nine sub-categories, first hit wins:
     explicit value   -> taken verbatim
     activity data    -> scope2_electricity from kWh and the region's grid factor,
                         scope1_transport from freight legs
     category default -> taken verbatim, except scope2_electricity which is
                         scaled by grid(region) / grid(national)
3. aggregate scope totals and the total CI (plain float sums, no rounding)
4. derive rating, savings, compliance flags and the uncertainty band

The engine reads only the registry it is given and never mutates anything, so
calls may run concurrently without locking.
"""
import logging
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .audit import CalculationAudit
from .constants import (
    EMISSION_FIELDS, CREDIT_FIELDS, PLAUSIBLE_TOTAL_ABS_LIMIT,
    FEEDSTOCK_CATEGORIES, CI_METHODOLOGIES,
)
from .errors import (
    InvalidInputError, IncompleteInputError,
    InvalidCategoryError, InvalidMethodologyError,
)
from .models import CIEmissionInput, CICalculationResult, ValidationReport
from .registry import DEFAULT_REGISTRY, EmissionFactorRegistry
from .utils.calculations import (
    is_finite_number,
    calculate_scope1_total, calculate_scope2_total, calculate_scope3_total, calculate_total_ci,
    calculate_ghg_savings, get_ci_rating, get_ci_score, check_compliance,
    combined_uncertainty_multiplier, calculate_uncertainty_range,
    electricity_emissions_g_per_mj, transport_emissions_g_per_mj, grid_adjustment_ratio,
)

logger = logging.getLogger(__name__)


# ============================================================================
# BOUNDARY VALIDATION
# ============================================================================

def validate_classification(emission_input: CIEmissionInput, registry: EmissionFactorRegistry) -> None:
    """
    Reject out-of-enum classification values and malformed metadata before any
    resolution happens.
    """
    if not isinstance(emission_input.feedstock_category, str) or \
            emission_input.feedstock_category not in FEEDSTOCK_CATEGORIES:
        raise InvalidCategoryError(emission_input.feedstock_category, FEEDSTOCK_CATEGORIES)
    if not isinstance(emission_input.methodology, str) or \
            emission_input.methodology not in CI_METHODOLOGIES:
        raise InvalidMethodologyError(emission_input.methodology, CI_METHODOLOGIES)

    registry.get_data_quality_uncertainty(emission_input.data_quality_level)
    registry.get_verification_multiplier(emission_input.verification_level)

    if emission_input.is_new_installation not in (None, True, False):
        raise InvalidInputError(
            f"is_new_installation must be true, false or absent, got {emission_input.is_new_installation!r}"
        )

    year = emission_input.reference_year
    if year is not None and (isinstance(year, bool) or not isinstance(year, int)):
        raise InvalidInputError(f"reference_year must be a whole year or absent, got {year!r}")

    period = emission_input.reporting_period
    if period is not None and period.start > period.end:
        raise InvalidInputError(f"Reporting period starts after it ends ({period.start} > {period.end})")

    activity = emission_input.activity
    if activity is not None:
        if not is_finite_number(activity.output_mj) or activity.output_mj <= 0:
            raise InvalidInputError(f"Activity output_mj must be a positive number, got {activity.output_mj!r}")
        if activity.electricity_kwh is not None and (
            not is_finite_number(activity.electricity_kwh) or activity.electricity_kwh < 0
        ):
            raise InvalidInputError(
                f"Activity electricity_kwh must be a non-negative number, got {activity.electricity_kwh!r}"
            )
        for leg in activity.transport_legs:
            registry.get_transport_factor(leg.mode)
            if not is_finite_number(leg.tonnes) or leg.tonnes < 0 or \
                    not is_finite_number(leg.distance_km) or leg.distance_km < 0:
                raise InvalidInputError(f"Transport leg {leg} needs non-negative tonnes and distance")


# ============================================================================
# RESOLUTION
# ============================================================================

def _activity_values(
    emission_input: CIEmissionInput, registry: EmissionFactorRegistry, audit: Optional[CalculationAudit]
) -> Dict[str, float]:
    activity = emission_input.activity
    derived: Dict[str, float] = {}
    if activity is None:
        return derived

    if activity.electricity_kwh is not None:
        grid = registry.get_grid_factor(emission_input.region)
        value = electricity_emissions_g_per_mj(activity.electricity_kwh, activity.output_mj, grid)
        derived["scope2_electricity"] = value
        if audit:
            audit.log_calculation(
                context="Scope 2 electricity from activity data",
                formula="kWh * GridFactor(kgCO2e/kWh) * 1000 / OutputMJ",
                variables={"kWh": activity.electricity_kwh, "GridFactor": grid,
                           "Region": emission_input.region, "OutputMJ": activity.output_mj},
                result=value,
                unit="gCO2e/MJ",
            )

    if activity.transport_legs:
        total = 0.0
        for leg in activity.transport_legs:
            factor = registry.get_transport_factor(leg.mode)
            leg_value = transport_emissions_g_per_mj(leg.tonnes, leg.distance_km, activity.output_mj, factor)
            total += leg_value
            if audit:
                audit.log_calculation(
                    context=f"Scope 1 transport leg ({leg.mode})",
                    formula="EF(gCO2e/t.km) * Tonnes * Km / OutputMJ",
                    variables={"EF": factor, "Tonnes": leg.tonnes, "Km": leg.distance_km,
                               "OutputMJ": activity.output_mj},
                    result=leg_value,
                    unit="gCO2e/MJ",
                )
        derived["scope1_transport"] = total

    return derived


def resolve_emission_fields(
    emission_input: CIEmissionInput,
    registry: EmissionFactorRegistry = DEFAULT_REGISTRY,
    audit: Optional[CalculationAudit] = None,
) -> Tuple[Dict[str, float], Dict[str, str]]:
    """
    Resolve every sub-category to a number, field by field.
    Returns (values, sources) where sources records where each value came from.
    Raises IncompleteInputError when a resolved value is not a finite number.
    """
    defaults = registry.get_default_factors(emission_input.feedstock_category).as_dict()
    derived = _activity_values(emission_input, registry, audit)

    values: Dict[str, float] = {}
    sources: Dict[str, str] = {}
    for name in EMISSION_FIELDS:
        explicit = getattr(emission_input, name)
        if explicit is not None:
            value, source = explicit, "explicit"
        elif name in derived:
            value, source = derived[name], "activity"
        else:
            value, source = defaults.get(name), "default"
            if name == "scope2_electricity" and is_finite_number(value):
                ratio = grid_adjustment_ratio(registry, emission_input.region)
                if ratio != 1.0:
                    if audit:
                        audit.log_calculation(
                            context="Scope 2 electricity default, regional grid adjustment",
                            formula="Default * Grid(region) / Grid(national)",
                            variables={"Default": value, "Region": emission_input.region, "Ratio": ratio},
                            result=value * ratio,
                            unit="gCO2e/MJ",
                        )
                    value, source = value * ratio, "default_grid_adjusted"

        if not is_finite_number(value):
            logger.critical(
                f"Emission field '{name}' unresolved for {emission_input.feedstock_category} "
                f"(source={source}, value={value!r})"
            )
            raise IncompleteInputError(name, value)

        values[name] = float(value)
        sources[name] = source
        logger.debug(f"Resolved {name} = {value} ({source})")

    return values, sources


# ============================================================================
# PLAUSIBILITY
# ============================================================================

def validate_ci_input(values: Union[CIEmissionInput, Mapping[str, Any]]) -> ValidationReport:
    """
    Plausibility checks on emission values (explicit values when given an input):
    - negative values are only expected for end-of-life credits
    - a sum of absolute values above the plausibility ceiling is suspicious
    These are warnings for the caller, not calculation errors.
    """
    if isinstance(values, CIEmissionInput):
        values = values.explicit_values()

    errors = []
    for name in EMISSION_FIELDS:
        value = values.get(name)
        if value is None or name in CREDIT_FIELDS:
            continue
        if is_finite_number(value) and value < 0:
            label = name.split("_", 1)[1].replace("_", " ")
            errors.append(f"Scope {name[5]} {label} cannot be negative")

    total_abs = sum(
        abs(values[name]) for name in EMISSION_FIELDS if is_finite_number(values.get(name))
    )
    if total_abs > PLAUSIBLE_TOTAL_ABS_LIMIT:
        errors.append("Total emissions seem unusually high. Please verify input values.")

    return ValidationReport(valid=not errors, errors=tuple(errors))


# ============================================================================
# MAIN CALCULATION
# ============================================================================

def calculate_ci(
    emission_input: CIEmissionInput,
    registry: EmissionFactorRegistry = DEFAULT_REGISTRY,
    audit: Optional[CalculationAudit] = None,
) -> CICalculationResult:
    """
    Full CI calculation for one input. Deterministic: identical inputs and
    registry give identical results.
    """
    validate_classification(emission_input, registry)
    values, sources = resolve_emission_fields(emission_input, registry, audit)

    scope1_total = calculate_scope1_total(
        values["scope1_cultivation"], values["scope1_processing"], values["scope1_transport"]
    )
    scope2_total = calculate_scope2_total(values["scope2_electricity"], values["scope2_steam_heat"])
    scope3_total = calculate_scope3_total(
        values["scope3_upstream_inputs"], values["scope3_land_use_change"],
        values["scope3_distribution"], values["scope3_end_of_life"],
    )
    total_ci_value = calculate_total_ci(scope1_total, scope2_total, scope3_total)

    comparator = registry.fossil_fuel_comparator
    ghg_savings = calculate_ghg_savings(total_ci_value, comparator)
    ci_rating = get_ci_rating(total_ci_value, registry.rating_thresholds)
    ci_score = get_ci_score(total_ci_value, comparator)

    compliance = check_compliance(
        ghg_savings,
        registry.compliance_thresholds,
        registry.red_ii_new_installation_threshold,
        emission_input.is_new_installation,
    )

    dq_factor = registry.get_data_quality_uncertainty(emission_input.data_quality_level)
    verification_factor = registry.get_verification_multiplier(emission_input.verification_level)
    methodology_factor = registry.get_methodology_adjustment(emission_input.methodology).uncertainty_factor
    multiplier = combined_uncertainty_multiplier(dq_factor, verification_factor, methodology_factor)
    low, high = calculate_uncertainty_range(total_ci_value, multiplier)

    report = validate_ci_input(values)
    for message in report.errors:
        logger.warning(f"{emission_input.feedstock_category}: {message}")

    if audit:
        audit.log_calculation(
            context="Scope 1 total",
            formula="cultivation + processing + transport",
            variables={k: values[k] for k in ("scope1_cultivation", "scope1_processing", "scope1_transport")},
            result=scope1_total,
            unit="gCO2e/MJ",
        )
        audit.log_calculation(
            context="Scope 2 total",
            formula="electricity + steam_heat",
            variables={k: values[k] for k in ("scope2_electricity", "scope2_steam_heat")},
            result=scope2_total,
            unit="gCO2e/MJ",
        )
        audit.log_calculation(
            context="Scope 3 total",
            formula="upstream_inputs + land_use_change + distribution + end_of_life",
            variables={k: values[k] for k in (
                "scope3_upstream_inputs", "scope3_land_use_change",
                "scope3_distribution", "scope3_end_of_life")},
            result=scope3_total,
            unit="gCO2e/MJ",
        )
        audit.log_calculation(
            context="Total carbon intensity",
            formula="Scope1 + Scope2 + Scope3",
            variables={"Scope1": scope1_total, "Scope2": scope2_total, "Scope3": scope3_total},
            result=total_ci_value,
            unit="gCO2e/MJ",
        )
        audit.log_calculation(
            context="GHG savings",
            formula="(Comparator - CI) / Comparator * 100",
            variables={"Comparator": comparator, "CI": total_ci_value},
            result=ghg_savings,
            unit="%",
        )
        audit.log_calculation(
            context="Uncertainty band",
            formula="|CI| * (DataQuality * Verification * Methodology - 1)",
            variables={"DataQuality": dq_factor, "Verification": verification_factor,
                       "Methodology": methodology_factor, "CI": total_ci_value},
            result=high - total_ci_value,
            unit="gCO2e/MJ",
        )

    logger.info(
        f"CI {emission_input.feedstock_category}/{emission_input.methodology}: "
        f"{total_ci_value:.2f} gCO2e/MJ, rating {ci_rating}, savings {ghg_savings:.1f}%"
    )

    return CICalculationResult(
        scope1_cultivation=values["scope1_cultivation"],
        scope1_processing=values["scope1_processing"],
        scope1_transport=values["scope1_transport"],
        scope1_total=scope1_total,
        scope2_electricity=values["scope2_electricity"],
        scope2_steam_heat=values["scope2_steam_heat"],
        scope2_total=scope2_total,
        scope3_upstream_inputs=values["scope3_upstream_inputs"],
        scope3_land_use_change=values["scope3_land_use_change"],
        scope3_distribution=values["scope3_distribution"],
        scope3_end_of_life=values["scope3_end_of_life"],
        scope3_total=scope3_total,
        total_ci_value=total_ci_value,
        ci_rating=ci_rating,
        ci_score=ci_score,
        ghg_savings_percentage=ghg_savings,
        uncertainty_multiplier=multiplier,
        uncertainty_range_low=low,
        uncertainty_range_high=high,
        feedstock_category=emission_input.feedstock_category,
        methodology=emission_input.methodology,
        region=emission_input.region,
        data_quality_level=emission_input.data_quality_level,
        verification_level=emission_input.verification_level,
        reference_year=emission_input.reference_year,
        reporting_period=emission_input.reporting_period,
        is_new_installation=emission_input.is_new_installation,
        registry_version=registry.version,
        field_sources=MappingProxyType(sources),
        warnings=report.errors,
        **compliance,
    )


def calculate_ci_with_defaults(
    partial_input: Mapping[str, Optional[float]],
    feedstock_category: str,
    methodology: str,
    data_quality_level: str = "default",
    verification_level: str = "self_declared",
    is_new_installation: Optional[bool] = None,
    region: Optional[str] = None,
    registry: EmissionFactorRegistry = DEFAULT_REGISTRY,
) -> CICalculationResult:
    """
    Convenience wrapper: a mapping of measured sub-category values plus the
    classification; every sub-category not in the mapping is defaulted.
    """
    unknown = set(partial_input) - set(EMISSION_FIELDS)
    if unknown:
        raise InvalidInputError(f"Unknown emission fields: {', '.join(sorted(unknown))}")
    emission_input = CIEmissionInput(
        feedstock_category=feedstock_category,
        methodology=methodology,
        region=region,
        data_quality_level=data_quality_level,
        verification_level=verification_level,
        is_new_installation=is_new_installation,
        **dict(partial_input),
    )
    return calculate_ci(emission_input, registry)


def calculate_ci_payload(
    payload: Mapping[str, Any], registry: EmissionFactorRegistry = DEFAULT_REGISTRY
) -> Dict[str, Any]:
    """
    RPC-style entry point: input-shaped dict in, result-shaped dict or a
    structured error out. Invalid input is reported to the caller; incomplete
    resolution and registry defects propagate.
    """
    try:
        emission_input = CIEmissionInput.from_dict(payload)
        result = calculate_ci(emission_input, registry)
    except InvalidInputError as e:
        logger.warning(f"Rejected CI payload: {e}")
        return {"ok": False, "error": {"type": type(e).__name__, "message": str(e)}}
    except (TypeError, KeyError, ValueError) as e:
        # missing required keys, malformed dates or nested values
        logger.warning(f"Malformed CI payload: {e}")
        return {"ok": False, "error": {"type": "InvalidInputError", "message": str(e)}}
    return {"ok": True, "result": result.to_dict()}

