"""
Emission factor registry.

A registry is an immutable, versioned snapshot of every lookup table the
calculator reads: default factors per feedstock category, grid and freight
factors, scheme thresholds and uncertainty multipliers. Regulatory updates are
applied by building a new registry from a parameter sheet (see
`load_registry`), never by patching one in place.
"""
import logging
from dataclasses import asdict, dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd

from .config import load_parameter_table
from .constants import (
    REGISTRY_VERSION, FOSSIL_FUEL_COMPARATOR, CI_RATING_THRESHOLDS,
    COMPLIANCE_THRESHOLDS, RED_II_NEW_INSTALLATION_THRESHOLD,
    DEFAULT_EMISSION_FACTORS, GRID_EMISSION_FACTORS, NATIONAL_GRID_REGION,
    TRANSPORT_EMISSION_FACTORS, METHODOLOGY_ADJUSTMENTS, VERIFICATION_LEVELS,
    DATA_QUALITY_UNCERTAINTY, EMISSION_FIELDS,
    FERTILIZER_EMISSION_FACTORS, PROCESSING_ENERGY_FACTORS,
    FEEDSTOCK_CATEGORIES, CI_METHODOLOGIES, COMPLIANCE_SCHEMES,
    DATA_QUALITY_LEVELS, VERIFICATION_LEVEL_NAMES, TRANSPORT_MODES,
)
from .errors import (
    RegistryError, InvalidCategoryError, InvalidMethodologyError,
    InvalidDataQualityError, InvalidVerificationLevelError, InvalidTransportModeError,
)
from .models import DefaultEmissionFactors, MethodologyAdjustment
from .utils.calculations import is_finite_number

logger = logging.getLogger(__name__)



@dataclass(frozen=True, eq=False)
class EmissionFactorRegistry:
    version: str
    default_factors: Mapping[str, DefaultEmissionFactors]
    grid_factors: Mapping[str, float]
    transport_factors: Mapping[str, float]
    compliance_thresholds: Mapping[str, float]
    methodology_adjustments: Mapping[str, MethodologyAdjustment]
    verification_multipliers: Mapping[str, float]
    data_quality_uncertainty: Mapping[str, float]
    fossil_fuel_comparator: float = FOSSIL_FUEL_COMPARATOR
    red_ii_new_installation_threshold: float = RED_II_NEW_INSTALLATION_THRESHOLD
    rating_thresholds: Tuple[Tuple[str, float], ...] = CI_RATING_THRESHOLDS

    def __post_init__(self):
        for name in (
            "default_factors", "grid_factors", "transport_factors", "compliance_thresholds",
            "methodology_adjustments", "verification_multipliers", "data_quality_uncertainty",
        ):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))
        object.__setattr__(self, "rating_thresholds", tuple(tuple(t) for t in self.rating_thresholds))
        self._validate()

    def _validate(self):
        missing = [c for c in FEEDSTOCK_CATEGORIES if c not in self.default_factors]
        if missing:
            raise RegistryError(f"No default factors for feedstock categories: {', '.join(missing)}")
        for category, factors in self.default_factors.items():
            for name in EMISSION_FIELDS:
                if not is_finite_number(getattr(factors, name, None)):
                    raise RegistryError(f"Default factor {category}.{name} is not a finite number")

        _require_keys("grid factor", self.grid_factors, (NATIONAL_GRID_REGION,))
        _require_keys("transport factor", self.transport_factors, TRANSPORT_MODES)
        _require_keys("compliance threshold", self.compliance_thresholds, COMPLIANCE_SCHEMES)
        _require_keys("methodology adjustment", self.methodology_adjustments, CI_METHODOLOGIES)
        _require_keys("verification multiplier", self.verification_multipliers, VERIFICATION_LEVEL_NAMES)
        _require_keys("data quality uncertainty", self.data_quality_uncertainty, DATA_QUALITY_LEVELS)

        for table, values in (
            ("grid factor", self.grid_factors),
            ("transport factor", self.transport_factors),
            ("compliance threshold", self.compliance_thresholds),
        ):
            for key, value in values.items():
                if not is_finite_number(value) or value < 0:
                    raise RegistryError(f"{table} '{key}' must be a finite non-negative number, got {value!r}")
        if self.grid_factors[NATIONAL_GRID_REGION] <= 0:
            raise RegistryError("National grid factor must be positive; regional factors are scaled by it")

        # Multipliers below 1.0 would invert the uncertainty band
        multipliers = dict(self.verification_multipliers)
        multipliers.update(self.data_quality_uncertainty)
        multipliers.update({m: a.uncertainty_factor for m, a in self.methodology_adjustments.items()})
        for key, value in multipliers.items():
            if not is_finite_number(value) or value < 1.0:
                raise RegistryError(f"Uncertainty multiplier '{key}' must be >= 1.0, got {value!r}")

        if not is_finite_number(self.fossil_fuel_comparator) or self.fossil_fuel_comparator <= 0:
            raise RegistryError("Fossil fuel comparator must be a positive number")
        if not is_finite_number(self.red_ii_new_installation_threshold):
            raise RegistryError("RED II new installation threshold must be a finite number")

        bounds = [bound for _, bound in self.rating_thresholds]
        if not bounds or any(b2 <= b1 for b1, b2 in zip(bounds, bounds[1:])):
            raise RegistryError("Rating thresholds must be strictly ascending")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_default_factors(self, category: str) -> DefaultEmissionFactors:
        if not isinstance(category, str) or category not in self.default_factors:
            raise InvalidCategoryError(category, FEEDSTOCK_CATEGORIES)
        return self.default_factors[category]

    def get_grid_factor(self, region: Optional[str]) -> float:
        """
        Grid emission factor (kgCO2e/kWh) for a state/territory code.
        Unknown or missing regions fall back to the national average.
        """
        if isinstance(region, str):
            key = region.strip()
            if key in self.grid_factors:
                return self.grid_factors[key]
            if key.upper() in self.grid_factors:
                return self.grid_factors[key.upper()]
            logger.debug(f"Unknown grid region '{region}', using national average")
        return self.grid_factors[NATIONAL_GRID_REGION]

    def get_transport_factor(self, mode: str) -> float:
        if not isinstance(mode, str) or mode not in self.transport_factors:
            raise InvalidTransportModeError(mode, TRANSPORT_MODES)
        return self.transport_factors[mode]

    def get_compliance_threshold(self, scheme: str) -> float:
        if not isinstance(scheme, str) or scheme not in self.compliance_thresholds:
            raise InvalidMethodologyError(scheme, COMPLIANCE_SCHEMES)
        return self.compliance_thresholds[scheme]

    def get_methodology_adjustment(self, methodology: str) -> MethodologyAdjustment:
        if not isinstance(methodology, str) or methodology not in self.methodology_adjustments:
            raise InvalidMethodologyError(methodology, CI_METHODOLOGIES)
        return self.methodology_adjustments[methodology]

    def get_data_quality_uncertainty(self, level: str) -> float:
        if not isinstance(level, str) or level not in self.data_quality_uncertainty:
            raise InvalidDataQualityError(level, DATA_QUALITY_LEVELS)
        return self.data_quality_uncertainty[level]

    def get_verification_multiplier(self, level: str) -> float:
        if not isinstance(level, str) or level not in self.verification_multipliers:
            raise InvalidVerificationLevelError(level, VERIFICATION_LEVEL_NAMES)
        return self.verification_multipliers[level]


def _require_keys(table: str, values: Mapping[str, Any], required) -> None:
    missing = [k for k in required if k not in values]
    if missing:
        raise RegistryError(f"Missing {table} entries: {', '.join(missing)}")


def build_default_registry() -> EmissionFactorRegistry:
    """Registry built from the tables in constants.py."""
    return EmissionFactorRegistry(
        version=REGISTRY_VERSION,
        default_factors={
            category: DefaultEmissionFactors(**values)
            for category, values in DEFAULT_EMISSION_FACTORS.items()
        },
        grid_factors=GRID_EMISSION_FACTORS,
        transport_factors=TRANSPORT_EMISSION_FACTORS,
        compliance_thresholds=COMPLIANCE_THRESHOLDS,
        methodology_adjustments={
            m: MethodologyAdjustment(**adj) for m, adj in METHODOLOGY_ADJUSTMENTS.items()
        },
        verification_multipliers={
            level: info["uncertainty_multiplier"] for level, info in VERIFICATION_LEVELS.items()
        },
        data_quality_uncertainty=DATA_QUALITY_UNCERTAINTY,
    )


DEFAULT_REGISTRY = build_default_registry()


# ============================================================================
# PARAMETER SHEETS
# ============================================================================

def _as_float(key: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise RegistryError(f"Parameter '{key}' is not numeric: {value!r}")
    if not is_finite_number(number):
        raise RegistryError(f"Parameter '{key}' is not finite: {value!r}")
    return number


def registry_from_parameters(
    params: Mapping[str, Any],
    base: EmissionFactorRegistry = DEFAULT_REGISTRY,
    version: Optional[str] = None,
) -> EmissionFactorRegistry:
    """
    Build a new registry from `base` with parameter overrides applied.

    Key grammar:
      VERSION, FOSSIL_FUEL_COMPARATOR, RED_II_NEW_INSTALLATION_THRESHOLD,
      DEFAULT.<category>.<field>, GRID.<region>, TRANSPORT.<mode>, THRESHOLD.<scheme>,
      UNCERTAINTY.DATA_QUALITY.<level>, UNCERTAINTY.VERIFICATION.<level>,
      UNCERTAINTY.METHODOLOGY.<methodology>
    """
    defaults = {c: f.as_dict() for c, f in base.default_factors.items()}
    grid = dict(base.grid_factors)
    transport = dict(base.transport_factors)
    thresholds = dict(base.compliance_thresholds)
    adjustments = {m: asdict(a) for m, a in base.methodology_adjustments.items()}
    verification = dict(base.verification_multipliers)
    data_quality = dict(base.data_quality_uncertainty)
    comparator = base.fossil_fuel_comparator
    red_ii_new = base.red_ii_new_installation_threshold
    sheet_version = None

    for key, value in params.items():
        parts = key.split(".")
        head = parts[0].upper()
        if key == "VERSION":
            sheet_version = str(value)
        elif key == "FOSSIL_FUEL_COMPARATOR":
            comparator = _as_float(key, value)
        elif key == "RED_II_NEW_INSTALLATION_THRESHOLD":
            red_ii_new = _as_float(key, value)
        elif head == "DEFAULT" and len(parts) == 3:
            category, name = parts[1], parts[2]
            if category not in FEEDSTOCK_CATEGORIES or name not in EMISSION_FIELDS:
                raise RegistryError(f"Unknown default factor key '{key}'")
            defaults[category][name] = _as_float(key, value)
        elif head == "GRID" and len(parts) == 2:
            grid[parts[1]] = _as_float(key, value)
        elif head == "TRANSPORT" and len(parts) == 2:
            if parts[1] not in TRANSPORT_MODES:
                raise RegistryError(f"Unknown transport mode key '{key}'")
            transport[parts[1]] = _as_float(key, value)
        elif head == "THRESHOLD" and len(parts) == 2:
            if parts[1] not in COMPLIANCE_SCHEMES:
                raise RegistryError(f"Unknown compliance scheme key '{key}'")
            thresholds[parts[1]] = _as_float(key, value)
        elif head == "UNCERTAINTY" and len(parts) == 3:
            table, name = parts[1].upper(), parts[2]
            if table == "DATA_QUALITY" and name in DATA_QUALITY_LEVELS:
                data_quality[name] = _as_float(key, value)
            elif table == "VERIFICATION" and name in VERIFICATION_LEVEL_NAMES:
                verification[name] = _as_float(key, value)
            elif table == "METHODOLOGY" and name in CI_METHODOLOGIES:
                adjustments[name]["uncertainty_factor"] = _as_float(key, value)
            else:
                raise RegistryError(f"Unknown uncertainty key '{key}'")
        else:
            raise RegistryError(f"Unknown registry parameter '{key}'")

    if version is None:
        version = sheet_version or (f"{base.version}+custom" if params else base.version)

    return EmissionFactorRegistry(
        version=version,
        default_factors={c: DefaultEmissionFactors(**v) for c, v in defaults.items()},
        grid_factors=grid,
        transport_factors=transport,
        compliance_thresholds=thresholds,
        methodology_adjustments={m: MethodologyAdjustment(**a) for m, a in adjustments.items()},
        verification_multipliers=verification,
        data_quality_uncertainty=data_quality,
        fossil_fuel_comparator=comparator,
        red_ii_new_installation_threshold=red_ii_new,
        rating_thresholds=base.rating_thresholds,
    )


def load_registry(path: Optional[str] = None, version: Optional[str] = None) -> EmissionFactorRegistry:
    """
    Load a registry from a parameter sheet layered over the built-in tables.
    A missing sheet yields the built-in registry.
    """
    params = load_parameter_table(path)
    if not params:
        return DEFAULT_REGISTRY
    registry = registry_from_parameters(params, version=version)
    logger.info(f"Emission factor registry version {registry.version} loaded ({len(params)} overrides)")
    return registry


def registry_parameters(registry: EmissionFactorRegistry = DEFAULT_REGISTRY) -> List[Dict[str, Any]]:
    """Flatten a registry into Key/Value/Unit/Section/Description rows."""
    rows: List[Dict[str, Any]] = [
        {"Section": "1. Registry", "Key": "VERSION", "Value": registry.version,
         "Unit": "Text", "Description": "Registry version recorded on every result."},
        {"Section": "1. Registry", "Key": "FOSSIL_FUEL_COMPARATOR", "Value": registry.fossil_fuel_comparator,
         "Unit": "gCO2e/MJ", "Description": "Conventional fuel baseline for GHG savings."},
        {"Section": "1. Registry", "Key": "RED_II_NEW_INSTALLATION_THRESHOLD",
         "Value": registry.red_ii_new_installation_threshold, "Unit": "%",
         "Description": "Minimum RED II savings for installations flagged as new."},
    ]
    for category, factors in registry.default_factors.items():
        for name, value in factors.as_dict().items():
            rows.append({"Section": "2. Default Emission Factors", "Key": f"DEFAULT.{category}.{name}",
                         "Value": value, "Unit": "gCO2e/MJ",
                         "Description": f"Default {name} for {category} feedstock."})
    for region, value in registry.grid_factors.items():
        rows.append({"Section": "3. Grid Factors", "Key": f"GRID.{region}", "Value": value,
                     "Unit": "kgCO2e/kWh", "Description": f"Electricity grid factor ({region})."})
    for mode, value in registry.transport_factors.items():
        rows.append({"Section": "4. Transport Factors", "Key": f"TRANSPORT.{mode}", "Value": value,
                     "Unit": "gCO2e/t.km", "Description": f"Freight factor ({mode})."})
    for scheme, value in registry.compliance_thresholds.items():
        rows.append({"Section": "5. Compliance", "Key": f"THRESHOLD.{scheme}", "Value": value,
                     "Unit": "%", "Description": f"Minimum GHG savings for {scheme}."})
    for level, value in registry.data_quality_uncertainty.items():
        rows.append({"Section": "6. Uncertainty", "Key": f"UNCERTAINTY.DATA_QUALITY.{level}",
                     "Value": value, "Unit": "x", "Description": f"Data quality multiplier ({level})."})
    for level, value in registry.verification_multipliers.items():
        rows.append({"Section": "6. Uncertainty", "Key": f"UNCERTAINTY.VERIFICATION.{level}",
                     "Value": value, "Unit": "x", "Description": f"Verification multiplier ({level})."})
    for methodology, adj in registry.methodology_adjustments.items():
        rows.append({"Section": "6. Uncertainty", "Key": f"UNCERTAINTY.METHODOLOGY.{methodology}",
                     "Value": adj.uncertainty_factor, "Unit": "x",
                     "Description": f"Methodology multiplier ({methodology}, {adj.allocation_method} allocation)."})
    return rows


def export_registry_workbook(registry: EmissionFactorRegistry, output_path: str) -> str:
    """
    Write the registry as a formatted parameter workbook that `load_registry`
    accepts back. Value cells are highlighted as the editable column.
    """
    df = pd.DataFrame(registry_parameters(registry))
    df = df[["Section", "Key", "Value", "Unit", "Description"]]

    writer = pd.ExcelWriter(output_path, engine="xlsxwriter")
    df.to_excel(writer, sheet_name="Parameters", index=False)
    workbook = writer.book
    worksheet = writer.sheets["Parameters"]

    header_fmt = workbook.add_format({
        'bold': True,
        'text_wrap': True,
        'valign': 'top',
        'fg_color': '#4F81BD',
        'font_color': '#FFFFFF',
        'border': 1
    })
    section_fmt = workbook.add_format({'bold': True, 'bg_color': '#DCE6F1', 'border': 1})
    key_fmt = workbook.add_format({'bold': True, 'font_color': '#333333', 'bg_color': '#F2F2F2', 'border': 1})
    value_fmt = workbook.add_format({'bg_color': '#FFFFCC', 'border': 1})
    text_fmt = workbook.add_format({'text_wrap': True, 'valign': 'top', 'border': 1})

    worksheet.set_column('A:A', 28)
    worksheet.set_column('B:B', 45)
    worksheet.set_column('C:C', 15, value_fmt)
    worksheet.set_column('D:D', 12)
    worksheet.set_column('E:E', 60, text_fmt)

    for col_num, value in enumerate(df.columns.values):
        worksheet.write(0, col_num, value, header_fmt)

    for row_num, row_data in enumerate(df.to_dict("records"), start=1):
        worksheet.write(row_num, 0, row_data["Section"], section_fmt)
        worksheet.write(row_num, 1, row_data["Key"], key_fmt)
        worksheet.write(row_num, 2, row_data["Value"], value_fmt)
        worksheet.write(row_num, 3, row_data["Unit"], text_fmt)
        worksheet.write(row_num, 4, row_data["Description"], text_fmt)

    # Informational tables; load_registry reads only the first sheet
    reference = pd.DataFrame(
        [{"Table": "Fertilizer", "Item": k, "Value": v, "Unit": "kgCO2e/kg"}
         for k, v in FERTILIZER_EMISSION_FACTORS.items()]
        + [{"Table": "Processing energy", "Item": k, "Value": v, "Unit": "MJ elec / MJ output"}
           for k, v in PROCESSING_ENERGY_FACTORS.items()]
    )
    reference.to_excel(writer, sheet_name="Reference Data", index=False)
    ref_sheet = writer.sheets["Reference Data"]
    for col_num, value in enumerate(reference.columns.values):
        ref_sheet.write(0, col_num, value, header_fmt)
    ref_sheet.set_column("A:B", 28)
    ref_sheet.set_column("C:D", 18)

    writer.close()
    logger.info(f"Registry workbook written to {output_path}")
    return output_path


# Module-level accessors over the built-in registry
def get_default_factors(category: str) -> DefaultEmissionFactors:
    return DEFAULT_REGISTRY.get_default_factors(category)


def get_grid_factor(region: Optional[str]) -> float:
    return DEFAULT_REGISTRY.get_grid_factor(region)


def get_transport_factor(mode: str) -> float:
    return DEFAULT_REGISTRY.get_transport_factor(mode)


def get_compliance_threshold(scheme: str) -> float:
    return DEFAULT_REGISTRY.get_compliance_threshold(scheme)
