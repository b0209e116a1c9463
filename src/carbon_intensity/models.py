from dataclasses import dataclass, field, fields
from datetime import date
from typing import Any, Dict, Mapping, Optional, Tuple

from .constants import (
    EMISSION_FIELDS, SCOPE1_FIELDS, SCOPE2_FIELDS, SCOPE3_FIELDS,
    FeedstockCategory, CIMethodology, DataQualityLevel, VerificationLevel, TransportMode,
)
from .errors import InvalidInputError


@dataclass(frozen=True)
class DefaultEmissionFactors:
    """
    Default values for the nine emission sub-categories of one feedstock category.
    All values are gCO2e/MJ; scope3_end_of_life may be negative (avoided landfill credit).
    """
    scope1_cultivation: float
    scope1_processing: float
    scope1_transport: float
    scope2_electricity: float
    scope2_steam_heat: float
    scope3_upstream_inputs: float
    scope3_land_use_change: float
    scope3_distribution: float
    scope3_end_of_life: float

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in EMISSION_FIELDS}


@dataclass(frozen=True)
class MethodologyAdjustment:
    includes_indirect_luc: bool
    allocation_method: str
    uncertainty_factor: float


@dataclass(frozen=True)
class ReportingPeriod:
    start: date
    end: date

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True)
class TransportLeg:
    """One freight leg from collection point to processor (mass in tonnes)."""
    mode: TransportMode
    tonnes: float
    distance_km: float


@dataclass(frozen=True)
class ActivityData:
    """
    Raw activity data converted to gCO2e/MJ during resolution:
    - electricity_kwh is scaled by the region's grid factor
    - transport_legs are summed using the per-mode freight factors
    Both are normalised by output_mj, the fuel energy delivered over the period.
    """
    output_mj: float
    electricity_kwh: Optional[float] = None
    transport_legs: Tuple[TransportLeg, ...] = ()


@dataclass
class CIEmissionInput:
    """
    Caller-supplied emissions record. Any sub-category left as None is resolved
    from the feedstock category default; 0.0 is a real measured value.
    """
    feedstock_category: FeedstockCategory
    methodology: CIMethodology
    scope1_cultivation: Optional[float] = None
    scope1_processing: Optional[float] = None
    scope1_transport: Optional[float] = None
    scope2_electricity: Optional[float] = None
    scope2_steam_heat: Optional[float] = None
    scope3_upstream_inputs: Optional[float] = None
    scope3_land_use_change: Optional[float] = None
    scope3_distribution: Optional[float] = None
    scope3_end_of_life: Optional[float] = None
    region: Optional[str] = None
    data_quality_level: DataQualityLevel = "default"
    verification_level: VerificationLevel = "self_declared"
    reference_year: Optional[int] = None
    reporting_period: Optional[ReportingPeriod] = None
    is_new_installation: Optional[bool] = None
    activity: Optional[ActivityData] = None

    def explicit_values(self) -> Dict[str, float]:
        """Sub-categories the caller supplied, by field name."""
        return {
            name: getattr(self, name)
            for name in EMISSION_FIELDS
            if getattr(self, name) is not None
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CIEmissionInput":
        """
        Build an input from an API payload. Accepts snake_case keys and the
        camelCase spelling used by the web client for classification fields.
        """
        aliases = {
            "feedstockCategory": "feedstock_category",
            "dataQualityLevel": "data_quality_level",
            "verificationLevel": "verification_level",
            "referenceYear": "reference_year",
            "reportingPeriod": "reporting_period",
            "isNewInstallation": "is_new_installation",
        }
        data = {aliases.get(k, k): v for k, v in payload.items()}
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise InvalidInputError(f"Unknown input fields: {', '.join(sorted(unknown))}")

        for key in ("reporting_period", "activity"):
            value = data.get(key)
            if value is not None and not isinstance(value, Mapping):
                raise InvalidInputError(f"{key} must be an object, got {type(value).__name__}")

        period = data.get("reporting_period")
        if isinstance(period, Mapping):
            data["reporting_period"] = ReportingPeriod(
                start=parse_date(period["start"]),
                end=parse_date(period["end"]),
            )

        activity = data.get("activity")
        if isinstance(activity, Mapping):
            legs = tuple(
                TransportLeg(
                    mode=leg["mode"],
                    tonnes=float(leg["tonnes"]),
                    distance_km=float(leg["distance_km"]),
                )
                for leg in activity.get("transport_legs", ())
            )
            kwh = activity.get("electricity_kwh")
            data["activity"] = ActivityData(
                output_mj=float(activity["output_mj"]),
                electricity_kwh=float(kwh) if kwh is not None else None,
                transport_legs=legs,
            )

        return cls(**data)


def parse_date(value) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass(frozen=True)
class ValidationReport:
    valid: bool
    errors: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CICalculationResult:
    """
    Output of one calculation. Never mutated after creation; every number is
    full precision (rounding is a presentation concern).
    """
    # Scope 1 (direct)
    scope1_cultivation: float
    scope1_processing: float
    scope1_transport: float
    scope1_total: float
    # Scope 2 (purchased energy)
    scope2_electricity: float
    scope2_steam_heat: float
    scope2_total: float
    # Scope 3 (value chain)
    scope3_upstream_inputs: float
    scope3_land_use_change: float
    scope3_distribution: float
    scope3_end_of_life: float
    scope3_total: float

    total_ci_value: float
    ci_rating: str
    ci_score: float
    ghg_savings_percentage: float

    red_ii_compliant: bool
    rtfo_compliant: bool
    cfp_compliant: bool
    iscc_compliant: bool
    rsb_compliant: bool

    uncertainty_multiplier: float
    uncertainty_range_low: float
    uncertainty_range_high: float

    feedstock_category: FeedstockCategory
    methodology: CIMethodology
    region: Optional[str]
    data_quality_level: DataQualityLevel
    verification_level: VerificationLevel
    reference_year: Optional[int] = None
    reporting_period: Optional[ReportingPeriod] = None
    is_new_installation: Optional[bool] = None
    registry_version: str = ""
    field_sources: Mapping[str, str] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()

    def scope_breakdown(self) -> Dict[int, Dict[str, float]]:
        return {
            1: {name: getattr(self, name) for name in SCOPE1_FIELDS},
            2: {name: getattr(self, name) for name in SCOPE2_FIELDS},
            3: {name: getattr(self, name) for name in SCOPE3_FIELDS},
        }

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready projection (dates as ISO strings)."""
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["reporting_period"] = (
            self.reporting_period.to_dict() if self.reporting_period else None
        )
        out["field_sources"] = dict(self.field_sources)
        out["warnings"] = list(self.warnings)
        return out

