from .models import (
    CIEmissionInput,
    CICalculationResult,
    DefaultEmissionFactors,
    ActivityData,
    TransportLeg,
    ReportingPeriod,
    ValidationReport,
)
from .registry import (
    EmissionFactorRegistry,
    DEFAULT_REGISTRY,
    load_registry,
)
from .calculator import (
    calculate_ci,
    calculate_ci_with_defaults,
    calculate_ci_payload,
    validate_ci_input,
)
from .errors import (
    CIEngineError,
    InvalidInputError,
    IncompleteInputError,
    RegistryError,
)
from .constants import (
    FOSSIL_FUEL_COMPARATOR,
    REGISTRY_VERSION,
)

__all__ = [
    "CIEmissionInput",
    "CICalculationResult",
    "DefaultEmissionFactors",
    "ActivityData",
    "TransportLeg",
    "ReportingPeriod",
    "ValidationReport",
    "EmissionFactorRegistry",
    "DEFAULT_REGISTRY",
    "load_registry",
    "calculate_ci",
    "calculate_ci_with_defaults",
    "calculate_ci_payload",
    "validate_ci_input",
    "CIEngineError",
    "InvalidInputError",
    "IncompleteInputError",
    "RegistryError",
    "FOSSIL_FUEL_COMPARATOR",
    "REGISTRY_VERSION",
]
