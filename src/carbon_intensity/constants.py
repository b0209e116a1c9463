from typing import Literal, Tuple, Dict, get_args

# ============================================================================
# TYPES (Code constructs, not registry parameters)
# ============================================================================

FeedstockCategory = Literal[
    "oilseed", "UCO", "tallow", "lignocellulosic", "waste", "algae", "bamboo", "other"
]
CIMethodology = Literal["RED_II", "RTFO", "ISO_14064", "ISCC", "RSB"]
ComplianceScheme = Literal["RED_II", "RTFO", "ISO_14064", "ISCC", "RSB", "CFP"]
DataQualityLevel = Literal["default", "industry_average", "primary_measured"]
VerificationLevel = Literal[
    "self_declared", "document_verified", "third_party_audited", "abfi_certified"
]
TransportMode = Literal[
    "road_truck", "road_light", "rail_diesel", "rail_electric",
    "ship_coastal", "ship_international", "barge", "pipeline"
]
ReportStatus = Literal["draft", "submitted", "under_review", "verified", "rejected", "expired"]
FieldSource = Literal["explicit", "activity", "default", "default_grid_adjusted"]

FEEDSTOCK_CATEGORIES: Tuple[str, ...] = get_args(FeedstockCategory)
CI_METHODOLOGIES: Tuple[str, ...] = get_args(CIMethodology)
COMPLIANCE_SCHEMES: Tuple[str, ...] = get_args(ComplianceScheme)
DATA_QUALITY_LEVELS: Tuple[str, ...] = get_args(DataQualityLevel)
VERIFICATION_LEVEL_NAMES: Tuple[str, ...] = get_args(VerificationLevel)
TRANSPORT_MODES: Tuple[str, ...] = get_args(TransportMode)
REPORT_STATUSES: Tuple[str, ...] = get_args(ReportStatus)

# Emission sub-categories, in scope order. All values are gCO2e/MJ.
SCOPE1_FIELDS = ("scope1_cultivation", "scope1_processing", "scope1_transport")
SCOPE2_FIELDS = ("scope2_electricity", "scope2_steam_heat")
SCOPE3_FIELDS = (
    "scope3_upstream_inputs", "scope3_land_use_change",
    "scope3_distribution", "scope3_end_of_life",
)
EMISSION_FIELDS = SCOPE1_FIELDS + SCOPE2_FIELDS + SCOPE3_FIELDS
SCOPE_FIELDS = {1: SCOPE1_FIELDS, 2: SCOPE2_FIELDS, 3: SCOPE3_FIELDS}

# Fields allowed to carry a negative value (avoided-landfill credit).
CREDIT_FIELDS = ("scope3_end_of_life",)

# ============================================================================
# SETTINGS & CONSTANTS
# ============================================================================

REGISTRY_VERSION = "2024.1"

# Conventional fuel baseline for all savings percentages (gCO2e/MJ)
FOSSIL_FUEL_COMPARATOR = 94.0

# Inclusive upper bounds (gCO2e/MJ), ascending. Anything above the D cutoff is F.
CI_RATING_THRESHOLDS: Tuple[Tuple[str, float], ...] = (
    ("A+", 10.0),
    ("A", 20.0),
    ("B+", 30.0),
    ("B", 40.0),
    ("C+", 50.0),
    ("C", 60.0),
    ("D", 70.0),
)
FAILING_RATING = "F"

# Minimum GHG savings (%) by scheme
COMPLIANCE_THRESHOLDS: Dict[str, float] = {
    "RED_II": 50.0,     # existing installations
    "RTFO": 50.0,
    "ISO_14064": 0.0,   # reporting standard, no minimum
    "ISCC": 50.0,
    "RSB": 50.0,
    "CFP": 50.0,
}
CFP_COMPLIANCE_THRESHOLD = COMPLIANCE_THRESHOLDS["CFP"]

# Installations commissioned from January 2021
RED_II_NEW_INSTALLATION_THRESHOLD = 65.0

# Industry-average defaults by feedstock category (gCO2e/MJ).
# scope2_electricity defaults assume the national average grid.
DEFAULT_EMISSION_FACTORS: Dict[str, Dict[str, float]] = {
    # canola, soybean etc.
    "oilseed": {
        "scope1_cultivation": 12.5,
        "scope1_processing": 5.8,
        "scope1_transport": 2.3,
        "scope2_electricity": 3.2,
        "scope2_steam_heat": 2.1,
        "scope3_upstream_inputs": 4.5,
        "scope3_land_use_change": 8.0,
        "scope3_distribution": 2.5,
        "scope3_end_of_life": 0.0,
    },
    # used cooking oil, no cultivation
    "UCO": {
        "scope1_cultivation": 0.0,
        "scope1_processing": 3.5,
        "scope1_transport": 1.2,
        "scope2_electricity": 1.8,
        "scope2_steam_heat": 0.5,
        "scope3_upstream_inputs": 0.3,
        "scope3_land_use_change": 0.0,
        "scope3_distribution": 1.5,
        "scope3_end_of_life": 0.0,
    },
    # rendering byproduct
    "tallow": {
        "scope1_cultivation": 0.0,
        "scope1_processing": 4.2,
        "scope1_transport": 1.5,
        "scope2_electricity": 2.1,
        "scope2_steam_heat": 1.2,
        "scope3_upstream_inputs": 0.5,
        "scope3_land_use_change": 0.0,
        "scope3_distribution": 1.8,
        "scope3_end_of_life": 0.0,
    },
    # crop and forestry residues
    "lignocellulosic": {
        "scope1_cultivation": 1.8,
        "scope1_processing": 4.0,
        "scope1_transport": 2.8,
        "scope2_electricity": 1.8,
        "scope2_steam_heat": 0.9,
        "scope3_upstream_inputs": 1.4,
        "scope3_land_use_change": 0.0,
        "scope3_distribution": 2.0,
        "scope3_end_of_life": 0.0,
    },
    # municipal / industrial waste, credit for avoided landfill
    "waste": {
        "scope1_cultivation": 0.0,
        "scope1_processing": 6.8,
        "scope1_transport": 2.3,
        "scope2_electricity": 3.3,
        "scope2_steam_heat": 1.8,
        "scope3_upstream_inputs": 0.9,
        "scope3_land_use_change": 0.0,
        "scope3_distribution": 1.9,
        "scope3_end_of_life": -3.0,
    },
    "algae": {
        "scope1_cultivation": 8.0,
        "scope1_processing": 7.5,
        "scope1_transport": 1.0,
        "scope2_electricity": 12.0,
        "scope2_steam_heat": 3.0,
        "scope3_upstream_inputs": 5.0,
        "scope3_land_use_change": 0.0,
        "scope3_distribution": 1.5,
        "scope3_end_of_life": 0.0,
    },
    "bamboo": {
        "scope1_cultivation": 3.5,
        "scope1_processing": 5.0,
        "scope1_transport": 2.5,
        "scope2_electricity": 2.8,
        "scope2_steam_heat": 1.5,
        "scope3_upstream_inputs": 1.5,
        "scope3_land_use_change": 2.0,
        "scope3_distribution": 2.0,
        "scope3_end_of_life": 0.0,
    },
    # conservative
    "other": {
        "scope1_cultivation": 10.0,
        "scope1_processing": 6.0,
        "scope1_transport": 2.5,
        "scope2_electricity": 3.5,
        "scope2_steam_heat": 2.0,
        "scope3_upstream_inputs": 4.0,
        "scope3_land_use_change": 5.0,
        "scope3_distribution": 2.5,
        "scope3_end_of_life": 0.0,
    },
}

# Electricity grid factors by state/territory (kgCO2e/kWh)
NATIONAL_GRID_REGION = "national"
GRID_EMISSION_FACTORS: Dict[str, float] = {
    "NSW": 0.79,
    "VIC": 0.96,
    "QLD": 0.81,
    "SA": 0.35,
    "WA": 0.69,
    "TAS": 0.15,
    "NT": 0.64,
    "ACT": 0.79,  # NSW grid
    NATIONAL_GRID_REGION: 0.79,
}

# Freight factors (gCO2e/tonne-km)
TRANSPORT_EMISSION_FACTORS: Dict[str, float] = {
    "road_truck": 62.0,
    "road_light": 150.0,
    "rail_diesel": 22.0,
    "rail_electric": 8.0,
    "ship_coastal": 16.0,
    "ship_international": 8.0,
    "barge": 31.0,
    "pipeline": 5.0,
}

# Reference data (kgCO2e/kg)
FERTILIZER_EMISSION_FACTORS: Dict[str, float] = {
    "nitrogen_synthetic": 5.9,
    "nitrogen_organic": 0.5,
    "phosphorus": 1.0,
    "potassium": 0.5,
    "lime": 0.44,
}

# Reference data (MJ electricity per MJ feedstock output)
PROCESSING_ENERGY_FACTORS: Dict[str, float] = {
    "uco_processing": 0.02,
    "animal_fat_rendering": 0.04,
    "vegetable_oil_extraction": 0.05,
    "vegetable_oil_refining": 0.03,
    "biomass_pelletizing": 0.08,
    "anaerobic_digestion": 0.10,
    "pyrolysis": 0.15,
    "gasification": 0.20,
}

METHODOLOGY_ADJUSTMENTS: Dict[str, Dict[str, object]] = {
    "RED_II": {"includes_indirect_luc": True, "allocation_method": "energy", "uncertainty_factor": 1.0},
    "RTFO": {"includes_indirect_luc": True, "allocation_method": "energy", "uncertainty_factor": 1.0},
    "ISO_14064": {"includes_indirect_luc": False, "allocation_method": "mass", "uncertainty_factor": 1.1},
    "ISCC": {"includes_indirect_luc": True, "allocation_method": "energy", "uncertainty_factor": 1.0},
    "RSB": {"includes_indirect_luc": True, "allocation_method": "energy", "uncertainty_factor": 1.05},
}

VERIFICATION_LEVELS: Dict[str, Dict[str, object]] = {
    "self_declared": {
        "label": "Self-Declared",
        "description": "Values declared by the supplier without third-party verification",
        "uncertainty_multiplier": 1.2,
    },
    "document_verified": {
        "label": "Document Verified",
        "description": "Supporting documentation reviewed by ABFI",
        "uncertainty_multiplier": 1.1,
    },
    "third_party_audited": {
        "label": "Third-Party Audited",
        "description": "Independently audited by accredited third party",
        "uncertainty_multiplier": 1.05,
    },
    "abfi_certified": {
        "label": "ABFI Certified",
        "description": "Full certification through ABFI verification process",
        "uncertainty_multiplier": 1.0,
    },
}

DATA_QUALITY_UNCERTAINTY: Dict[str, float] = {
    "default": 1.3,
    "industry_average": 1.15,
    "primary_measured": 1.0,
}

# Plausibility ceiling for the sum of absolute sub-category values (gCO2e/MJ)
PLAUSIBLE_TOTAL_ABS_LIMIT = 200.0

DECIMALS = 2
