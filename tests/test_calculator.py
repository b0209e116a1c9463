import math
from datetime import date

import pytest

from carbon_intensity.audit import CalculationAudit
from carbon_intensity.calculator import (
    calculate_ci, calculate_ci_with_defaults, calculate_ci_payload,
    resolve_emission_fields, validate_ci_input,
)
from carbon_intensity.constants import EMISSION_FIELDS, FEEDSTOCK_CATEGORIES, CI_METHODOLOGIES
from carbon_intensity.errors import (
    IncompleteInputError, InvalidCategoryError, InvalidMethodologyError,
    InvalidDataQualityError, InvalidVerificationLevelError, InvalidTransportModeError,
    InvalidInputError,
)
from carbon_intensity.models import CIEmissionInput, ActivityData, TransportLeg, ReportingPeriod
from carbon_intensity.registry import DEFAULT_REGISTRY, registry_from_parameters


def test_uco_all_defaults(uco_result):
    r = uco_result
    assert r.scope1_total == pytest.approx(4.7)
    assert r.scope2_total == pytest.approx(2.3)
    assert r.scope3_total == pytest.approx(1.8)
    assert r.total_ci_value == pytest.approx(8.8)
    assert r.ci_rating == "A+"
    assert r.ghg_savings_percentage == pytest.approx(90.6383, abs=1e-4)
    assert r.red_ii_compliant is True
    assert r.rtfo_compliant is True
    assert r.cfp_compliant is True
    assert r.uncertainty_multiplier == pytest.approx(1.56)
    assert r.uncertainty_range_low <= r.total_ci_value <= r.uncertainty_range_high
    assert r.registry_version == DEFAULT_REGISTRY.version
    assert set(r.field_sources.values()) == {"default"}
    assert r.warnings == ()


def test_waste_credit_is_not_clamped():
    r = calculate_ci(CIEmissionInput(feedstock_category="waste", methodology="RED_II"))
    assert r.scope3_end_of_life == -3.0
    assert r.scope3_total == pytest.approx(-0.2)
    assert r.total_ci_value == pytest.approx(9.1 + 5.1 - 0.2)
    assert r.warnings == ()


def test_net_negative_ci_gives_savings_above_100():
    r = calculate_ci(CIEmissionInput(
        feedstock_category="waste",
        methodology="ISCC",
        scope1_processing=0.0,
        scope1_transport=0.0,
        scope2_electricity=0.0,
        scope2_steam_heat=0.0,
    ))
    assert r.total_ci_value == pytest.approx(-0.2)
    assert r.ghg_savings_percentage > 100.0
    assert r.ci_score == 100.0
    assert r.ci_rating == "A+"
    assert r.uncertainty_range_low < r.total_ci_value < r.uncertainty_range_high


def test_aggregation_identity_for_every_category():
    for category in FEEDSTOCK_CATEGORIES:
        for methodology in CI_METHODOLOGIES:
            r = calculate_ci(CIEmissionInput(feedstock_category=category, methodology=methodology))
            assert r.total_ci_value == r.scope1_total + r.scope2_total + r.scope3_total
            breakdown = r.scope_breakdown()
            for scope, total in ((1, r.scope1_total), (2, r.scope2_total), (3, r.scope3_total)):
                assert sum(breakdown[scope].values()) == pytest.approx(total)


def test_single_field_override_changes_only_that_field(uco_result):
    overridden = calculate_ci(CIEmissionInput(
        feedstock_category="UCO", methodology="RED_II", scope1_processing=5.0,
    ))
    assert overridden.scope1_processing == 5.0
    assert overridden.field_sources["scope1_processing"] == "explicit"
    assert overridden.total_ci_value - uco_result.total_ci_value == pytest.approx(1.5)
    for name in EMISSION_FIELDS:
        if name != "scope1_processing":
            assert getattr(overridden, name) == getattr(uco_result, name)


def test_zero_is_a_real_value_not_absent():
    r = calculate_ci(CIEmissionInput(
        feedstock_category="oilseed", methodology="RED_II", scope1_cultivation=0.0,
    ))
    assert r.scope1_cultivation == 0.0
    assert r.field_sources["scope1_cultivation"] == "explicit"
    assert r.scope1_processing == 5.8


def test_calculation_is_idempotent(uco_input):
    first = calculate_ci(uco_input)
    second = calculate_ci(uco_input)
    assert first.to_dict() == second.to_dict()
    assert uco_input.scope1_processing is None


def test_result_is_frozen(uco_result):
    with pytest.raises(AttributeError):
        uco_result.total_ci_value = 0.0  # type: ignore[misc]
    with pytest.raises(TypeError):
        uco_result.field_sources["scope1_cultivation"] = "explicit"  # type: ignore[index]


def test_regional_grid_scales_only_electricity_default():
    national = calculate_ci(CIEmissionInput(feedstock_category="UCO", methodology="RED_II", region="NSW"))
    vic = calculate_ci(CIEmissionInput(feedstock_category="UCO", methodology="RED_II", region="VIC"))
    assert national.field_sources["scope2_electricity"] == "default"
    assert vic.field_sources["scope2_electricity"] == "default_grid_adjusted"
    assert vic.scope2_electricity == pytest.approx(1.8 * 0.96 / 0.79)
    for name in EMISSION_FIELDS:
        if name != "scope2_electricity":
            assert getattr(vic, name) == getattr(national, name)


def test_unknown_region_uses_national_average():
    r = calculate_ci(CIEmissionInput(feedstock_category="UCO", methodology="RED_II", region="Atlantis"))
    assert r.scope2_electricity == 1.8
    assert r.region == "Atlantis"


def test_explicit_electricity_not_grid_scaled():
    r = calculate_ci(CIEmissionInput(
        feedstock_category="UCO", methodology="RED_II", region="VIC", scope2_electricity=2.0,
    ))
    assert r.scope2_electricity == 2.0
    assert r.field_sources["scope2_electricity"] == "explicit"


def test_activity_data_resolution():
    activity = ActivityData(
        output_mj=1000.0,
        electricity_kwh=10.0,
        transport_legs=(
            TransportLeg(mode="road_truck", tonnes=2.0, distance_km=100.0),
            TransportLeg(mode="rail_electric", tonnes=2.0, distance_km=500.0),
        ),
    )
    r = calculate_ci(CIEmissionInput(
        feedstock_category="tallow", methodology="RTFO", region="SA", activity=activity,
    ))
    assert r.scope2_electricity == pytest.approx(3.5)
    assert r.scope1_transport == pytest.approx(12.4 + 8.0)
    assert r.field_sources["scope2_electricity"] == "activity"
    assert r.field_sources["scope1_transport"] == "activity"
    assert r.field_sources["scope1_processing"] == "default"


def test_explicit_value_beats_activity_data():
    r = calculate_ci(CIEmissionInput(
        feedstock_category="tallow", methodology="RTFO", scope2_electricity=1.0,
        activity=ActivityData(output_mj=1000.0, electricity_kwh=10.0),
    ))
    assert r.scope2_electricity == 1.0
    assert r.field_sources["scope2_electricity"] == "explicit"


def test_invalid_activity_data_rejected():
    with pytest.raises(InvalidInputError):
        calculate_ci(CIEmissionInput(
            feedstock_category="UCO", methodology="RED_II", activity=ActivityData(output_mj=0.0),
        ))
    with pytest.raises(InvalidTransportModeError):
        calculate_ci(CIEmissionInput(
            feedstock_category="UCO", methodology="RED_II",
            activity=ActivityData(output_mj=100.0, transport_legs=(TransportLeg("hovercraft", 1.0, 1.0),)),
        ))


@pytest.mark.parametrize("overrides, error", [
    ({"feedstock_category": "corn"}, InvalidCategoryError),
    ({"feedstock_category": None}, InvalidCategoryError),
    ({"methodology": "EPA_RFS"}, InvalidMethodologyError),
    ({"data_quality_level": "excellent"}, InvalidDataQualityError),
    ({"verification_level": "trust_me"}, InvalidVerificationLevelError),
    ({"is_new_installation": "yes"}, InvalidInputError),
    ({"reference_year": "2024"}, InvalidInputError),
    ({"reference_year": 2024.0}, InvalidInputError),
])
def test_classification_errors(overrides, error):
    kwargs = dict(feedstock_category="UCO", methodology="RED_II")
    kwargs.update(overrides)
    with pytest.raises(error):
        calculate_ci(CIEmissionInput(**kwargs))


def test_reporting_period_order_checked():
    period = ReportingPeriod(start=date(2024, 6, 30), end=date(2024, 1, 1))
    with pytest.raises(InvalidInputError):
        calculate_ci(CIEmissionInput(feedstock_category="UCO", methodology="RED_II", reporting_period=period))


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), "3.5"])
def test_non_finite_explicit_value_is_incomplete(bad):
    with pytest.raises(IncompleteInputError) as exc:
        calculate_ci(CIEmissionInput(feedstock_category="UCO", methodology="RED_II", scope2_steam_heat=bad))
    assert exc.value.field == "scope2_steam_heat"


def test_resolve_reports_sources():
    values, sources = resolve_emission_fields(
        CIEmissionInput(feedstock_category="algae", methodology="RSB", scope1_cultivation=4.0)
    )
    assert values["scope1_cultivation"] == 4.0
    assert sources["scope1_cultivation"] == "explicit"
    assert values["scope2_electricity"] == 12.0
    assert all(math.isfinite(v) for v in values.values())


def test_defaults_not_inflated_by_data_quality():
    low = calculate_ci(CIEmissionInput(feedstock_category="UCO", methodology="RED_II",
                                       data_quality_level="default"))
    high = calculate_ci(CIEmissionInput(feedstock_category="UCO", methodology="RED_II",
                                        data_quality_level="primary_measured",
                                        verification_level="abfi_certified"))
    assert low.total_ci_value == high.total_ci_value
    assert high.uncertainty_multiplier == 1.0
    assert high.uncertainty_range_low == high.uncertainty_range_high == high.total_ci_value
    assert low.uncertainty_range_high > high.uncertainty_range_high


def test_methodology_factor_widens_band():
    red_ii = calculate_ci(CIEmissionInput(feedstock_category="UCO", methodology="RED_II"))
    iso = calculate_ci(CIEmissionInput(feedstock_category="UCO", methodology="ISO_14064"))
    assert iso.uncertainty_multiplier == pytest.approx(red_ii.uncertainty_multiplier * 1.1)


def test_new_installation_flag():
    # oilseed default total 40.9 -> savings ~56.5%
    existing = calculate_ci(CIEmissionInput(feedstock_category="oilseed", methodology="RED_II"))
    new = calculate_ci(CIEmissionInput(feedstock_category="oilseed", methodology="RED_II",
                                       is_new_installation=True))
    assert 50.0 < existing.ghg_savings_percentage < 65.0
    assert existing.red_ii_compliant is True
    assert new.red_ii_compliant is False
    assert new.rtfo_compliant is True


def test_plausibility_warnings_attached_not_raised():
    r = calculate_ci(CIEmissionInput(
        feedstock_category="other", methodology="RED_II", scope1_cultivation=-1.0,
    ))
    assert "Scope 1 cultivation cannot be negative" in r.warnings


def test_validate_ci_input_messages():
    ok = validate_ci_input({"scope3_end_of_life": -3.0, "scope1_processing": 5.0})
    assert ok.valid and ok.errors == ()

    report = validate_ci_input({"scope2_electricity": -1.0, "scope1_cultivation": 150.0, "scope3_distribution": 60.0})
    assert not report.valid
    assert "Scope 2 electricity cannot be negative" in report.errors
    assert "Total emissions seem unusually high. Please verify input values." in report.errors

    from_input = validate_ci_input(CIEmissionInput(feedstock_category="UCO", methodology="RED_II",
                                                   scope3_land_use_change=-2.0))
    assert from_input.errors == ("Scope 3 land use change cannot be negative",)


def test_custom_registry_flows_through():
    custom = registry_from_parameters({"DEFAULT.UCO.scope1_processing": 4.5, "VERSION": "2025.1"})
    r = calculate_ci(CIEmissionInput(feedstock_category="UCO", methodology="RED_II"), custom)
    assert r.total_ci_value == pytest.approx(9.8)
    assert r.registry_version == "2025.1"


def test_calculate_ci_with_defaults():
    r = calculate_ci_with_defaults({"scope1_processing": 2.0}, "UCO", "RED_II", is_new_installation=True)
    assert r.total_ci_value == pytest.approx(7.3)
    assert r.is_new_installation is True
    with pytest.raises(InvalidInputError):
        calculate_ci_with_defaults({"scope9_magic": 1.0}, "UCO", "RED_II")


def test_payload_round_trip():
    response = calculate_ci_payload({
        "feedstockCategory": "UCO",
        "methodology": "RED_II",
        "reportingPeriod": {"start": "2024-01-01", "end": "2024-12-31"},
        "referenceYear": 2024,
    })
    assert response["ok"] is True
    result = response["result"]
    assert result["total_ci_value"] == pytest.approx(8.8)
    assert result["reporting_period"] == {"start": "2024-01-01", "end": "2024-12-31"}
    assert result["field_sources"]["scope1_cultivation"] == "default"


@pytest.mark.parametrize("payload, error_type", [
    ({"feedstockCategory": "corn", "methodology": "RED_II"}, "InvalidCategoryError"),
    ({"feedstockCategory": "UCO", "methodology": "RED_II", "colour": "green"}, "InvalidInputError"),
    ({"feedstockCategory": "UCO"}, "InvalidInputError"),
    ({"feedstockCategory": "UCO", "methodology": "RED_II",
      "reportingPeriod": {"start": "not a date", "end": "2024-12-31"}}, "InvalidInputError"),
    ({"feedstockCategory": "UCO", "methodology": "RED_II",
      "reportingPeriod": "2024-01-01/2024-12-31"}, "InvalidInputError"),
    ({"feedstockCategory": "UCO", "methodology": "RED_II", "activity": [1000]}, "InvalidInputError"),
    ({"feedstockCategory": "UCO", "methodology": "RED_II", "referenceYear": "banana"}, "InvalidInputError"),
])
def test_payload_structured_errors(payload, error_type):
    response = calculate_ci_payload(payload)
    assert response["ok"] is False
    assert response["error"]["type"] == error_type
    assert response["error"]["message"]


def test_audit_trail_records_steps(uco_input, tmp_path):
    audit = CalculationAudit(session_id="test")
    calculate_ci(uco_input, audit=audit)
    contexts = [e["context"] for e in audit.entries]
    assert "Total carbon intensity" in contexts
    assert "GHG savings" in contexts
    total = next(e for e in audit.entries if e["context"] == "Total carbon intensity")
    assert total["result"] == pytest.approx(8.8)

    path = audit.write(str(tmp_path))
    text = open(path, encoding="utf-8").read()
    assert text.startswith("=== EMISSION CALCULATION AUDIT LOG ===")
    assert "Session: test" in text
    assert "Scope1 + Scope2 + Scope3" in text
