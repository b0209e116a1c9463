import itertools

import pytest

from carbon_intensity.constants import (
    COMPLIANCE_THRESHOLDS, RED_II_NEW_INSTALLATION_THRESHOLD,
    DATA_QUALITY_UNCERTAINTY, VERIFICATION_LEVELS, METHODOLOGY_ADJUSTMENTS,
)
from carbon_intensity.registry import DEFAULT_REGISTRY
from carbon_intensity.utils.calculations import (
    calculate_scope1_total, calculate_scope3_total, calculate_total_ci,
    calculate_ghg_savings, get_ci_rating, get_ci_score, check_compliance,
    combined_uncertainty_multiplier, calculate_uncertainty_range,
    electricity_emissions_g_per_mj, transport_emissions_g_per_mj, grid_adjustment_ratio,
    is_finite_number, f2,
)


def test_scope_sums_keep_negative_credits():
    assert calculate_scope1_total(0.0, 3.5, 1.2) == pytest.approx(4.7)
    assert calculate_scope3_total(0.9, 0.0, 1.9, -3.0) == pytest.approx(-0.2)
    assert calculate_total_ci(9.1, 5.1, -0.2) == pytest.approx(14.0)


@pytest.mark.parametrize("ci, expected", [
    (-5.0, "A+"),
    (0.0, "A+"),
    (10.0, "A+"),
    (10.001, "A"),
    (20.0, "A"),
    (20.001, "B+"),
    (30.0, "B+"),
    (30.001, "B"),
    (40.0, "B"),
    (40.001, "C+"),
    (50.0, "C+"),
    (50.001, "C"),
    (60.0, "C"),
    (60.001, "D"),
    (69.999, "D"),
    (70.0, "D"),
    (70.001, "F"),
    (94.0, "F"),
])
def test_rating_boundaries(ci, expected):
    assert get_ci_rating(ci) == expected


def test_ghg_savings_reference_points():
    assert calculate_ghg_savings(94.0) == pytest.approx(0.0)
    assert calculate_ghg_savings(0.0) == pytest.approx(100.0)
    assert calculate_ghg_savings(-9.4) == pytest.approx(110.0)
    assert calculate_ghg_savings(188.0) == pytest.approx(-100.0)


def test_score_is_clamped_savings():
    assert get_ci_score(8.8) == pytest.approx(calculate_ghg_savings(8.8))
    assert get_ci_score(-9.4) == 100.0
    assert get_ci_score(120.0) == 0.0


def test_compliance_threshold_is_inclusive():
    at = check_compliance(50.0, COMPLIANCE_THRESHOLDS, RED_II_NEW_INSTALLATION_THRESHOLD)
    assert all(at.values())
    below = check_compliance(49.999, COMPLIANCE_THRESHOLDS, RED_II_NEW_INSTALLATION_THRESHOLD)
    assert not any(below.values())
    assert set(at) == {"red_ii_compliant", "rtfo_compliant", "cfp_compliant", "iscc_compliant", "rsb_compliant"}


def test_red_ii_new_installation_threshold():
    def red_ii(savings, is_new):
        return check_compliance(
            savings, COMPLIANCE_THRESHOLDS, RED_II_NEW_INSTALLATION_THRESHOLD, is_new
        )["red_ii_compliant"]

    assert red_ii(60.0, None) is True
    assert red_ii(60.0, False) is True
    assert red_ii(60.0, True) is False
    assert red_ii(64.999, True) is False
    assert red_ii(65.0, True) is True
    # other schemes ignore the flag
    assert check_compliance(60.0, COMPLIANCE_THRESHOLDS, 65.0, True)["rtfo_compliant"] is True


def test_uncertainty_band_contains_point_estimate_for_every_combination():
    for dq, vl, m in itertools.product(DATA_QUALITY_UNCERTAINTY, VERIFICATION_LEVELS, METHODOLOGY_ADJUSTMENTS):
        multiplier = combined_uncertainty_multiplier(
            DATA_QUALITY_UNCERTAINTY[dq],
            VERIFICATION_LEVELS[vl]["uncertainty_multiplier"],
            METHODOLOGY_ADJUSTMENTS[m]["uncertainty_factor"],
        )
        assert multiplier >= 1.0
        for ci in (8.8, 0.0, -0.2, 75.0):
            low, high = calculate_uncertainty_range(ci, multiplier)
            assert low <= ci <= high
            assert high - ci == pytest.approx(ci - low)


def test_uncertainty_band_width():
    multiplier = combined_uncertainty_multiplier(1.3, 1.2, 1.0)
    assert multiplier == pytest.approx(1.56)
    low, high = calculate_uncertainty_range(8.8, multiplier)
    assert low == pytest.approx(3.872)
    assert high == pytest.approx(13.728)
    # no clamp at zero
    low, high = calculate_uncertainty_range(-0.2, multiplier)
    assert low == pytest.approx(-0.312)
    assert high == pytest.approx(-0.088)


def test_activity_unit_conversions():
    # 10 kWh on a 0.35 kg/kWh grid over 1000 MJ of fuel
    assert electricity_emissions_g_per_mj(10.0, 1000.0, 0.35) == pytest.approx(3.5)
    # 2 t over 100 km by truck (62 g/t.km) over 1000 MJ
    assert transport_emissions_g_per_mj(2.0, 100.0, 1000.0, 62.0) == pytest.approx(12.4)


def test_grid_adjustment_ratio():
    assert grid_adjustment_ratio(DEFAULT_REGISTRY, "NSW") == 1.0
    assert grid_adjustment_ratio(DEFAULT_REGISTRY, None) == 1.0
    assert grid_adjustment_ratio(DEFAULT_REGISTRY, "VIC") == pytest.approx(0.96 / 0.79)
    assert grid_adjustment_ratio(DEFAULT_REGISTRY, "TAS") < 1.0


def test_finite_number_check():
    assert is_finite_number(1)
    assert is_finite_number(-3.0)
    assert not is_finite_number(True)
    assert not is_finite_number(None)
    assert not is_finite_number("1.0")
    assert not is_finite_number(float("nan"))
    assert not is_finite_number(float("inf"))
    assert f2(8.8) == "8.80"
