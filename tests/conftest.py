import matplotlib

matplotlib.use("Agg")

import pytest

from carbon_intensity.calculator import calculate_ci
from carbon_intensity.models import CIEmissionInput


@pytest.fixture
def uco_input():
    return CIEmissionInput(feedstock_category="UCO", methodology="RED_II")


@pytest.fixture
def uco_result(uco_input):
    return calculate_ci(uco_input)
