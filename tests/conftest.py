import pytest

from feeder_diagnostics.loading import FeederLegReading


@pytest.fixture
def balanced_leg():
    return FeederLegReading.from_values(100, 100, 100, 0)


@pytest.fixture
def red_heavy_leg():
    return FeederLegReading.from_values(250, 50, 50, 0)
