"""
Tests for the distance -> premium model.
"""

import math

import pytest

from parkvalue.analysis import DistancePremiumModel


@pytest.fixture
def model():
    return DistancePremiumModel()


@pytest.mark.parametrize("miles,expected", [
    (0.0, 22.3),
    (0.1, 22.3),
    (0.2, 22.3),
    (0.4, 14.6),
    (0.6, 7.9),
    (0.8, 2.1),
    (1.0, 0.1),
    (5.0, 0.0),
])
def test_calibration_points(model, miles, expected):
    assert model.estimate(miles) == pytest.approx(expected)


def test_interpolates_between_entries(model):
    # Halfway between 0.2 -> 22.3 and 0.3 -> 18.3
    assert model.estimate(0.25) == pytest.approx(20.3)
    # A fifth of the way from 0.6 -> 7.9 to 0.8 -> 2.1
    assert model.estimate(0.64) == pytest.approx(7.9 - 0.2 * 5.8)


def test_non_increasing_across_range(model):
    distances = [i / 100 for i in range(0, 301)]
    premiums = [model.estimate(d) for d in distances]
    assert all(a >= b for a, b in zip(premiums, premiums[1:]))
    assert all(p >= 0 for p in premiums)


def test_decay_floors_at_zero(model):
    assert model.estimate(1.01) == pytest.approx(0.0, abs=1e-9)
    assert model.estimate(100.0) == 0.0


@pytest.mark.parametrize("bad", [-0.1, math.nan, math.inf, None])
def test_rejects_out_of_range_input(model, bad):
    with pytest.raises(ValueError):
        model.estimate(bad)


def test_rejects_increasing_table():
    with pytest.raises(ValueError):
        DistancePremiumModel([(0.2, 10.0), (0.4, 12.0)])


def test_rejects_unsorted_table():
    with pytest.raises(ValueError):
        DistancePremiumModel([(0.4, 10.0), (0.2, 5.0)])


def test_custom_decay_rate():
    model = DistancePremiumModel([(0.5, 10.0)], decay_rate_per_mile=5.0)
    assert model.estimate(0.1) == 10.0
    assert model.estimate(1.5) == pytest.approx(5.0)
    assert model.max_premium == 10.0
