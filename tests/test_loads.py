"""外力生成（ForceGenerator）のテスト."""

from __future__ import annotations

import math

import numpy as np
import pytest

from shellwave.core import ForceGeneratorProtocol
from shellwave.loads import HannBurst, ScaledLoad, ZeroLoad, point_load_vector


class TestHannBurst:
    """Hann 窓変調正弦波バースト."""

    def test_default_modulation_is_quarter_carrier(self):
        burst = HannBurst(carrier_frequency=75.0e3)
        assert burst.modulation_frequency == pytest.approx(75.0e3 / 4.0)
        assert burst.duration == pytest.approx(4.0 / 75.0e3)

    def test_value_inside_window(self):
        fc = 100.0
        burst = HannBurst(carrier_frequency=fc, amplitude=2.0)
        t = 2.25 / fc
        fm = fc / 4.0
        expected = 2.0 * 0.5 * (1.0 - math.cos(2.0 * math.pi * fm * t)) * math.sin(
            2.0 * math.pi * fc * t
        )
        assert burst(t) == pytest.approx(expected, rel=1e-14)

    def test_zero_outside_window(self):
        burst = HannBurst(carrier_frequency=10.0)
        assert burst(-1.0e-3) == 0.0
        assert burst(burst.duration * 1.0001) == 0.0
        assert burst(10.0) == 0.0

    def test_starts_from_zero(self):
        assert HannBurst(carrier_frequency=10.0)(0.0) == 0.0

    def test_explicit_modulation(self):
        burst = HannBurst(carrier_frequency=10.0, modulation_frequency=2.0)
        assert burst.duration == pytest.approx(0.5)

    @pytest.mark.parametrize(
        "kwargs",
        [{"carrier_frequency": 0.0}, {"carrier_frequency": 1.0, "modulation_frequency": -1.0}],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            HannBurst(**kwargs)


class TestScaledLoad:
    """固定パターン × エンベロープ."""

    def test_writes_scaled_pattern(self):
        pattern = np.array([0.0, -1.0, 2.0])
        gen = ScaledLoad(pattern, lambda t: 3.0 * t)
        out = np.full(3, 99.0)
        result = gen(out, 2.0)
        assert result is out
        np.testing.assert_array_equal(out, [0.0, -6.0, 12.0])

    def test_pattern_is_copied(self):
        pattern = np.array([1.0, 1.0])
        gen = ScaledLoad(pattern, lambda t: 1.0)
        pattern[0] = 100.0
        out = np.empty(2)
        np.testing.assert_array_equal(gen(out, 0.0), [1.0, 1.0])
        assert gen.ndof == 2

    def test_deterministic(self):
        gen = ScaledLoad(np.array([1.0, -2.0]), HannBurst(carrier_frequency=50.0))
        a = gen(np.empty(2), 0.013).copy()
        b = gen(np.empty(2), 0.013).copy()
        np.testing.assert_array_equal(a, b)

    def test_non_vector_pattern(self):
        with pytest.raises(ValueError, match="1次元"):
            ScaledLoad(np.ones((2, 2)), lambda t: 1.0)

    def test_conforms_to_protocol(self):
        assert isinstance(ScaledLoad(np.ones(2), lambda t: 1.0), ForceGeneratorProtocol)
        assert isinstance(ZeroLoad(), ForceGeneratorProtocol)


class TestZeroLoad:
    def test_overwrites_buffer(self):
        out = np.ones(4)
        ZeroLoad()(out, 1.0)
        np.testing.assert_array_equal(out, np.zeros(4))


class TestPointLoadVector:
    """節点集中荷重パターン."""

    def test_single_dof(self):
        f = point_load_vector(5, 2, -1.0)
        np.testing.assert_array_equal(f, [0.0, 0.0, -1.0, 0.0, 0.0])

    def test_duplicates_accumulate(self):
        f = point_load_vector(3, [0, 0, 2], [1.0, 2.0, 5.0])
        np.testing.assert_array_equal(f, [3.0, 0.0, 5.0])

    def test_scalar_broadcast(self):
        f = point_load_vector(4, [1, 3], 2.0)
        np.testing.assert_array_equal(f, [0.0, 2.0, 0.0, 2.0])

    @pytest.mark.parametrize("dof", [-1, 4])
    def test_out_of_range(self, dof):
        with pytest.raises(ValueError, match="範囲外"):
            point_load_vector(4, dof, 1.0)
