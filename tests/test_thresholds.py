###############################################################################
#                                                                             #
#    This program is free software: you can redistribute it and/or modify     #
#    it under the terms of the GNU General Public License as published by     #
#    the Free Software Foundation, either version 3 of the License, or        #
#    (at your option) any later version.                                      #
#                                                                             #
#    This program is distributed in the hope that it will be useful,          #
#    but WITHOUT ANY WARRANTY; without even the implied warranty of           #
#    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the            #
#    GNU General Public License for more details.                             #
#                                                                             #
#    You should have received a copy of the GNU General Public License        #
#    along with this program. If not, see <http://www.gnu.org/licenses/>.     #
#                                                                             #
###############################################################################
"""Tests for cutoff selection from a bootstrap histogram."""

import numpy as np
import pytest

from coocnet.bootstrap import BootstrapHistogram, bootstrap
from coocnet.errors import DegenerateDataError, InvalidConfigurationError
from coocnet.thresholds import QuantilePair, fixed_cutoffs, quantiles


@pytest.fixture
def ten_counts():
    # values -0.5, -0.2, 0.0, 0.2, 0.6 with cumulative proportions 0.1, 0.2, 0.4, 0.7, 1.0
    return BootstrapHistogram(
        {-500: 1, -200: 1, 0: 2, 200: 3, 600: 3}, precision=3, n_reps=1, n_pairs=10
    )


class TestQuantiles:

    def test_largest_index_at_most_each_bound(self, ten_counts):
        assert quantiles(ten_counts, 0.5) == (-0.2, 0.2)

    def test_falls_back_to_smallest_value(self, ten_counts):
        lower, upper = quantiles(ten_counts, 0.1)
        assert lower == -0.5
        assert upper == 0.2

    def test_bounds_are_inclusive(self):
        h = BootstrapHistogram({-100: 1, 0: 1, 100: 2}, precision=3, n_reps=1, n_pairs=4)
        # cumulative proportions 0.25, 0.5, 1.0; p / 2 = 0.25 hits index 0 exactly
        assert quantiles(h, 0.5) == (-0.1, 0.0)

    def test_values_come_from_the_histogram(self, poisson_matrix):
        h = bootstrap(poisson_matrix, n_reps=10, random_state=5, progress=False)
        observed = set(h.values.tolist())
        for p in (0.05, 0.2, 0.5, 0.8):
            pair = quantiles(h, p)
            assert pair.lower in observed
            assert pair.upper in observed
            assert pair.lower <= pair.upper

    def test_tail_masses_at_half(self, poisson_matrix):
        h = bootstrap(poisson_matrix, n_reps=20, random_state=5, progress=False)
        lower, upper = quantiles(h, 0.5)
        values, counts = h.values, h.counts
        assert counts[values <= lower].sum() <= 0.25 * h.total
        assert counts[values > upper].sum() >= 0.25 * h.total

    def test_single_value_is_degenerate(self):
        h = BootstrapHistogram({300: 12}, precision=3, n_reps=4, n_pairs=3)
        pair = quantiles(h, 0.5)
        assert pair.lower == pair.upper == 0.3
        assert pair.is_degenerate

    def test_empty_histogram(self):
        with pytest.raises(DegenerateDataError):
            quantiles(BootstrapHistogram.empty(), 0.5)

    @pytest.mark.parametrize("p", [0.0, 1.0, -0.2, 1.5, float("nan")])
    def test_p_outside_open_unit_interval(self, ten_counts, p):
        with pytest.raises(InvalidConfigurationError):
            quantiles(ten_counts, p)

    def test_rejects_non_histogram(self):
        with pytest.raises(TypeError):
            quantiles({0.1: 3}, 0.5)


class TestQuantilePair:

    def test_lower_above_upper_rejected(self):
        with pytest.raises(InvalidConfigurationError):
            QuantilePair(0.4, 0.1)

    def test_nan_rejected(self):
        with pytest.raises(InvalidConfigurationError):
            QuantilePair(np.nan, 0.1)

    def test_plain_floats(self):
        pair = QuantilePair(np.float64(-0.25), 1)
        assert pair == (-0.25, 1.0)
        assert isinstance(pair.upper, float)
        assert not pair.is_degenerate


class TestFixedCutoffs:

    def test_symmetric(self):
        assert fixed_cutoffs(0.3) == (-0.3, 0.3)
        assert fixed_cutoffs(-0.3) == (-0.3, 0.3)

    def test_zero_is_degenerate(self):
        assert fixed_cutoffs(0.0).is_degenerate

    @pytest.mark.parametrize("cutoff", [1.5, "high", float("nan")])
    def test_invalid(self, cutoff):
        with pytest.raises(InvalidConfigurationError):
            fixed_cutoffs(cutoff)
