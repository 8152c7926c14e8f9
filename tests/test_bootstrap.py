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
"""Tests for the bootstrap correlation histogram."""

import numpy as np
import pytest

from coocnet.bootstrap import BootstrapHistogram, bootstrap
from coocnet.errors import InputShapeError, InvalidConfigurationError


def _corr(values):
    return np.array(values, dtype=float)


@pytest.fixture
def three_histograms():
    a = BootstrapHistogram.from_correlations(_corr([[1, 0.3, -0.2], [0.3, 1, 0.3], [-0.2, 0.3, 1]]))
    b = BootstrapHistogram.from_correlations(_corr([[1, 0.1, 0.1], [0.1, 1, -0.2], [0.1, -0.2, 1]]))
    c = BootstrapHistogram.from_correlations(_corr([[1, 0.3, np.nan], [0.3, 1, 0.5], [np.nan, 0.5, 1]]))
    return a, b, c


class TestBootstrapHistogram:

    def test_single_iteration_counts(self, three_histograms):
        a, _, _ = three_histograms
        assert a.as_dict() == {-0.2: 1, 0.3: 2}
        assert a.total == 3
        assert a.n_pairs == 3
        assert a.n_reps == 1

    def test_diagonal_never_counted(self, three_histograms):
        a, b, _ = three_histograms
        assert a.count(1.0) == 0
        assert (a + b).count(1.0) == 0

    def test_indeterminate_pairs_left_out(self, three_histograms):
        _, _, c = three_histograms
        assert c.total == 2
        assert c.n_indeterminate == 1
        assert c.total == c.expected_total

    def test_merge_is_associative_and_commutative(self, three_histograms):
        a, b, c = three_histograms
        assert (a + b) + c == a + (b + c)
        assert a + b == b + a
        merged = a + b + c
        assert merged.n_reps == 3
        assert merged.count(0.3) == 3
        assert merged.count(-0.2) == 2
        assert merged.total == merged.expected_total == 8

    def test_merge_with_empty(self, three_histograms):
        a, _, _ = three_histograms
        assert BootstrapHistogram.empty() + a == a

    def test_merge_rejects_mixed_precision(self, three_histograms):
        a, _, _ = three_histograms
        coarse = BootstrapHistogram.from_correlations(np.eye(3), precision=1)
        with pytest.raises(InvalidConfigurationError):
            a.merge(coarse)

    def test_merge_rejects_different_pair_counts(self, three_histograms):
        a, _, _ = three_histograms
        bigger = BootstrapHistogram.from_correlations(np.eye(4))
        with pytest.raises(InputShapeError):
            a.merge(bigger)

    def test_rounding_uses_integer_keys(self):
        R = _corr([[1, 0.1 + 0.2], [0.1 + 0.2, 1]])
        h = BootstrapHistogram.from_correlations(R) + BootstrapHistogram.from_correlations(
            _corr([[1, 0.3], [0.3, 1]])
        )
        assert len(h) == 1
        assert h.count(0.3) == 2

    def test_precision(self):
        h = BootstrapHistogram.from_correlations(_corr([[1, 0.1234], [0.1234, 1]]), precision=2)
        assert h.values.tolist() == [0.12]

    def test_invalid_precision(self):
        with pytest.raises(InvalidConfigurationError):
            BootstrapHistogram.from_correlations(np.eye(2), precision=-1)

    def test_to_frame(self, three_histograms):
        a, _, _ = three_histograms
        df = a.to_frame()
        assert list(df.columns) == ["value", "count"]
        assert df["value"].tolist() == [-0.2, 0.3]
        assert df["count"].tolist() == [1, 2]


class TestBootstrap:

    def test_total_is_reps_times_pairs(self, poisson_matrix):
        h = bootstrap(poisson_matrix, n_reps=20, random_state=1, progress=False)
        assert h.n_reps == 20
        assert h.n_pairs == 10
        assert h.n_indeterminate == 0
        assert h.total == 20 * 10

    def test_single_rep_holds_one_matrix(self, poisson_matrix):
        h = bootstrap(poisson_matrix, n_reps=1, random_state=2, progress=False)
        assert h.total == 10
        assert 1 <= len(h) <= 10
        assert all(abs(v) <= 1.0 for v in h.values)

    def test_same_seed_same_histogram(self, poisson_matrix):
        h1 = bootstrap(poisson_matrix, n_reps=15, random_state=42, chunk_reps=4, progress=False)
        h2 = bootstrap(poisson_matrix, n_reps=15, random_state=42, chunk_reps=4, progress=False)
        assert h1 == h2

    def test_worker_count_does_not_change_result(self, poisson_matrix):
        serial = bootstrap(poisson_matrix, n_reps=12, random_state=9, chunk_reps=3, progress=False)
        parallel = bootstrap(
            poisson_matrix, n_reps=12, random_state=9, chunk_reps=3, n_workers=2, progress=False
        )
        assert serial == parallel

    @pytest.mark.parametrize("method", ["pearson", "kendall"])
    def test_other_methods_keep_contract(self, poisson_matrix, method):
        h = bootstrap(poisson_matrix, n_reps=5, method=method, random_state=3, progress=False)
        assert h.total == 5 * 10

    def test_generator_random_state(self, poisson_matrix):
        h = bootstrap(
            poisson_matrix, n_reps=3, random_state=np.random.default_rng(0), progress=False
        )
        assert h.n_reps == 3

    def test_degenerate_organism_does_not_abort(self, constant_matrix):
        with pytest.warns(RuntimeWarning, match="indeterminate"):
            h = bootstrap(constant_matrix, n_reps=10, random_state=4, progress=False)
        assert h.n_reps == 10
        assert h.n_indeterminate == 3 * 10
        assert h.total == h.expected_total == 3 * 10

    @pytest.mark.parametrize("n_reps", [0, -5, 2.5])
    def test_invalid_n_reps(self, poisson_matrix, n_reps):
        with pytest.raises(InvalidConfigurationError):
            bootstrap(poisson_matrix, n_reps=n_reps, progress=False)

    def test_invalid_method(self, poisson_matrix):
        with pytest.raises(InvalidConfigurationError):
            bootstrap(poisson_matrix, n_reps=2, method="cosine", progress=False)
