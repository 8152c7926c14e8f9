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
"""Tests for the AbundanceMatrix container and its loader."""

import pickle

import numpy as np
import pandas as pd
import pytest

from coocnet.errors import InputShapeError
from coocnet.pantry import AbundanceMatrix, load_abundance


class TestAbundanceMatrix:

    def test_shape_and_labels(self, abundance_frame):
        m = AbundanceMatrix.from_dataframe(abundance_frame)
        assert m.shape == (3, 4)
        assert m.organisms == ("otuA", "otuB", "otuC")
        assert m.samples == ("s1", "s2", "s3", "s4")
        assert not m.has_missing

    def test_samples_as_rows_transposes(self, abundance_frame):
        m = AbundanceMatrix.from_dataframe(abundance_frame.T, samples_as_rows=True)
        assert m == AbundanceMatrix.from_dataframe(abundance_frame)

    def test_immutable(self, abundance_frame):
        m = AbundanceMatrix.from_dataframe(abundance_frame)
        with pytest.raises(AttributeError):
            m.organisms = ("x",)
        with pytest.raises(ValueError):
            m.values[0, 0] = 99.0

    def test_input_array_is_copied(self):
        values = np.ones((2, 3))
        m = AbundanceMatrix(["a", "b"], ["x", "y", "z"], values)
        values[0, 0] = 42.0
        assert m.values[0, 0] == 1.0

    def test_duplicate_ids_rejected(self):
        with pytest.raises(InputShapeError, match="Duplicate organism"):
            AbundanceMatrix(["a", "a"], ["x"], [[1.0], [2.0]])
        with pytest.raises(InputShapeError, match="Duplicate sample"):
            AbundanceMatrix(["a"], ["x", "x"], [[1.0, 2.0]])

    def test_shape_mismatch_rejected(self):
        with pytest.raises(InputShapeError):
            AbundanceMatrix(["a", "b"], ["x"], [[1.0, 2.0]])
        with pytest.raises(InputShapeError):
            AbundanceMatrix(["a"], ["x"], [1.0])

    def test_infinite_values_rejected(self):
        with pytest.raises(InputShapeError):
            AbundanceMatrix(["a"], ["x", "y"], [[1.0, np.inf]])

    def test_non_numeric_rejected(self):
        df = pd.DataFrame({"x": ["a", "b"]}, index=["o1", "o2"])
        with pytest.raises(InputShapeError):
            AbundanceMatrix.from_dataframe(df)

    def test_negative_and_fractional_values_tolerated(self):
        m = AbundanceMatrix(["a"], ["x", "y"], [[-1.5, 0.25]])
        assert m.values.tolist() == [[-1.5, 0.25]]

    def test_detection_counts(self, abundance_frame):
        m = AbundanceMatrix.from_dataframe(abundance_frame)
        assert m.detection_counts(axis=1).tolist() == [2, 1, 4]
        assert m.detection_counts(axis=0).tolist() == [2, 2, 2, 1]

    def test_subsets_return_new_objects(self, abundance_frame):
        m = AbundanceMatrix.from_dataframe(abundance_frame)
        sub = m.subset_organisms([True, False, True])
        assert sub.organisms == ("otuA", "otuC")
        assert m.n_organisms == 3
        sub = m.subset_samples([0, 3])
        assert sub.samples == ("s1", "s4")
        assert sub.values[:, 1].tolist() == [0.0, 0.0, 2.0]

    def test_resampled_allows_duplicates(self, abundance_frame):
        m = AbundanceMatrix.from_dataframe(abundance_frame)
        r = m.resampled([2, 2, 0, 1])
        assert r.samples == ("s3#0", "s3#1", "s1#2", "s2#3")
        assert r.values[:, 0].tolist() == r.values[:, 1].tolist() == [3.0, 0.0, 4.0]

    def test_resampled_out_of_range(self, abundance_frame):
        m = AbundanceMatrix.from_dataframe(abundance_frame)
        with pytest.raises(IndexError):
            m.resampled([0, 4])

    def test_dataframe_round_trip_labels(self, abundance_frame):
        df = AbundanceMatrix.from_dataframe(abundance_frame).to_dataframe()
        assert df.index.name == "organism"
        assert df.columns.name == "sample"
        np.testing.assert_array_equal(df.to_numpy(), abundance_frame.to_numpy(dtype=float))

    def test_pickle(self, abundance_frame):
        m = AbundanceMatrix.from_dataframe(abundance_frame)
        restored = pickle.loads(pickle.dumps(m))
        assert restored == m
        assert not restored.values.flags.writeable


class TestLoadAbundance:

    def test_tsv(self, tmp_path, abundance_frame):
        path = tmp_path / "abundance.tsv"
        abundance_frame.to_csv(path, sep="\t")
        m = load_abundance(str(path))
        assert m == AbundanceMatrix.from_dataframe(abundance_frame)

    def test_csv(self, tmp_path, abundance_frame):
        path = tmp_path / "abundance.csv"
        abundance_frame.to_csv(path)
        m = load_abundance(path)
        assert m.organisms == ("otuA", "otuB", "otuC")

    def test_pickled_matrix(self, tmp_path, abundance_frame):
        m = AbundanceMatrix.from_dataframe(abundance_frame)
        path = tmp_path / "abundance.pkl"
        with open(path, "wb") as f:
            pickle.dump(m, f)
        assert load_abundance(path) == m

    def test_pickled_other_object_rejected(self, tmp_path):
        path = tmp_path / "other.pkl"
        with open(path, "wb") as f:
            pickle.dump([1, 2, 3], f)
        with pytest.raises(InputShapeError):
            load_abundance(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_abundance(tmp_path / "nope.tsv")

    def test_passthrough(self, abundance_frame):
        m = AbundanceMatrix.from_dataframe(abundance_frame)
        assert load_abundance(m) is m
        assert load_abundance(abundance_frame) == m
