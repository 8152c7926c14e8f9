#!/usr/bin/env python3
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
"""
pantry.py

The AbundanceMatrix container and its loader.

An AbundanceMatrix is an organisms x samples table of abundances with named
rows and columns. It is immutable: every filtering or resampling operation
returns a new object, so a stage can never observe values that a later stage
has altered.
"""

import os
import pickle
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from coocnet.errors import InputShapeError


class AbundanceMatrix:
    """
    Organisms x samples abundance table.

    Attributes:
        organisms (tuple[str]): Row identifiers (unique).
        samples (tuple[str]): Column identifiers (unique).
        values (np.ndarray): Read-only float array, shape (n_organisms, n_samples).
            NaN marks a missing observation; negative or non-integer values
            are accepted.
    """
    __slots__ = ("organisms", "samples", "values")

    def __init__(self, organisms: Sequence, samples: Sequence, values):
        organisms = tuple(str(o) for o in organisms)
        samples = tuple(str(s) for s in samples)
        arr = np.array(values, dtype=float, copy=True)

        if arr.ndim != 2:
            raise InputShapeError(f"Abundance values must be 2-dimensional, got {arr.ndim} dimension(s)")
        if arr.shape != (len(organisms), len(samples)):
            raise InputShapeError(
                f"Abundance values have shape {arr.shape} but {len(organisms)} organisms "
                f"and {len(samples)} samples were named"
            )
        _check_unique("organism", organisms)
        _check_unique("sample", samples)
        if np.isinf(arr).any():
            raise InputShapeError("Abundance values contain infinite entries")

        arr.setflags(write=False)
        object.__setattr__(self, "organisms", organisms)
        object.__setattr__(self, "samples", samples)
        object.__setattr__(self, "values", arr)

    def __setattr__(self, name, value):
        raise AttributeError("AbundanceMatrix is immutable")

    def __getstate__(self):
        return {
            "organisms": self.organisms,
            "samples": self.samples,
            "values": np.array(self.values),
        }

    def __setstate__(self, state):
        arr = np.array(state["values"], dtype=float)
        arr.setflags(write=False)
        object.__setattr__(self, "organisms", tuple(state["organisms"]))
        object.__setattr__(self, "samples", tuple(state["samples"]))
        object.__setattr__(self, "values", arr)

    def __repr__(self):
        return (
            f"<AbundanceMatrix: {self.n_organisms} organisms, "
            f"{self.n_samples} samples>"
        )

    def __eq__(self, other):
        if not isinstance(other, AbundanceMatrix):
            return NotImplemented
        return (
            self.organisms == other.organisms
            and self.samples == other.samples
            and np.array_equal(self.values, other.values, equal_nan=True)
        )

    __hash__ = None

    @property
    def n_organisms(self) -> int:
        return len(self.organisms)

    @property
    def n_samples(self) -> int:
        return len(self.samples)

    @property
    def shape(self):
        return self.values.shape

    @property
    def has_missing(self) -> bool:
        return bool(np.isnan(self.values).any())

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, samples_as_rows: bool = False) -> "AbundanceMatrix":
        """
        Build from a DataFrame whose index holds organisms and columns hold
        samples (or the reverse when samples_as_rows is set).
        """
        if samples_as_rows:
            df = df.T
        try:
            values = df.to_numpy(dtype=float)
        except (TypeError, ValueError) as err:
            raise InputShapeError(f"Abundance table contains non-numeric entries: {err}") from err
        return cls(df.index.tolist(), df.columns.tolist(), values)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            np.array(self.values),
            index=pd.Index(self.organisms, name="organism"),
            columns=pd.Index(self.samples, name="sample"),
        )

    def detection_counts(self, axis: int = 1) -> np.ndarray:
        """
        Number of positive entries per organism (axis=1) or per sample (axis=0).
        """
        with np.errstate(invalid="ignore"):
            return np.sum(self.values > 0, axis=axis)

    def subset_samples(self, mask) -> "AbundanceMatrix":
        """
        Return a new AbundanceMatrix restricted to the selected samples.

        Args:
            mask (List[bool] | List[int] | np.ndarray): Boolean mask or indices of samples to keep.
        """
        idxs = _mask_to_indices(mask, self.n_samples)
        return AbundanceMatrix(
            self.organisms,
            [self.samples[i] for i in idxs],
            self.values[:, idxs],
        )

    def subset_organisms(self, mask) -> "AbundanceMatrix":
        """
        Return a new AbundanceMatrix restricted to the selected organisms.

        Args:
            mask (List[bool] | List[int] | np.ndarray): Boolean mask or indices of organisms to keep.
        """
        idxs = _mask_to_indices(mask, self.n_organisms)
        return AbundanceMatrix(
            [self.organisms[i] for i in idxs],
            self.samples,
            self.values[idxs, :],
        )

    def resampled(self, indices) -> "AbundanceMatrix":
        """
        Return the matrix made of the sample columns at `indices`, in draw order.

        Repeated draws of the same sample are allowed; each drawn column is
        labelled "<sample>#<draw position>" so that sample ids stay unique.
        """
        idx = np.asarray(indices, dtype=np.int64)
        if idx.ndim != 1:
            raise InputShapeError("Resampling indices must be one-dimensional")
        if idx.size and (idx.min() < 0 or idx.max() >= self.n_samples):
            raise IndexError(f"Sample index out of range [0, {self.n_samples - 1}]")
        labels = [f"{self.samples[i]}#{pos}" for pos, i in enumerate(idx)]
        return AbundanceMatrix(self.organisms, labels, self.values[:, idx])


def _check_unique(axis_name: str, ids: Sequence[str]) -> None:
    seen = set()
    dupes = []
    for i in ids:
        if i in seen:
            dupes.append(i)
        seen.add(i)
    if dupes:
        shown = ", ".join(sorted(set(dupes))[:5])
        raise InputShapeError(f"Duplicate {axis_name} identifiers: {shown}")


def _mask_to_indices(mask, length: int) -> List[int]:
    if isinstance(mask, (np.ndarray, list, tuple)):
        arr = np.asarray(mask)
        if arr.dtype == bool:
            if arr.size != length:
                raise InputShapeError(f"Boolean mask has length {arr.size}, expected {length}")
            return np.nonzero(arr)[0].tolist()
        return arr.astype(int).tolist()
    raise ValueError("mask must be a list or numpy array of bools or ints")


def load_abundance(
    source,
    samples_as_rows: bool = False,
    sep: Optional[str] = None,
) -> AbundanceMatrix:
    """
    Load an AbundanceMatrix.

    `source` may already be an AbundanceMatrix or a DataFrame (returned /
    converted as is), a pickle of either, or a delimited text table whose
    first column holds organism identifiers and whose header holds sample
    identifiers. The delimiter defaults to ',' for .csv files and tab
    otherwise.
    """
    if isinstance(source, AbundanceMatrix):
        return source
    if isinstance(source, pd.DataFrame):
        return AbundanceMatrix.from_dataframe(source, samples_as_rows=samples_as_rows)

    filepath = os.fspath(source)
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Abundance file '{filepath}' not found.")

    lower = filepath.lower()
    if lower.endswith((".pkl", ".pickle")):
        with open(filepath, "rb") as f:
            obj = pickle.load(f)
        if isinstance(obj, AbundanceMatrix):
            return obj
        if isinstance(obj, pd.DataFrame):
            return AbundanceMatrix.from_dataframe(obj, samples_as_rows=samples_as_rows)
        raise InputShapeError(
            f"{filepath} holds a {type(obj).__name__}, not an AbundanceMatrix or DataFrame"
        )

    if sep is None:
        sep = "," if lower.endswith((".csv", ".csv.gz")) else "\t"
    df = pd.read_csv(filepath, sep=sep, index_col=0)
    print(f"Using {filepath}")
    return AbundanceMatrix.from_dataframe(df, samples_as_rows=samples_as_rows)
