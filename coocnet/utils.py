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

from typing import Iterable, Tuple

import numpy as np
import pandas as pd

from coocnet.errors import InputShapeError


def upper_triangle_indices(n: int) -> Tuple[np.ndarray, np.ndarray]:
    """Row/column indices of the strict upper triangle (i < j) of an n x n matrix."""
    return np.triu_indices(int(n), k=1)


def upper_triangle_values(M: np.ndarray) -> np.ndarray:
    """Strict upper-triangle entries of a square array, in row-major order."""
    M = np.asarray(M)
    if M.ndim != 2 or M.shape[0] != M.shape[1]:
        raise InputShapeError(f"expected a square matrix, got shape {M.shape}")
    iu, ju = upper_triangle_indices(M.shape[0])
    return M[iu, ju]


def iter_upper_edges(A: np.ndarray) -> Iterable[Tuple[int, int, float]]:
    """
    Yield (i, j, value) for every non-zero strict upper-triangle entry (i < j)
    of square array A. NaN entries are skipped.
    """
    vals = upper_triangle_values(A)
    iu, ju = upper_triangle_indices(np.asarray(A).shape[0])
    keep = np.nonzero((vals != 0) & ~pd.isna(vals))[0]
    for k in keep:
        yield int(iu[k]), int(ju[k]), vals[k]


def check_square(df: pd.DataFrame, name: str = "matrix") -> None:
    """Require a square DataFrame whose row and column labels match, in order."""
    if df.ndim != 2 or df.shape[0] != df.shape[1]:
        raise InputShapeError(f"{name} must be square, got shape {df.shape}")
    if not df.index.equals(df.columns):
        raise InputShapeError(f"{name} row and column labels differ")


def check_symmetric(df: pd.DataFrame, name: str = "matrix", atol: float = 1e-12) -> None:
    """Require a square, symmetric DataFrame; NaN must mirror NaN."""
    check_square(df, name)
    M = df.to_numpy(dtype=float)
    nan = np.isnan(M)
    if not np.array_equal(nan, nan.T):
        raise InputShapeError(f"{name} is not symmetric (missing entries do not mirror)")
    filled = np.where(nan, 0.0, M)
    if not np.allclose(filled, filled.T, rtol=0.0, atol=atol):
        i, j = np.argwhere(~np.isclose(filled, filled.T, rtol=0.0, atol=atol))[0]
        raise InputShapeError(
            f"{name} is not symmetric: [{df.index[i]}, {df.columns[j]}]={M[i, j]} "
            f"but [{df.index[j]}, {df.columns[i]}]={M[j, i]}"
        )
