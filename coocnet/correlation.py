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
correlation.py

Organism-by-organism correlation of an AbundanceMatrix.

Correlations are computed between rows (organisms) using columns (samples) as
observations. Spearman (default) ranks each organism's abundances with
average ranks for ties and takes the Pearson correlation of the ranks;
Pearson uses the raw values; Kendall uses tau-b.

When the matrix has no missing values the correlation matrix is computed in
one vectorised pass. Otherwise every pair is correlated over the samples
observed for both organisms ("pairwise complete").

A pair involving an organism without variance has no defined correlation. It
is reported as NaN (indeterminate) and never aborts the computation; the
diagonal is always 1.0.

The significance path tests every unique pair against the null of zero
correlation and corrects the p-values for multiple comparisons
(Benjamini-Hochberg by default).
"""

import logging
import warnings
from typing import Tuple

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.multitest import multipletests

from coocnet._config import (
    CORRELATION_METHODS,
    DEFAULT_ALPHA,
    DEFAULT_CORRECTION,
    DEFAULT_METHOD,
    check_choice,
    check_probability,
    resolve_correction,
)
from coocnet.errors import DegenerateDataError, InputShapeError
from coocnet.pantry import AbundanceMatrix
from coocnet.utils import check_square, upper_triangle_indices

logger = logging.getLogger(__name__)


def _pair_correlation(x: np.ndarray, y: np.ndarray, method: str) -> float:
    """
    Correlation of two fully observed vectors.

    Raises DegenerateDataError when either vector is constant or fewer than
    two observations are available.
    """
    if x.size < 2:
        raise DegenerateDataError(f"only {x.size} shared observation(s)")
    if np.ptp(x) == 0 or np.ptp(y) == 0:
        raise DegenerateDataError("zero variance")

    if method == "kendall":
        tau, _ = stats.kendalltau(x, y)
        return float(tau)

    if method == "spearman":
        x = stats.rankdata(x)
        y = stats.rankdata(y)
    xc = x - x.mean()
    yc = y - y.mean()
    denom = np.sqrt(np.dot(xc, xc) * np.dot(yc, yc))
    if denom == 0:
        raise DegenerateDataError("zero variance")
    return float(np.dot(xc, yc) / denom)


def _dense_correlation(X: np.ndarray, method: str) -> np.ndarray:
    """Spearman / Pearson correlation of the rows of a fully observed array."""
    constant = np.ptp(X, axis=1) == 0 if X.shape[1] else np.ones(X.shape[0], dtype=bool)
    if method == "spearman":
        X = stats.rankdata(X, axis=1)
    Xc = X - X.mean(axis=1, keepdims=True)
    ss = np.sqrt(np.einsum("ij,ij->i", Xc, Xc))
    with np.errstate(divide="ignore", invalid="ignore"):
        R = (Xc @ Xc.T) / np.outer(ss, ss)
    R[constant, :] = np.nan
    R[:, constant] = np.nan
    return R


def _pairwise_correlation(X: np.ndarray, method: str) -> np.ndarray:
    n = X.shape[0]
    R = np.full((n, n), np.nan)
    observed = ~np.isnan(X)
    iu, ju = upper_triangle_indices(n)
    for i, j in zip(iu, ju):
        both = observed[i] & observed[j]
        try:
            r = _pair_correlation(X[i, both], X[j, both], method)
        except DegenerateDataError as err:
            logger.debug("Indeterminate correlation for rows %d and %d: %s", i, j, err)
            continue
        R[i, j] = R[j, i] = r
    return R


def correlation_array(values, method: str = DEFAULT_METHOD) -> Tuple[np.ndarray, np.ndarray]:
    """
    Correlate the rows of a 2-D array.

    Returns
    -------
    R : np.ndarray
        Symmetric (n_rows x n_rows) correlations clipped to [-1, 1], NaN for
        indeterminate pairs, 1.0 on the diagonal.
    n_obs : np.ndarray
        Number of samples observed for both rows of each pair.
    """
    method = check_choice("correlation method", method, CORRELATION_METHODS)
    X = np.asarray(values, dtype=float)
    if X.ndim != 2:
        raise InputShapeError(f"expected a 2-dimensional array, got {X.ndim} dimension(s)")

    observed = (~np.isnan(X)).astype(np.int64)
    n_obs = observed @ observed.T

    if method == "kendall" or not observed.all():
        R = _pairwise_correlation(X, method)
    else:
        R = _dense_correlation(X, method)

    np.clip(R, -1.0, 1.0, out=R)
    np.fill_diagonal(R, 1.0)
    return R, n_obs


def correlate(matrix: AbundanceMatrix, method: str = DEFAULT_METHOD) -> pd.DataFrame:
    """
    Organism x organism correlation matrix of `matrix`.

    Indeterminate pairs are NaN and reported with a RuntimeWarning.
    """
    R, _ = correlation_array(matrix.values, method)
    n_bad = int(np.isnan(R[upper_triangle_indices(R.shape[0])]).sum())
    if n_bad:
        warnings.warn(
            f"{n_bad} organism pair(s) have an indeterminate {method} correlation "
            "(zero variance or too few shared samples).",
            RuntimeWarning,
        )
    labels = pd.Index(matrix.organisms, name="organism")
    return pd.DataFrame(R, index=labels, columns=labels.rename(None))


def correlation_pvalues(r, n_obs) -> np.ndarray:
    """
    Two-sided p-values for H0: rho = 0 using t = r * sqrt((n - 2) / (1 - r^2))
    on n - 2 degrees of freedom. NaN where r is NaN or n < 3.
    """
    r = np.asarray(r, dtype=float)
    dof = np.asarray(n_obs, dtype=float) - 2.0
    p = np.full(r.shape, np.nan)
    valid = np.isfinite(r) & (dof > 0)
    if not valid.any():
        return p
    rv = r[valid]
    dv = dof[valid]
    with np.errstate(divide="ignore", invalid="ignore"):
        t = rv * np.sqrt(dv / (1.0 - rv * rv))
        pv = 2.0 * stats.t.sf(np.abs(t), dv)
    pv[np.abs(rv) >= 1.0] = 0.0
    p[valid] = np.clip(pv, 0.0, 1.0)
    return p


def adjust_pvalues(p, correction: str = DEFAULT_CORRECTION) -> np.ndarray:
    """
    Multiple-comparison adjustment over the finite entries of `p`.

    NaN entries stay NaN and do not count towards the number of tests.
    """
    sm_method = resolve_correction(correction)
    p = np.asarray(p, dtype=float)
    out = np.full(p.shape, np.nan)
    finite = np.isfinite(p)
    if not finite.any():
        return out
    if sm_method == "none":
        out[finite] = p[finite]
    else:
        _, adjusted, _, _ = multipletests(p[finite], method=sm_method)
        out[finite] = adjusted
    return out


def significance(
    matrix: AbundanceMatrix,
    method: str = DEFAULT_METHOD,
    correction: str = DEFAULT_CORRECTION,
) -> pd.DataFrame:
    """
    Adjusted p-values for every organism pair.

    The correction runs once over all unique off-diagonal pairs; the result is
    symmetric with a NaN diagonal.
    """
    R, n_obs = correlation_array(matrix.values, method)
    n = R.shape[0]
    iu, ju = upper_triangle_indices(n)

    raw = correlation_pvalues(R[iu, ju], n_obs[iu, ju])
    adjusted = adjust_pvalues(raw, correction)

    P = np.full((n, n), np.nan)
    P[iu, ju] = adjusted
    P[ju, iu] = adjusted
    logger.info(
        "Tested %d organism pairs (%s, %s correction); %d with a defined p-value.",
        iu.size, method, correction, int(np.isfinite(adjusted).sum()),
    )
    labels = pd.Index(matrix.organisms, name="organism")
    return pd.DataFrame(P, index=labels, columns=labels.rename(None))


def significant_correlations(
    correlations: pd.DataFrame,
    significance_matrix: pd.DataFrame,
    alpha: float = DEFAULT_ALPHA,
) -> pd.DataFrame:
    """
    Keep the correlations whose adjusted p-value is below `alpha`.

    Diagonal self-pairs are always dropped. Dropped cells are NaN, so a
    retained correlation of exactly 0 stays distinguishable from "not
    significant". A result without any retained cell is valid.
    """
    alpha = check_probability("alpha", alpha)
    check_square(correlations, "correlation matrix")
    check_square(significance_matrix, "significance matrix")
    if not correlations.index.equals(significance_matrix.index):
        raise InputShapeError("correlation and significance matrices cover different organisms")

    P = significance_matrix.to_numpy(dtype=float)
    with np.errstate(invalid="ignore"):
        keep = P < alpha
    np.fill_diagonal(keep, False)
    return correlations.where(keep)
