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
thresholds.py

Cutoffs for the signed network.

quantiles() reads a pair of cutoffs off a BootstrapHistogram: with values
sorted ascending and cumulative proportions c_0 <= c_1 <= ... computed from
the integer counts,

    lower = value at the largest index whose c_i <= p / 2
    upper = value at the largest index whose c_i <= 1 - p / 2

and the first (smallest) value when no index qualifies. Both cutoffs are
always observed, already rounded values; nothing is interpolated.

fixed_cutoffs() is the alternative of a symmetric absolute cutoff.
"""

import logging
from collections import namedtuple

import numpy as np

from coocnet._config import DEFAULT_FIXED_CUTOFF, DEFAULT_TAIL_P, check_probability
from coocnet.bootstrap import BootstrapHistogram
from coocnet.errors import DegenerateDataError, InvalidConfigurationError

logger = logging.getLogger(__name__)

_REL_TOL = 1e-12


class QuantilePair(namedtuple("QuantilePair", ["lower", "upper"])):
    """Lower and upper correlation cutoffs; lower <= upper is enforced."""
    __slots__ = ()

    def __new__(cls, lower, upper):
        lower = float(lower)
        upper = float(upper)
        if np.isnan(lower) or np.isnan(upper):
            raise InvalidConfigurationError("cutoffs must not be NaN")
        if lower > upper:
            raise InvalidConfigurationError(
                f"lower cutoff {lower} is greater than upper cutoff {upper}"
            )
        return super().__new__(cls, lower, upper)

    @property
    def is_degenerate(self) -> bool:
        return self.lower == self.upper


def _largest_index_at_most(cum_counts: np.ndarray, total: int, q: float) -> int:
    limit = q * total * (1.0 + _REL_TOL)
    idx = np.nonzero(cum_counts <= limit)[0]
    return int(idx[-1]) if idx.size else 0


def quantiles(histogram: BootstrapHistogram, p: float = DEFAULT_TAIL_P) -> QuantilePair:
    """
    Outer empirical cutoffs of a bootstrap histogram.

    Parameters
    ----------
    histogram : BootstrapHistogram
    p : float
        Total two-sided tail probability in (0, 1). Each cutoff is the last
        value whose cumulative proportion is at most p/2 (lower) or 1 - p/2
        (upper), or the smallest value when none qualifies. With p = 0.5 at
        most 25% of the mass lies at or below `lower` and at least 25% lies
        above `upper`, except where the smallest value alone holds more.

    Returns
    -------
    QuantilePair
        lower <= upper; lower == upper when all mass sits on one value.
    """
    p = check_probability("p", p)
    if not isinstance(histogram, BootstrapHistogram):
        raise TypeError(f"expected a BootstrapHistogram, got {type(histogram).__name__}")

    total = histogram.total
    if total == 0:
        raise DegenerateDataError(
            "bootstrap histogram is empty (no organism pair had a defined correlation)"
        )

    values = histogram.values
    cum_counts = np.cumsum(histogram.counts)

    i_lower = _largest_index_at_most(cum_counts, total, p / 2.0)
    i_upper = _largest_index_at_most(cum_counts, total, 1.0 - p / 2.0)
    pair = QuantilePair(values[i_lower], values[i_upper])

    logger.info("Bootstrap cutoffs at p=%.3f: lower=%s, upper=%s", p, pair.lower, pair.upper)
    return pair


def fixed_cutoffs(cutoff: float = DEFAULT_FIXED_CUTOFF) -> QuantilePair:
    """Symmetric cutoffs (-|cutoff|, |cutoff|); |cutoff| must not exceed 1."""
    try:
        cutoff = abs(float(cutoff))
    except (TypeError, ValueError):
        raise InvalidConfigurationError(f"cutoff must be a number, got {cutoff!r}")
    if not cutoff <= 1.0:
        raise InvalidConfigurationError(f"cutoff must lie in [0, 1], got {cutoff}")
    return QuantilePair(-cutoff, cutoff)
