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
# _config.py

from coocnet.errors import InvalidConfigurationError

CORRELATION_METHODS = ("spearman", "pearson", "kendall")

CORRECTION_METHODS = {
    "none": "none",
    "bonferroni": "bonferroni",
    "holm": "holm",
    "hochberg": "simes-hochberg",
    "sidak": "sidak",
    "fdr_bh": "fdr_bh",
    "fdr": "fdr_bh",
    "bh": "fdr_bh",
    "fdr_by": "fdr_by",
    "by": "fdr_by",
}

CUTOFF_MODES = ("bootstrap", "fixed")

DEFAULT_METHOD = "spearman"
DEFAULT_CORRECTION = "fdr_bh"
DEFAULT_ALPHA = 0.05
DEFAULT_N_REPS = 1000
DEFAULT_TAIL_P = 0.50
DEFAULT_FIXED_CUTOFF = 0.30
DEFAULT_PRECISION = 3
DEFAULT_HUB_FRACTION = 0.10
DEFAULT_CHUNK_REPS = 50
DEFAULT_COMMUNITY_METHODS = ("greedy_modularity", "edge_betweenness")


def check_probability(name, value, allow_one=False):
    """Reject values outside (0, 1), or (0, 1] when allow_one is set."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidConfigurationError(f"{name} must be a number, got {value!r}")
    upper_ok = value <= 1.0 if allow_one else value < 1.0
    if not (value > 0.0 and upper_ok):
        interval = "(0, 1]" if allow_one else "(0, 1)"
        raise InvalidConfigurationError(f"{name} must lie in {interval}, got {value}")
    return value


def check_positive_int(name, value):
    if isinstance(value, bool):
        raise InvalidConfigurationError(f"{name} must be a positive integer, got {value!r}")
    try:
        ivalue = int(value)
    except (TypeError, ValueError):
        raise InvalidConfigurationError(f"{name} must be a positive integer, got {value!r}")
    if ivalue != value or ivalue <= 0:
        raise InvalidConfigurationError(f"{name} must be a positive integer, got {value!r}")
    return ivalue


def check_choice(name, value, choices):
    key = str(value).lower()
    if key not in choices:
        raise InvalidConfigurationError(
            f"Unknown {name} '{value}'. Expected one of: {', '.join(choices)}"
        )
    return key


def resolve_correction(correction):
    """Map a user-facing correction name onto the statsmodels method name."""
    key = check_choice("correction method", correction, tuple(CORRECTION_METHODS))
    return CORRECTION_METHODS[key]


class NetworkSettings:
    """
    Options for the end-to-end network workflow.

    Attributes mirror the ``coocnet network`` command line; unset values take
    the module defaults. Call validate() before use (run_network_obj does).
    """

    def __init__(
        self,
        method=DEFAULT_METHOD,
        cutoff_mode="bootstrap",
        n_reps=DEFAULT_N_REPS,
        tail_p=DEFAULT_TAIL_P,
        fixed_cutoff=DEFAULT_FIXED_CUTOFF,
        significance_filter=False,
        correction=DEFAULT_CORRECTION,
        alpha=DEFAULT_ALPHA,
        precision=DEFAULT_PRECISION,
        hub_fraction=DEFAULT_HUB_FRACTION,
        community_methods=DEFAULT_COMMUNITY_METHODS,
        random_state=None,
        n_workers=1,
        chunk_reps=DEFAULT_CHUNK_REPS,
        progress=True,
    ):
        self.method = method
        self.cutoff_mode = cutoff_mode
        self.n_reps = n_reps
        self.tail_p = tail_p
        self.fixed_cutoff = fixed_cutoff
        self.significance_filter = significance_filter
        self.correction = correction
        self.alpha = alpha
        self.precision = precision
        self.hub_fraction = hub_fraction
        self.community_methods = tuple(community_methods or ())
        self.random_state = random_state
        self.n_workers = n_workers
        self.chunk_reps = chunk_reps
        self.progress = progress

    def validate(self) -> "NetworkSettings":
        from coocnet.communities import COMMUNITY_METHODS

        self.method = check_choice("correlation method", self.method, CORRELATION_METHODS)
        self.cutoff_mode = check_choice("cutoff mode", self.cutoff_mode, CUTOFF_MODES)
        self.n_reps = check_positive_int("n_reps", self.n_reps)
        self.tail_p = check_probability("tail_p", self.tail_p)
        self.alpha = check_probability("alpha", self.alpha)
        self.hub_fraction = check_probability("hub_fraction", self.hub_fraction, allow_one=True)
        self.n_workers = check_positive_int("n_workers", self.n_workers)
        self.chunk_reps = check_positive_int("chunk_reps", self.chunk_reps)
        resolve_correction(self.correction)

        cutoff = float(self.fixed_cutoff)
        if not 0.0 <= cutoff <= 1.0:
            raise InvalidConfigurationError(f"fixed_cutoff must lie in [0, 1], got {cutoff}")
        self.fixed_cutoff = cutoff

        if int(self.precision) != self.precision or self.precision < 0:
            raise InvalidConfigurationError(
                f"precision must be a non-negative integer, got {self.precision!r}"
            )
        self.precision = int(self.precision)

        self.community_methods = tuple(
            check_choice("community method", m, tuple(COMMUNITY_METHODS))
            for m in self.community_methods
        )
        return self

    def __repr__(self):
        opts = ", ".join(f"{k}={v!r}" for k, v in vars(self).items())
        return f"NetworkSettings({opts})"
