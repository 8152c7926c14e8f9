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
bootstrap.py

Bootstrap estimate of the distribution of pairwise correlation values.

Each iteration draws n sample columns with replacement (n = number of
samples), correlates the resampled matrix and counts how often every rounded
off-diagonal correlation value occurs. Counts from all iterations are summed
into a BootstrapHistogram. The histogram only ever grows by exact integer
addition, so histograms from disjoint batches of iterations can be merged in
any order.

Iterations are split into chunks. Every chunk gets its own generator seeded
from a SeedSequence spawned off `random_state`, which makes the result
independent of how chunks are distributed over worker processes.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import warnings
from collections import Counter
from typing import Dict, Iterable, Mapping, Optional, Tuple

import numpy as np
import pandas as pd
from tqdm import tqdm

from coocnet._config import (
    CORRELATION_METHODS,
    DEFAULT_CHUNK_REPS,
    DEFAULT_METHOD,
    DEFAULT_N_REPS,
    DEFAULT_PRECISION,
    check_choice,
    check_positive_int,
)
from coocnet.correlation import correlation_array
from coocnet.errors import InputShapeError, InvalidConfigurationError
from coocnet.pantry import AbundanceMatrix
from coocnet.utils import upper_triangle_values

logger = logging.getLogger(__name__)


def _check_precision(precision) -> int:
    if isinstance(precision, bool) or int(precision) != precision or precision < 0:
        raise InvalidConfigurationError(
            f"precision must be a non-negative integer, got {precision!r}"
        )
    return int(precision)


def _round_keys(values: np.ndarray, precision: int) -> np.ndarray:
    # integer keys avoid float identity problems between e.g. 0.3 and 0.30000000000000004
    return np.rint(np.asarray(values, dtype=float) * 10 ** precision).astype(np.int64)


class BootstrapHistogram:
    """
    Occurrence counts of rounded correlation values.

    Attributes:
        precision (int): Number of decimal places values were rounded to.
        n_reps (int): Number of bootstrap iterations accumulated.
        n_pairs (int): Unique off-diagonal organism pairs per iteration.
        n_indeterminate (int): Pair correlations left out because they were
            undefined in their iteration.

    Invariant: total == n_pairs * n_reps - n_indeterminate.
    """
    __slots__ = ("precision", "n_reps", "n_pairs", "n_indeterminate", "_counts")

    def __init__(
        self,
        counts: Optional[Mapping[int, int]] = None,
        precision: int = DEFAULT_PRECISION,
        n_reps: int = 0,
        n_pairs: int = 0,
        n_indeterminate: int = 0,
    ):
        self.precision = _check_precision(precision)
        self.n_reps = int(n_reps)
        self.n_pairs = int(n_pairs)
        self.n_indeterminate = int(n_indeterminate)
        self._counts: Dict[int, int] = {
            int(k): int(v) for k, v in (counts or {}).items() if int(v) != 0
        }
        if any(v < 0 for v in self._counts.values()):
            raise ValueError("histogram counts must be non-negative")

    @classmethod
    def empty(cls, precision: int = DEFAULT_PRECISION) -> "BootstrapHistogram":
        return cls(precision=precision)

    @classmethod
    def from_correlations(cls, R, precision: int = DEFAULT_PRECISION) -> "BootstrapHistogram":
        """Histogram of one iteration: the strict upper triangle of correlation matrix R."""
        precision = _check_precision(precision)
        counts, n_pairs, n_nan = _iteration_counts(np.asarray(R, dtype=float), precision)
        return cls(counts, precision=precision, n_reps=1, n_pairs=n_pairs, n_indeterminate=n_nan)

    def merge(self, other: "BootstrapHistogram") -> "BootstrapHistogram":
        """Sum of two histograms built from disjoint sets of iterations."""
        if not isinstance(other, BootstrapHistogram):
            return NotImplemented
        if self.precision != other.precision:
            raise InvalidConfigurationError(
                f"cannot merge histograms rounded to {self.precision} and {other.precision} places"
            )
        if self.n_reps and other.n_reps and self.n_pairs != other.n_pairs:
            raise InputShapeError(
                f"cannot merge histograms over {self.n_pairs} and {other.n_pairs} organism pairs"
            )
        counts = Counter(self._counts)
        counts.update(other._counts)
        return BootstrapHistogram(
            counts,
            precision=self.precision,
            n_reps=self.n_reps + other.n_reps,
            n_pairs=self.n_pairs or other.n_pairs,
            n_indeterminate=self.n_indeterminate + other.n_indeterminate,
        )

    __add__ = merge

    @property
    def total(self) -> int:
        return int(sum(self._counts.values()))

    @property
    def expected_total(self) -> int:
        return self.n_pairs * self.n_reps - self.n_indeterminate

    @property
    def values(self) -> np.ndarray:
        """Distinct rounded correlation values, ascending."""
        keys = np.array(sorted(self._counts), dtype=np.int64)
        return keys / 10 ** self.precision

    @property
    def counts(self) -> np.ndarray:
        """Counts aligned with `values`."""
        return np.array([self._counts[k] for k in sorted(self._counts)], dtype=np.int64)

    def count(self, value: float) -> int:
        return self._counts.get(int(_round_keys([value], self.precision)[0]), 0)

    def as_dict(self) -> Dict[float, int]:
        return {k / 10 ** self.precision: self._counts[k] for k in sorted(self._counts)}

    def to_series(self) -> pd.Series:
        return pd.Series(
            self.counts,
            index=pd.Index(self.values, name="value"),
            name="count",
        )

    def to_frame(self) -> pd.DataFrame:
        return self.to_series().reset_index()

    def __len__(self):
        return len(self._counts)

    def __eq__(self, other):
        if not isinstance(other, BootstrapHistogram):
            return NotImplemented
        return (
            self.precision == other.precision
            and self.n_reps == other.n_reps
            and self.n_pairs == other.n_pairs
            and self.n_indeterminate == other.n_indeterminate
            and self._counts == other._counts
        )

    __hash__ = None

    def __repr__(self):
        return (
            f"<BootstrapHistogram: {len(self)} distinct values, total {self.total}, "
            f"{self.n_reps} reps x {self.n_pairs} pairs, "
            f"{self.n_indeterminate} indeterminate>"
        )


def _iteration_counts(R: np.ndarray, precision: int) -> Tuple[Dict[int, int], int, int]:
    vals = upper_triangle_values(R)
    nan = np.isnan(vals)
    keys, cnts = np.unique(_round_keys(vals[~nan], precision), return_counts=True)
    return dict(zip(keys.tolist(), cnts.tolist())), int(vals.size), int(nan.sum())


def _best_mp_start() -> str:
    methods = mp.get_all_start_methods()
    return "fork" if "fork" in methods else "spawn"


def _chunk_reps(n_reps: int, block: int) -> list[int]:
    """
    Split n_reps into chunks of size <= block.
    """
    out = []
    while n_reps > 0:
        k = min(block, n_reps)
        out.append(k)
        n_reps -= k
    return out


def _seed_sequence(random_state) -> np.random.SeedSequence:
    if isinstance(random_state, np.random.SeedSequence):
        return random_state
    if isinstance(random_state, np.random.Generator):
        return np.random.SeedSequence(int(random_state.integers(0, 2**63 - 1)))
    return np.random.SeedSequence(None if random_state is None else int(random_state))


def _chunk_tasks(n_reps: int, chunk_reps: int, random_state) -> list[Tuple[int, int]]:
    chunk_sizes = _chunk_reps(n_reps, block=chunk_reps)
    child_seqs = _seed_sequence(random_state).spawn(len(chunk_sizes))
    chunk_seeds = [int(cs.generate_state(1, dtype=np.uint32)[0]) for cs in child_seqs]
    return list(zip(chunk_sizes, chunk_seeds))


def _run_chunk(
    matrix: AbundanceMatrix,
    method: str,
    precision: int,
    n_reps: int,
    seed: int,
) -> BootstrapHistogram:
    """Run `n_reps` bootstrap iterations from one seed and return their histogram."""
    rng = np.random.default_rng(seed)
    n = matrix.n_samples
    n_pairs = matrix.n_organisms * (matrix.n_organisms - 1) // 2

    counts: Counter = Counter()
    n_nan = 0
    for _ in range(int(n_reps)):
        idx = rng.integers(0, n, size=n)
        R, _ = correlation_array(matrix.resampled(idx).values, method)
        c, _, k = _iteration_counts(R, precision)
        counts.update(c)
        n_nan += k

    return BootstrapHistogram(
        counts,
        precision=precision,
        n_reps=int(n_reps),
        n_pairs=n_pairs,
        n_indeterminate=n_nan,
    )


# Worker globals to avoid pickling the matrix with every task
_G_matrix = None
_G_method = None
_G_precision = None


def _worker_init(matrix: AbundanceMatrix, method: str, precision: int) -> None:
    global _G_matrix, _G_method, _G_precision
    _G_matrix = matrix
    _G_method = method
    _G_precision = precision


def _worker_run_chunk(task):
    """
    task: (chunk_reps: int, chunk_seed: int)
    """
    n_reps_local, seed = task
    hist = _run_chunk(_G_matrix, _G_method, _G_precision, n_reps_local, seed)
    return hist, int(n_reps_local)


def _iter_chunks(
    matrix: AbundanceMatrix,
    method: str,
    precision: int,
    tasks: list,
    n_workers: int,
    mp_start: Optional[str],
) -> Iterable[Tuple[BootstrapHistogram, int]]:
    if n_workers <= 1 or len(tasks) <= 1:
        for k, seed in tasks:
            yield _run_chunk(matrix, method, precision, k, seed), k
        return

    ctx = mp.get_context(mp_start or _best_mp_start())
    n_procs = min(n_workers, len(tasks))
    logger.debug("Starting %d bootstrap workers (%s).", n_procs, ctx.get_start_method())
    with ctx.Pool(
        processes=n_procs,
        initializer=_worker_init,
        initargs=(matrix, method, precision),
    ) as pool:
        yield from pool.imap_unordered(_worker_run_chunk, tasks)


def bootstrap(
    matrix: AbundanceMatrix,
    n_reps: int = DEFAULT_N_REPS,
    method: str = DEFAULT_METHOD,
    random_state=None,
    n_workers: int = 1,
    precision: int = DEFAULT_PRECISION,
    chunk_reps: int = DEFAULT_CHUNK_REPS,
    mp_start: Optional[str] = None,
    progress: bool = True,
) -> BootstrapHistogram:
    """
    Histogram of rounded pairwise correlations over `n_reps` bootstrap resamples.

    Parameters
    ----------
    matrix : AbundanceMatrix
        Organisms x samples data; samples are resampled.
    n_reps : int
        Number of bootstrap iterations (B).
    method : {"spearman", "pearson", "kendall"}
        Correlation used in every iteration.
    random_state : int, SeedSequence, Generator or None
        Seed for reproducible runs. None draws fresh entropy.
    n_workers : int
        1 runs in the calling process; more uses a multiprocessing pool.
    precision : int
        Decimal places correlation values are rounded to before counting.
    chunk_reps : int
        Iterations per task; also the unit the per-chunk seeds are spawned for.
    mp_start : str, optional
        Multiprocessing start method; fork where available, else spawn.
    progress : bool
        Show a tqdm progress bar.

    Returns
    -------
    BootstrapHistogram
        Self-correlations are never counted; indeterminate pairs are counted
        in `n_indeterminate` instead of the histogram.
    """
    n_reps = check_positive_int("n_reps", n_reps)
    n_workers = check_positive_int("n_workers", n_workers)
    chunk_reps = check_positive_int("chunk_reps", chunk_reps)
    method = check_choice("correlation method", method, CORRELATION_METHODS)
    precision = _check_precision(precision)

    tasks = _chunk_tasks(n_reps, chunk_reps, random_state)
    logger.info(
        "Bootstrapping %s correlations: %d reps over %d organisms x %d samples.",
        method, n_reps, matrix.n_organisms, matrix.n_samples,
    )

    hist = BootstrapHistogram.empty(precision)
    desc = f"Bootstrap ({method}) - chunks of {chunk_reps}"
    with tqdm(total=n_reps, desc=desc, dynamic_ncols=True, disable=not progress) as pbar:
        for chunk_hist, k in _iter_chunks(matrix, method, precision, tasks, n_workers, mp_start):
            hist = hist.merge(chunk_hist)
            pbar.update(int(k))

    if hist.n_reps != n_reps:
        raise RuntimeError(
            f"Internal error: merged n_reps={hist.n_reps} but expected {n_reps}."
        )

    if hist.n_indeterminate:
        warnings.warn(
            f"{hist.n_indeterminate} of {hist.n_pairs * hist.n_reps} bootstrap pair "
            "correlations were indeterminate and left out of the histogram.",
            RuntimeWarning,
        )
    logger.info("Bootstrap histogram: %d distinct values, %d counts.", len(hist), hist.total)
    return hist
