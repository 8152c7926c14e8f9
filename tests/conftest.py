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
Shared fixtures for the coocnet test suite.

All synthetic abundance tables are generated from fixed seeds so every test
is reproducible.
"""

import numpy as np
import pandas as pd
import pytest

from coocnet.pantry import AbundanceMatrix


def make_matrix(values, organism_prefix="otu", sample_prefix="s") -> AbundanceMatrix:
    values = np.asarray(values, dtype=float)
    organisms = [f"{organism_prefix}{i}" for i in range(values.shape[0])]
    samples = [f"{sample_prefix}{j}" for j in range(values.shape[1])]
    return AbundanceMatrix(organisms, samples, values)


@pytest.fixture
def poisson_matrix():
    """5 organisms x 100 samples of independent Poisson(100) noise."""
    rng = np.random.default_rng(20240601)
    return make_matrix(rng.poisson(100, size=(5, 100)))


@pytest.fixture
def linear_matrix():
    """
    Three organisms over 30 samples: A = 2 * B + 3 exactly, C independent noise.
    """
    rng = np.random.default_rng(7)
    b = rng.poisson(50, size=30).astype(float)
    a = 2.0 * b + 3.0
    c = rng.poisson(50, size=30).astype(float)
    return AbundanceMatrix(["A", "B", "C"], [f"s{j}" for j in range(30)], np.vstack([a, b, c]))


@pytest.fixture
def constant_matrix():
    """Four organisms over 20 samples; organism 'flat' never varies."""
    rng = np.random.default_rng(11)
    values = rng.poisson(30, size=(4, 20)).astype(float)
    values[2, :] = 5.0
    return AbundanceMatrix(["o0", "o1", "flat", "o3"], [f"s{j}" for j in range(20)], values)


@pytest.fixture
def missing_matrix():
    """Three organisms over 12 samples with a few missing observations."""
    values = np.array([
        [1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12],
        [2, 4, 6, 8, 10, 12, 14, 16, 18, 20, 22, 24],
        [12, 11, 10, 9, 8, 7, 6, 5, 4, 3, 2, 1],
    ], dtype=float)
    values[0, 3] = np.nan
    values[2, 7] = np.nan
    return make_matrix(values)


@pytest.fixture
def modular_matrix():
    """
    Two modules of three organisms each plus one independent organism, over
    60 samples. Members of a module follow a shared latent signal.
    """
    rng = np.random.default_rng(3)
    n = 60
    rows = []
    for _ in range(2):
        latent = rng.normal(0.0, 1.0, size=n)
        for _ in range(3):
            rows.append(100.0 + 20.0 * latent + rng.normal(0.0, 1.0, size=n))
    rows.append(100.0 + rng.normal(0.0, 20.0, size=n))
    return make_matrix(np.vstack(rows))


@pytest.fixture
def abundance_frame():
    return pd.DataFrame(
        [[0, 5, 3, 0], [1, 0, 0, 0], [4, 4, 4, 2]],
        index=["otuA", "otuB", "otuC"],
        columns=["s1", "s2", "s3", "s4"],
    )
