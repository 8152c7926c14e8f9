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
network.py

From a correlation matrix to a signed co-occurrence graph.

    threshold()       correlation matrix -> signed adjacency {-1, 0, +1}
    empty_adjacency() correlation matrix -> adjacency without any edge
    build()           signed adjacency   -> networkx.Graph with a `sign` per edge
    prune_isolated()  graph              -> copy without degree-0 vertices

edge_table() and node_table() flatten a graph into DataFrames for export.
"""

import logging
import warnings
from typing import Optional

import networkx as nx
import numpy as np
import pandas as pd

from coocnet.errors import InputShapeError, InvalidConfigurationError
from coocnet.utils import check_square, check_symmetric, iter_upper_edges

logger = logging.getLogger(__name__)


def threshold(correlations: pd.DataFrame, lower: float, upper: float) -> pd.DataFrame:
    """
    Classify every cell of a correlation matrix in one pass:

        value >= upper  -> +1
        value <= lower  -> -1
        otherwise       ->  0

    Missing (NaN) cells and the diagonal become 0. Equal cutoffs are
    degenerate: no cell is kept and a warning is issued. lower > upper is
    rejected.

    Returns a new int8 DataFrame with the same labels.
    """
    lower = float(lower)
    upper = float(upper)
    if np.isnan(lower) or np.isnan(upper):
        raise InvalidConfigurationError("cutoffs must not be NaN")
    if lower > upper:
        raise InvalidConfigurationError(
            f"lower cutoff {lower} is greater than upper cutoff {upper}"
        )
    check_square(correlations, "correlation matrix")

    if lower == upper:
        warnings.warn(
            f"lower and upper cutoffs are both {lower}; no correlation is retained.",
            RuntimeWarning,
        )
        return empty_adjacency(correlations)

    M = correlations.to_numpy(dtype=float)
    with np.errstate(invalid="ignore"):
        A = np.select([M >= upper, M <= lower], [1, -1], default=0).astype(np.int8)
    np.fill_diagonal(A, 0)

    return pd.DataFrame(A, index=correlations.index.copy(), columns=correlations.columns.copy())


def empty_adjacency(correlations: pd.DataFrame) -> pd.DataFrame:
    """All-zero int8 adjacency over the organisms of a correlation matrix."""
    check_square(correlations, "correlation matrix")
    n = correlations.shape[0]
    return pd.DataFrame(
        np.zeros((n, n), dtype=np.int8),
        index=correlations.index.copy(),
        columns=correlations.columns.copy(),
    )


def build(adjacency: pd.DataFrame, correlations: Optional[pd.DataFrame] = None) -> nx.Graph:
    """
    Undirected graph with one vertex per organism and one edge per non-zero
    off-diagonal adjacency cell.

    Every edge carries `sign` (+1 / -1); when `correlations` is given it also
    carries `correlation`. The adjacency must be square, symmetric and hold
    only -1, 0 and +1; the diagonal is ignored.
    """
    check_symmetric(adjacency, "adjacency matrix")
    A = adjacency.to_numpy(dtype=float)
    off_diag = ~np.eye(A.shape[0], dtype=bool)
    if not np.isin(A[off_diag], (-1.0, 0.0, 1.0)).all():
        raise InputShapeError("adjacency matrix may only contain -1, 0 and +1")

    R = None
    if correlations is not None:
        check_square(correlations, "correlation matrix")
        if not correlations.index.equals(adjacency.index):
            raise InputShapeError("correlation and adjacency matrices cover different organisms")
        R = correlations.to_numpy(dtype=float)

    nodes = list(adjacency.index)
    G = nx.Graph()
    G.add_nodes_from(nodes)
    for i, j, sign in iter_upper_edges(A):
        attrs = {"sign": int(sign)}
        if R is not None:
            attrs["correlation"] = float(R[i, j])
        G.add_edge(nodes[i], nodes[j], **attrs)

    logger.info(
        "Built graph: %d vertices, %d edges (+%d / -%d).",
        G.number_of_nodes(),
        G.number_of_edges(),
        sum(1 for _, _, s in G.edges(data="sign") if s > 0),
        sum(1 for _, _, s in G.edges(data="sign") if s < 0),
    )
    return G


def prune_isolated(graph: nx.Graph) -> nx.Graph:
    """New graph holding only the vertices of degree > 0; the input is untouched."""
    keep = [n for n, d in graph.degree() if d > 0]
    pruned = graph.subgraph(keep).copy()
    logger.debug("Pruned %d isolated vertices.", graph.number_of_nodes() - pruned.number_of_nodes())
    return pruned


def edge_table(graph: nx.Graph) -> pd.DataFrame:
    """(source, target, sign[, correlation]) rows, one per edge."""
    rows = []
    with_corr = any("correlation" in d for _, _, d in graph.edges(data=True))
    for u, v, d in graph.edges(data=True):
        row = {"source": u, "target": v, "sign": int(d.get("sign", 0))}
        if with_corr:
            row["correlation"] = d.get("correlation", np.nan)
        rows.append(row)
    columns = ["source", "target", "sign"] + (["correlation"] if with_corr else [])
    return pd.DataFrame(rows, columns=columns)


def node_table(graph: nx.Graph) -> pd.DataFrame:
    rows = []
    for n in graph.nodes():
        signs = [d.get("sign", 0) for _, _, d in graph.edges(n, data=True)]
        rows.append({
            "organism": n,
            "degree": len(signs),
            "positive_degree": sum(1 for s in signs if s > 0),
            "negative_degree": sum(1 for s in signs if s < 0),
        })
    return pd.DataFrame(rows, columns=["organism", "degree", "positive_degree", "negative_degree"])
