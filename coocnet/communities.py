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
communities.py

Degree statistics and community detection on a co-occurrence graph.

Two interchangeable partitioning strategies are registered in
COMMUNITY_METHODS, each taking a graph and returning a CommunityPartition:

    greedy_modularity   Clauset-Newman-Moore agglomeration. Starting from
                        singletons, repeatedly merge the pair of connected
                        communities with the largest modularity gain and keep
                        the partition of maximal modularity along the way.
    edge_betweenness    Girvan-Newman divisive clustering. Repeatedly remove
                        the edge of highest betweenness (recomputed after each
                        removal) and keep the component partition of maximal
                        modularity.

Edge signs are not used by either algorithm; every edge counts once.
Isolated vertices end up as singleton communities. A graph without edges
raises EmptyGraphError, which detect_communities() turns into an explicit
empty result.
"""

import logging
import math
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

import networkx as nx
import numpy as np
import pandas as pd
from networkx.algorithms.community import girvan_newman, modularity

from coocnet._config import DEFAULT_COMMUNITY_METHODS, DEFAULT_HUB_FRACTION, check_probability
from coocnet.errors import EmptyGraphError, InputShapeError, InvalidConfigurationError

logger = logging.getLogger(__name__)

_Q_TOL = 1e-12


class CommunityPartition:
    """
    Assignment of every vertex of a graph to exactly one community.

    Attributes:
        membership (Dict[node, int]): Vertex -> community label. Labels run
            0..k-1, largest community first; ties keep graph vertex order.
        method (str): Name of the algorithm that produced the partition.
        modularity (float): Modularity of the partition on the graph it was
            computed on (NaN for an empty result).
    """

    def __init__(self, membership: Dict, method: str, modularity: float = float("nan")):
        self.membership = dict(membership)
        self.method = method
        self.modularity = float(modularity)

    @classmethod
    def from_communities(
        cls,
        communities: Iterable[Iterable],
        method: str,
        modularity: float,
        node_order: Sequence,
    ) -> "CommunityPartition":
        position = {n: i for i, n in enumerate(node_order)}
        groups = [list(c) for c in communities if len(c)]
        groups.sort(key=lambda c: (-len(c), min(position[n] for n in c)))
        membership = {}
        for label, group in enumerate(groups):
            for node in group:
                if node in membership:
                    raise InputShapeError(f"vertex {node!r} assigned to more than one community")
                membership[node] = label
        return cls(membership, method, modularity)

    @classmethod
    def empty(cls, method: str) -> "CommunityPartition":
        """The explicit "no communities" result."""
        return cls({}, method)

    @property
    def is_empty(self) -> bool:
        return not self.membership

    @property
    def n_communities(self) -> int:
        return len(set(self.membership.values()))

    def communities(self) -> List[Set]:
        out = [set() for _ in range(self.n_communities)]
        for node, label in self.membership.items():
            out[label].add(node)
        return out

    def sizes(self) -> List[int]:
        return [len(c) for c in self.communities()]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            list(self.membership.items()), columns=["organism", "community"]
        )

    def __repr__(self):
        if self.is_empty:
            return f"<CommunityPartition ({self.method}): no communities>"
        return (
            f"<CommunityPartition ({self.method}): {len(self.membership)} vertices in "
            f"{self.n_communities} communities, Q={self.modularity:.4f}>"
        )


def degree_distribution(graph: nx.Graph) -> pd.DataFrame:
    """
    Proportion of vertices with each degree k = 0..max degree.

    Degrees that do not occur are listed with a zero count. Columns: k,
    count, p_k.
    """
    degrees = np.array([d for _, d in graph.degree()], dtype=np.int64)
    if degrees.size == 0:
        return pd.DataFrame({"k": [], "count": [], "p_k": []}).astype(
            {"k": np.int64, "count": np.int64, "p_k": float}
        )
    counts = np.bincount(degrees)
    return pd.DataFrame({
        "k": np.arange(counts.size, dtype=np.int64),
        "count": counts.astype(np.int64),
        "p_k": counts / degrees.size,
    })


def top_degree_nodes(graph: nx.Graph, p: float = DEFAULT_HUB_FRACTION) -> Set:
    """
    High-degree vertices.

    Degrees are sorted in descending order and the degree found at rank
    ceil(p * |V|) becomes the cutoff; every vertex with at least that degree
    is returned, so ties at the cutoff can make the set larger than p * |V|.
    """
    p = check_probability("p", p, allow_one=True)
    degrees = dict(graph.degree())
    if not degrees:
        return set()
    ordered = sorted(degrees.values(), reverse=True)
    rank = max(1, math.ceil(p * len(ordered)))
    cutoff = ordered[rank - 1]
    return {n for n, d in degrees.items() if d >= cutoff}


def _check_graph(graph: nx.Graph) -> None:
    if graph.is_directed():
        raise InputShapeError("community detection expects an undirected graph")
    if graph.number_of_edges() == 0:
        raise EmptyGraphError("graph has no edges")
    if nx.number_of_selfloops(graph):
        raise InputShapeError("graph contains self-loops")


def greedy_modularity_communities(graph: nx.Graph) -> CommunityPartition:
    """
    Clauset-Newman-Moore greedy modularity partition.

    e[i, j] is the fraction of edge ends joining community i to j and a[i] its
    row sum; merging i and j changes modularity by 2 * (e[i, j] - a[i] * a[j]).
    Only connected communities are merged (ties go to the lowest index pair),
    until one community per connected component is left. The first partition
    reaching the maximal modularity is returned.
    """
    _check_graph(graph)
    nodes = list(graph.nodes())
    index = {n: i for i, n in enumerate(nodes)}
    n = len(nodes)
    two_m = 2.0 * graph.number_of_edges()

    e = np.zeros((n, n))
    for u, v in graph.edges():
        i, j = index[u], index[v]
        e[i, j] += 1.0 / two_m
        e[j, i] += 1.0 / two_m
    a = e.sum(axis=1)

    active = list(range(n))
    members = {i: [nodes[i]] for i in range(n)}

    def _q():
        act = np.array(active)
        return float(np.trace(e[np.ix_(act, act)]) - np.sum(a[act] ** 2))

    best_q = _q()
    best = [list(members[k]) for k in active]
    n_merges = 0

    while len(active) > 1:
        act = np.array(active)
        sub = e[np.ix_(act, act)]
        connected = np.triu(sub > 0, k=1)
        if not connected.any():
            break
        gain = np.where(connected, 2.0 * (sub - np.outer(a[act], a[act])), -np.inf)
        ii, jj = divmod(int(np.argmax(gain)), act.size)
        i, j = int(act[ii]), int(act[jj])

        # fold community j into i
        e[i, :] += e[j, :]
        e[:, i] += e[:, j]
        e[j, :] = 0.0
        e[:, j] = 0.0
        a[i] += a[j]
        a[j] = 0.0
        members[i].extend(members.pop(j))
        active.remove(j)
        n_merges += 1

        q = _q()
        if q > best_q + _Q_TOL:
            best_q = q
            best = [list(members[k]) for k in active]

    q_final = modularity(graph, best, weight=None)
    logger.debug(
        "Greedy modularity: %d merges, best partition has %d communities (Q=%.4f).",
        n_merges, len(best), q_final,
    )
    return CommunityPartition.from_communities(best, "greedy_modularity", q_final, nodes)


def edge_betweenness_communities(graph: nx.Graph) -> CommunityPartition:
    """
    Girvan-Newman partition of maximal modularity.

    The candidate partitions are the connected components of the input
    graph and every split produced while edges of highest betweenness are
    removed one at a time; modularity is always scored on the input graph.
    """
    _check_graph(graph)
    nodes = list(graph.nodes())

    best = [set(c) for c in nx.connected_components(graph)]
    best_q = modularity(graph, best, weight=None)
    n_levels = 0
    for level in girvan_newman(graph):
        n_levels += 1
        q = modularity(graph, level, weight=None)
        if q > best_q + _Q_TOL:
            best_q = q
            best = [set(c) for c in level]

    logger.debug(
        "Edge betweenness: %d splits, best partition has %d communities (Q=%.4f).",
        n_levels, len(best), best_q,
    )
    return CommunityPartition.from_communities(best, "edge_betweenness", best_q, nodes)


COMMUNITY_METHODS: Dict[str, Callable[[nx.Graph], CommunityPartition]] = {
    "greedy_modularity": greedy_modularity_communities,
    "edge_betweenness": edge_betweenness_communities,
}


def detect_communities(graph: nx.Graph, method: str = "greedy_modularity") -> CommunityPartition:
    """
    Partition `graph` with the named strategy.

    A graph without edges yields CommunityPartition.empty(method) instead of
    running the algorithm.
    """
    key = str(method).lower()
    if key not in COMMUNITY_METHODS:
        raise InvalidConfigurationError(
            f"Unknown community method '{method}'. Expected one of: {', '.join(COMMUNITY_METHODS)}"
        )
    try:
        partition = COMMUNITY_METHODS[key](graph)
    except EmptyGraphError:
        logger.info("No edges in graph; %s community detection skipped.", key)
        return CommunityPartition.empty(key)
    logger.info("%r", partition)
    return partition


def compare_communities(
    graph: nx.Graph,
    methods: Optional[Sequence[str]] = DEFAULT_COMMUNITY_METHODS,
) -> Dict[str, CommunityPartition]:
    """Run several strategies on the same graph; keyed by method name."""
    return {m: detect_communities(graph, m) for m in (methods or ())}
