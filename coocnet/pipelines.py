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
pipelines.py

End-to-end co-occurrence network workflow.

run_network_obj(abundance, settings) runs everything in memory:
  1. Optional prevalence filtering of the AbundanceMatrix.
  2. Organism x organism correlation matrix.
  3. Optional significance path: adjusted p-values, and the correlations
     whose adjusted p-value is below alpha (others become NaN).
  4. Cutoffs, either from the bootstrap histogram (cutoff_mode="bootstrap")
     or a fixed absolute cutoff (cutoff_mode="fixed"). A histogram without
     any defined correlation yields no cutoffs and an edgeless network.
  5. Signed adjacency, graph, and the graph without isolated vertices.
  6. Degree distribution (full graph, isolates included), high-degree
     vertices and community partitions (pruned graph).

run_network(args) is the file-based wrapper used by `coocnet network`: it
loads the abundance table, runs the workflow and writes every result as a
TSV file into args.output_dir.
"""

import logging
import os
from typing import Dict, Optional

import networkx as nx
import pandas as pd

from coocnet._config import NetworkSettings
from coocnet.bootstrap import BootstrapHistogram, bootstrap
from coocnet.communities import (
    CommunityPartition,
    compare_communities,
    degree_distribution,
    top_degree_nodes,
)
from coocnet.correlation import correlate, significance, significant_correlations
from coocnet.filter import filter_abundance_obj
from coocnet.network import (
    build,
    edge_table,
    empty_adjacency,
    node_table,
    prune_isolated,
    threshold,
)
from coocnet.pantry import AbundanceMatrix, load_abundance
from coocnet.thresholds import QuantilePair, fixed_cutoffs, quantiles

logger = logging.getLogger(__name__)


class NetworkResult:
    """Every intermediate and final product of one run_network_obj() call."""

    def __init__(
        self,
        abundance: AbundanceMatrix,
        settings: NetworkSettings,
        correlations: pd.DataFrame,
        significance: Optional[pd.DataFrame],
        retained: pd.DataFrame,
        histogram: Optional[BootstrapHistogram],
        cutoffs: Optional[QuantilePair],
        adjacency: pd.DataFrame,
        graph: nx.Graph,
        pruned: nx.Graph,
        degrees: pd.DataFrame,
        hubs: set,
        partitions: Dict[str, CommunityPartition],
    ):
        self.abundance = abundance
        self.settings = settings
        self.correlations = correlations
        self.significance = significance
        self.retained = retained
        self.histogram = histogram
        self.cutoffs = cutoffs
        self.adjacency = adjacency
        self.graph = graph
        self.pruned = pruned
        self.degrees = degrees
        self.hubs = hubs
        self.partitions = partitions

    @property
    def is_empty(self) -> bool:
        """True when no correlation survived thresholding."""
        return self.graph.number_of_edges() == 0

    def summary(self) -> pd.DataFrame:
        rows = [
            ("organisms", self.abundance.n_organisms),
            ("samples", self.abundance.n_samples),
            ("method", self.settings.method),
            ("cutoff_mode", self.settings.cutoff_mode),
            ("lower_cutoff", self.cutoffs.lower if self.cutoffs else float("nan")),
            ("upper_cutoff", self.cutoffs.upper if self.cutoffs else float("nan")),
            ("edges", self.graph.number_of_edges()),
            ("positive_edges", sum(1 for *_, s in self.graph.edges(data="sign") if s > 0)),
            ("negative_edges", sum(1 for *_, s in self.graph.edges(data="sign") if s < 0)),
            ("connected_organisms", self.pruned.number_of_nodes()),
            ("isolated_organisms", self.graph.number_of_nodes() - self.pruned.number_of_nodes()),
        ]
        for name, part in self.partitions.items():
            rows.append((f"{name}_communities", part.n_communities))
            rows.append((f"{name}_modularity", part.modularity))
        return pd.DataFrame(rows, columns=["statistic", "value"])


def run_network_obj(
    abundance: AbundanceMatrix,
    settings: Optional[NetworkSettings] = None,
    min_organism_count: Optional[int] = None,
    min_sample_count: Optional[int] = None,
) -> NetworkResult:
    """Run the whole workflow in memory; see the module docstring."""
    settings = (settings or NetworkSettings()).validate()

    abundance = filter_abundance_obj(
        abundance,
        min_organism_count=min_organism_count,
        min_sample_count=min_sample_count,
    )

    correlations = correlate(abundance, settings.method)

    sig = None
    retained = correlations
    if settings.significance_filter:
        sig = significance(abundance, settings.method, settings.correction)
        retained = significant_correlations(correlations, sig, settings.alpha)
        n_kept = int(retained.notna().to_numpy().sum() // 2)
        print(f"Pipeline: {n_kept} organism pairs significant at alpha={settings.alpha} ({settings.correction}).")

    histogram = None
    cutoffs = None
    if settings.cutoff_mode == "bootstrap":
        histogram = bootstrap(
            abundance,
            n_reps=settings.n_reps,
            method=settings.method,
            random_state=settings.random_state,
            n_workers=settings.n_workers,
            precision=settings.precision,
            chunk_reps=settings.chunk_reps,
            progress=settings.progress,
        )
        if histogram.total:
            cutoffs = quantiles(histogram, settings.tail_p)
        else:
            print("Pipeline: No organism pair has a defined correlation; no cutoffs derived.")
    else:
        cutoffs = fixed_cutoffs(settings.fixed_cutoff)

    if cutoffs is None:
        adjacency = empty_adjacency(retained)
    else:
        print(f"Pipeline: Cutoffs lower={cutoffs.lower}, upper={cutoffs.upper} ({settings.cutoff_mode}).")
        adjacency = threshold(retained, cutoffs.lower, cutoffs.upper)
    graph = build(adjacency, correlations=correlations)
    pruned = prune_isolated(graph)

    degrees = degree_distribution(graph)
    hubs = top_degree_nodes(pruned, settings.hub_fraction)
    partitions = compare_communities(pruned, settings.community_methods)

    result = NetworkResult(
        abundance=abundance,
        settings=settings,
        correlations=correlations,
        significance=sig,
        retained=retained,
        histogram=histogram,
        cutoffs=cutoffs,
        adjacency=adjacency,
        graph=graph,
        pruned=pruned,
        degrees=degrees,
        hubs=hubs,
        partitions=partitions,
    )
    if result.is_empty:
        print("Pipeline: No significant correlations found; the network has no edges.")
    else:
        print(
            f"Pipeline: Network has {graph.number_of_edges()} edges among "
            f"{pruned.number_of_nodes()} of {graph.number_of_nodes()} organisms."
        )
    return result


def settings_from_args(args) -> NetworkSettings:
    return NetworkSettings(
        method=args.method,
        cutoff_mode=args.cutoff_mode,
        n_reps=args.n_reps,
        tail_p=args.tail_p,
        fixed_cutoff=args.fixed_cutoff,
        significance_filter=args.significance_filter,
        correction=args.correction,
        alpha=args.alpha,
        precision=args.precision,
        hub_fraction=args.hub_fraction,
        community_methods=args.community_methods,
        random_state=args.seed,
        n_workers=args.n_workers,
        chunk_reps=args.chunk_reps,
        progress=not args.no_progress,
    )


def write_network_result(result: NetworkResult, output_dir: str, tag: str = "") -> Dict[str, str]:
    """Write every table of `result` into output_dir; returns name -> path."""
    os.makedirs(output_dir, exist_ok=True)

    tables = {
        "summary": result.summary(),
        "correlations": result.correlations,
        "edges": edge_table(result.graph),
        "nodes": node_table(result.graph),
        "degree_distribution": result.degrees,
        "hubs": pd.DataFrame({"organism": sorted(result.hubs, key=str)}),
    }
    if result.significance is not None:
        tables["significance"] = result.significance
    if result.histogram is not None:
        tables["bootstrap_histogram"] = result.histogram.to_frame()
    for name, part in result.partitions.items():
        tables[f"communities_{name}"] = part.to_frame()

    paths = {}
    for name, df in tables.items():
        path = os.path.join(output_dir, f"{tag}{name}.tsv")
        keep_index = name in ("correlations", "significance")
        df.to_csv(path, sep="\t", index=keep_index)
        paths[name] = path
    print(f"Pipeline: {len(paths)} tables saved to {output_dir}")
    return paths


def run_network(args) -> NetworkResult:
    """
    File-based workflow behind `coocnet network`.

    Expected attributes in args: abundance_file, output_dir, tag,
    samples_as_rows, min_organism_count, min_sample_count, plus every
    option read by settings_from_args().
    """
    abundance = load_abundance(args.abundance_file, samples_as_rows=args.samples_as_rows)
    result = run_network_obj(
        abundance,
        settings_from_args(args),
        min_organism_count=args.min_organism_count,
        min_sample_count=args.min_sample_count,
    )
    write_network_result(result, args.output_dir, tag=args.tag)
    return result


def run_correlation(args) -> Dict[str, str]:
    """File-based correlation (and optional significance) behind `coocnet correlate`."""
    abundance = load_abundance(args.abundance_file, samples_as_rows=args.samples_as_rows)
    os.makedirs(args.output_dir, exist_ok=True)

    tables = {"correlations": correlate(abundance, args.method)}
    if args.significance:
        sig = significance(abundance, args.method, args.correction)
        tables["significance"] = sig
        tables["significant_correlations"] = significant_correlations(
            tables["correlations"], sig, args.alpha
        )

    paths = {}
    for name, df in tables.items():
        path = os.path.join(args.output_dir, f"{args.tag}{name}.tsv")
        df.to_csv(path, sep="\t")
        paths[name] = path
        print(f"Correlation: {name} saved to {path}")
    return paths


def run_bootstrap(args) -> Optional[QuantilePair]:
    """
    File-based bootstrap histogram and cutoffs behind `coocnet bootstrap`.

    Returns None (and writes NaN cutoffs) when no organism pair had a
    defined correlation in any iteration.
    """
    abundance = load_abundance(args.abundance_file, samples_as_rows=args.samples_as_rows)
    os.makedirs(args.output_dir, exist_ok=True)

    histogram = bootstrap(
        abundance,
        n_reps=args.n_reps,
        method=args.method,
        random_state=args.seed,
        n_workers=args.n_workers,
        precision=args.precision,
        chunk_reps=args.chunk_reps,
        progress=not args.no_progress,
    )
    cutoffs = quantiles(histogram, args.tail_p) if histogram.total else None

    hist_path = os.path.join(args.output_dir, f"{args.tag}bootstrap_histogram.tsv")
    histogram.to_frame().to_csv(hist_path, sep="\t", index=False)
    print(f"Bootstrap: histogram saved to {hist_path}")

    lower = cutoffs.lower if cutoffs else float("nan")
    upper = cutoffs.upper if cutoffs else float("nan")
    cutoff_path = os.path.join(args.output_dir, f"{args.tag}cutoffs.tsv")
    pd.DataFrame([{
        "tail_p": args.tail_p,
        "lower": lower,
        "upper": upper,
        "n_reps": histogram.n_reps,
        "n_indeterminate": histogram.n_indeterminate,
    }]).to_csv(cutoff_path, sep="\t", index=False)
    if cutoffs is None:
        print(f"Bootstrap: No significant correlations found; NaN cutoffs saved to {cutoff_path}")
    else:
        print(f"Bootstrap: cutoffs lower={lower}, upper={upper} saved to {cutoff_path}")
    return cutoffs
