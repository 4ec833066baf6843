"""
Skeleton analysis for Sprout Measure.

Decomposes the protrusion skeleton into trees (connected skeleton pieces)
and, per tree, into branches running between nodes (endpoints and junction
clusters). The per-tree arrays mirror what classic skeleton analysers
report; seed-level totals are derived from them.
"""

from typing import List, Optional, Tuple

import networkx as nx
import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from sproutmeasure.skeleton.skeleton_graph import (
    build_skeleton_graph,
    classify_nodes,
    cluster_junctions,
    skeleton_to_graph,
    step_length,
)
from sproutmeasure.tracer import get_tracer, trace


class SkeletonResult(BaseModel):
    """Per-tree skeleton features plus the endpoints as (x, y)."""
    branch_lengths: List[float] = Field(default_factory=list)  # mean branch length per tree
    branch_counts: List[int] = Field(default_factory=list)
    junction_counts: List[int] = Field(default_factory=list)
    endpoint_counts: List[int] = Field(default_factory=list)
    endpoints: List[Tuple[int, int]] = Field(default_factory=list)
    skeleton: Optional[np.ndarray] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def num_trees(self):
        return len(self.branch_counts)

    @property
    def total_length(self):
        """Sum over trees of branch count times mean branch length."""
        return float(sum(c * l for c, l in zip(self.branch_counts, self.branch_lengths)))

    @property
    def num_junctions(self):
        return int(sum(self.junction_counts))

    @property
    def num_endpoints(self):
        return int(sum(self.endpoint_counts))


def trace_branches(graph, endpoints, cluster_of):
    """
    Walk every branch of one skeleton tree.

    A branch starts at a node pixel and follows degree-2 pixels until it
    reaches another node pixel. Links inside a junction cluster are not
    branches. Returns the list of branch lengths.
    """
    node_pixels = set(endpoints) | set(cluster_of)
    visited = set()
    lengths = []

    for start in sorted(node_pixels):
        for first in sorted(graph.neighbors(start)):
            edge = frozenset((start, first))
            if edge in visited:
                continue
            visited.add(edge)
            if start in cluster_of and cluster_of.get(first) == cluster_of[start]:
                continue

            length = step_length(start, first)
            prev, cur = start, first
            while cur not in node_pixels:
                nxt = next((n for n in graph.neighbors(cur) if n != prev), None)
                if nxt is None:
                    break
                visited.add(frozenset((cur, nxt)))
                length += step_length(cur, nxt)
                prev, cur = cur, nxt
            lengths.append(length)

    # a closed loop without nodes is one branch
    if not node_pixels and graph.number_of_edges() > 0:
        lengths.append(float(graph.size(weight="weight")))

    return lengths


@trace(label="analyze_skeleton")
def analyze_skeleton(mask):
    """
    Skeletonize a mask and measure its trees.

    An empty mask gives empty per-tree arrays and zero totals.
    """
    skeleton, graph = build_skeleton_graph(mask)
    return measure_graph(graph, skeleton)


def measure_skeleton(skeleton):
    """Measure an already thinned skeleton image."""
    return measure_graph(skeleton_to_graph(skeleton), skeleton)


def measure_graph(graph, skeleton=None):
    """Per-tree branch, junction and endpoint counts of a skeleton graph."""
    tracer = get_tracer()
    result = SkeletonResult(skeleton=skeleton)

    if graph.number_of_nodes() == 0:
        return result

    trees = sorted(nx.connected_components(graph), key=min)
    for nodes in trees:
        tree = graph.subgraph(nodes)
        endpoints, junction_pixels = classify_nodes(tree)
        cluster_of = cluster_junctions(tree, junction_pixels)
        lengths = trace_branches(tree, endpoints, cluster_of)

        result.branch_counts.append(len(lengths))
        result.branch_lengths.append(float(np.mean(lengths)) if lengths else 0.0)
        result.junction_counts.append(len(set(cluster_of.values())))
        result.endpoint_counts.append(len(endpoints))
        result.endpoints.extend((x, y) for y, x in endpoints)

    tracer.event(
        f"Trees={result.num_trees} branches={sum(result.branch_counts)} "
        f"junctions={result.num_junctions} endpoints={result.num_endpoints}"
    )
    return result
