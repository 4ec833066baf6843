"""
Skeleton graph construction for Sprout Measure.

Builds a pixel graph of a skeleton using 8-connectivity. Diagonal links
between pixels that already share an orthogonal neighbour are dropped, so
staircase corners do not show up as false junctions.
"""

import math

import networkx as nx
import numpy as np

from sproutmeasure.masks.primitives import skeletonize_mask
from sproutmeasure.tracer import get_tracer, trace


# Forward half of the 8-neighbourhood; each link is visited once
FORWARD_NEIGHBORS = [(0, 1), (1, -1), (1, 0), (1, 1)]

SQRT2 = math.sqrt(2.0)


def step_length(u, v):
    """Length of a step between two adjacent (y, x) pixels."""
    return SQRT2 if (u[0] != v[0] and u[1] != v[1]) else 1.0


@trace(label="build_skeleton_graph")
def build_skeleton_graph(mask):
    """
    Skeletonize a mask and build its pixel graph.

    Returns:
        skeleton: uint8 image with skeleton pixels = 255
        graph: networkx graph with one (y, x) node per skeleton pixel and
            edges weighted by step length
    """
    tracer = get_tracer()

    skeleton = skeletonize_mask(mask)
    graph = skeleton_to_graph(skeleton)

    tracer.event(f"Graph: nodes={graph.number_of_nodes()}, edges={graph.number_of_edges()}")
    return skeleton, graph


def skeleton_to_graph(skeleton):
    """Pixel graph of an already thinned skeleton."""
    on = np.asarray(skeleton) > 0
    height, width = on.shape
    graph = nx.Graph()

    ys, xs = np.nonzero(on)
    for y, x in zip(ys.tolist(), xs.tolist()):
        graph.add_node((y, x))

    for y, x in zip(ys.tolist(), xs.tolist()):
        for dy, dx in FORWARD_NEIGHBORS:
            ny, nx_coord = y + dy, x + dx
            if not (0 <= ny < height and 0 <= nx_coord < width) or not on[ny, nx_coord]:
                continue
            if dy != 0 and dx != 0 and (on[y + dy, x] or on[y, x + dx]):
                continue
            graph.add_edge((y, x), (ny, nx_coord), weight=step_length((y, x), (ny, nx_coord)))

    return graph


def classify_nodes(graph):
    """
    Split skeleton pixels into endpoints and junction pixels.

    Endpoints have degree <= 1 (an isolated pixel is an endpoint);
    junction pixels have degree >= 3.
    """
    endpoints = []
    junction_pixels = []
    for node in sorted(graph.nodes()):
        degree = graph.degree(node)
        if degree <= 1:
            endpoints.append(node)
        elif degree >= 3:
            junction_pixels.append(node)
    return endpoints, junction_pixels


def cluster_junctions(graph, junction_pixels):
    """
    Group adjacent junction pixels into junctions.

    Returns a dict mapping each junction pixel to a cluster index.
    """
    cluster_of = {}
    sub = graph.subgraph(junction_pixels)
    components = sorted(nx.connected_components(sub), key=min)
    for idx, component in enumerate(components):
        for pixel in component:
            cluster_of[pixel] = idx
    return cluster_of
