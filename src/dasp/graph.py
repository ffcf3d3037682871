"""
Superpixel adjacency graph.

Nodes  = superpixel labels of a label image (-1 = unassigned, ignored)
Edges  = label pairs meeting along a diagonal pixel step; every occurrence
         contributes the two touching pixel indices. Each anchor pixel is
         paired with its lower-right diagonal neighbour only. The right and
         below neighbours are not paired on purpose, so a contact that no
         diagonal step crosses (e.g. a single-row image) yields no edge.

Edge weight (merge cost)
------------------------
  convex pair   : 1 - n1 . n2    (0 for parallel normals)
  concave pair  : concave_weight (effectively "do not merge first")

A pair is convex when neither centre lies clearly above the other patch's
tangent plane: unit(c1 - c2) . n1 >= -tol and unit(c2 - c1) . n2 >= -tol.
The tolerance absorbs normal noise on smooth slanted surfaces, where
neighbouring centres sit almost exactly in the tangent plane.
"""

from __future__ import annotations

import numpy as np
import networkx as nx
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

AdjacencyMap = Dict[Tuple[int, int], List[int]]

DEFAULT_CONCAVE_WEIGHT = 100.0
DEFAULT_CONVEX_TOLERANCE = 0.5


@dataclass
class Edge:
    v1:     int            # smaller label
    v2:     int            # larger label
    count:  int   = 1      # boundary pixel contributions
    weight: float = 0.0    # merge cost, lower merges first


def build_adjacency(labels: np.ndarray) -> AdjacencyMap:
    """
    Map each touching label pair (min, max) to the flat indices of the pixels
    that witness it. Each anchor pixel is compared with its lower-right
    diagonal neighbour; both pixels are recorded.
    """
    H, W = labels.shape
    adjacency: AdjacencyMap = {}
    if H < 2 or W < 2:
        return adjacency

    a = labels[:-1, :-1]
    b = labels[1:, 1:]
    ys, xs = np.nonzero((a != b) & (a >= 0) & (b >= 0))

    anchor = ys * W + xs
    diag   = anchor + W + 1
    la, lb = a[ys, xs], b[ys, xs]
    lo, hi = np.minimum(la, lb), np.maximum(la, lb)

    for l1, l2, p, q in zip(lo.tolist(), hi.tolist(), anchor.tolist(), diag.tolist()):
        adjacency.setdefault((l1, l2), []).extend((p, q))
    return adjacency


def adjacency_edges(labels: np.ndarray) -> list[Edge]:
    """One Edge per touching label pair, ordered by pair."""
    adjacency = build_adjacency(labels)
    return [
        Edge(v1=v1, v2=v2, count=len(pixels))
        for (v1, v2), pixels in sorted(adjacency.items())
    ]


def is_convex(sp1, sp2, tolerance: float = DEFAULT_CONVEX_TOLERANCE) -> bool:
    """True unless sp2's centre lies above sp1's tangent plane by more than `tolerance` (cosine)."""
    offset = np.asarray(sp1.world, dtype=np.float64) - np.asarray(sp2.world, dtype=np.float64)
    length = float(np.linalg.norm(offset))
    if length == 0.0:
        return True
    return float(np.dot(offset / length, sp1.normal)) >= -tolerance


def edge_weight(
    sp1,
    sp2,
    concave_weight: float = DEFAULT_CONCAVE_WEIGHT,
    convex_tolerance: float = DEFAULT_CONVEX_TOLERANCE,
) -> float:
    if not (is_convex(sp1, sp2, convex_tolerance) and is_convex(sp2, sp1, convex_tolerance)):
        return float(concave_weight)
    alignment = float(np.dot(sp1.normal, sp2.normal))
    return max(0.0, 1.0 - alignment)


def evaluate_edges(
    edges: list[Edge],
    aggregates: Sequence,
    concave_weight: float = DEFAULT_CONCAVE_WEIGHT,
    convex_tolerance: float = DEFAULT_CONVEX_TOLERANCE,
) -> list[Edge]:
    """Set each edge's weight from its two endpoint superpixels (in place)."""
    for edge in edges:
        edge.weight = edge_weight(
            aggregates[edge.v1], aggregates[edge.v2], concave_weight, convex_tolerance
        )
    return edges


def to_networkx(vertex_ids: Iterable[int], edges: Iterable[Edge]) -> nx.Graph:
    G = nx.Graph()
    G.add_nodes_from(int(v) for v in vertex_ids)
    for e in edges:
        G.add_edge(e.v1, e.v2, weight=e.weight, count=e.count)
    return G
