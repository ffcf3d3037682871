"""
Region merging of adjacent superpixels with a weighted union-find.

The forest lives in a flat list of Vertex records (one per distinct label,
ordered by label); parent links are list indices. Edges are applied in
ascending weight order, and every union attaches the smaller tree under the
larger one. Roots are then numbered in vertex order to give compact region ids.
"""

from __future__ import annotations

import logging
import numpy as np
import networkx as nx
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .graph import (
    DEFAULT_CONCAVE_WEIGHT, DEFAULT_CONVEX_TOLERANCE, Edge,
    adjacency_edges, evaluate_edges, to_networkx,
)

logger = logging.getLogger(__name__)


class GroupingConsistencyError(RuntimeError):
    """Edge list and label image disagree, or the merge count is off."""


@dataclass(frozen=True)
class GroupingConfig:
    concave_weight:   float           = DEFAULT_CONCAVE_WEIGHT
    convex_tolerance: float           = DEFAULT_CONVEX_TOLERANCE  # cosine slack of the convexity test
    merge_threshold:  Optional[float] = None    # None = merge along every edge
    strict:           bool            = False   # raise on consistency violations

    def __post_init__(self):
        if not 0.0 <= self.convex_tolerance <= 1.0:
            raise ValueError(f"convex_tolerance must be in [0, 1], got {self.convex_tolerance}")


@dataclass
class Vertex:
    id:     int        # original label
    idx:    int        # position in the vertex list
    parent: int        # index of the parent vertex
    count:  int = 1    # size of the subtree rooted here


@dataclass
class GroupingResult:
    regions:   np.ndarray            # (H, W) int32, -1 = invalid
    n_regions: int
    n_merges:  int
    vertices:  list[Vertex] = field(default_factory=list)
    edges:     list[Edge]   = field(default_factory=list)


def find_root(idx: int, vertices: Sequence[Vertex]) -> int:
    parent = vertices[idx].parent
    while parent != vertices[parent].parent:
        parent = vertices[parent].parent
    return parent


def _violation(message: str, config: GroupingConfig) -> None:
    if config.strict:
        raise GroupingConsistencyError(message)
    logger.warning(message)


def _relabel(vertices: Sequence[Vertex]) -> np.ndarray:
    root_to_new: dict[int, int] = {}
    for v in vertices:
        if find_root(v.idx, vertices) == v.idx:
            root_to_new[v.idx] = len(root_to_new)
    return np.array(
        [root_to_new[find_root(v.idx, vertices)] for v in vertices],
        dtype=np.int32,
    )


def merge_regions(
    labels: np.ndarray,
    edges: Sequence[Edge],
    config: Optional[GroupingConfig] = None,
) -> GroupingResult:
    """
    Merge labelled superpixels along weighted edges.

    Parameters
    ----------
    labels : (H, W) int label image, -1 = unassigned
    edges  : Edge list with weights already evaluated
    config : GroupingConfig

    Returns
    -------
    GroupingResult whose regions image maps every label to a compact id in
    [0, n_regions); labels without edges survive as singleton regions.
    """
    config = config or GroupingConfig()
    unique_ids = np.unique(labels[labels >= 0])
    vertices = [Vertex(id=int(v), idx=i, parent=i) for i, v in enumerate(unique_ids)]
    id2idx   = {v.id: v.idx for v in vertices}

    usable = [e for e in edges if e.v1 in id2idx and e.v2 in id2idx]
    if len(usable) != len(edges):
        stray = sorted({l for e in edges for l in (e.v1, e.v2) if l not in id2idx})
        _violation(
            f"{len(edges) - len(usable)} edges reference labels missing from the "
            f"label image {stray}; ignoring them.",
            config,
        )

    covered  = {l for e in usable for l in (e.v1, e.v2)}
    isolated = [v.id for v in vertices if v.id not in covered]
    if isolated and len(vertices) > 1:
        logger.debug(
            f"{len(isolated)} superpixels have no adjacency edge and stay "
            f"singleton regions: {isolated[:10]}"
        )

    n_merges = 0
    if len(vertices) > 1:
        for e in sorted(usable, key=lambda e: e.weight):
            if config.merge_threshold is not None and e.weight > config.merge_threshold:
                break
            root1 = find_root(id2idx[e.v1], vertices)
            root2 = find_root(id2idx[e.v2], vertices)
            if root1 == root2:
                continue
            # smaller tree goes under the larger one
            if vertices[root1].count > vertices[root2].count:
                root1, root2 = root2, root1
            vertices[root1].parent = root2
            vertices[root2].count += vertices[root1].count
            n_merges += 1

        n_components = nx.number_connected_components(to_networkx(id2idx, usable))
        expected = len(vertices) - n_components
        if config.merge_threshold is None and n_merges != expected:
            _violation(f"Merged {n_merges} times, expected {expected}.", config)
        elif n_merges > expected:
            _violation(f"Merged {n_merges} times, at most {expected} possible.", config)

    new_ids = _relabel(vertices)
    regions = np.full(labels.shape, -1, dtype=np.int32)
    valid   = labels >= 0
    if vertices:
        regions[valid] = new_ids[np.searchsorted(unique_ids, labels[valid])]

    n_regions = int(new_ids.max()) + 1 if vertices else 0
    logger.debug(
        f"Union-find: {len(vertices)} vertices, {len(usable)} edges, "
        f"{n_merges} merges -> {n_regions} regions"
    )
    return GroupingResult(
        regions=regions,
        n_regions=n_regions,
        n_merges=n_merges,
        vertices=vertices,
        edges=list(usable),
    )


def group_superpixels(
    labels: np.ndarray,
    aggregates: Sequence,
    config: Optional[GroupingConfig] = None,
) -> GroupingResult:
    """Adjacency graph -> edge weights -> union-find merge."""
    config = config or GroupingConfig()
    edges  = adjacency_edges(labels)
    evaluate_edges(edges, aggregates, config.concave_weight, config.convex_tolerance)
    result = merge_regions(labels, edges, config)
    logger.info(
        f"Grouped {len(result.vertices)} superpixels into {result.n_regions} regions "
        f"({len(edges)} edges)"
    )
    return result
