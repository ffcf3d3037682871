"""
DASP

Depth-adaptive superpixels for registered RGB-D frames, grouped into
surface-consistent regions with a convexity-aware union-find merge.

"""

from .features import (
    DaspParameters, FeatureField, PixelSample,
    build_feature_field, normalize_density,
    finite_difference, local_depth_gradient, depth_gradients,
)
from .metric import DaspDistance, normal_distance
from .sampling import SeedSampler, FloydSteinbergSampler, GridSampler
from .alic import AlicConfig, Clusterer, LocalKMeansClusterer, SuperpixelAggregate
from .graph import (
    Edge, build_adjacency, adjacency_edges,
    is_convex, edge_weight, evaluate_edges, to_networkx,
)
from .grouping import (
    GroupingConfig, GroupingResult, GroupingConsistencyError,
    Vertex, find_root, merge_regions, group_superpixels,
)
from .pipeline import DaspPipeline, SegmentationResult, dasp_grouping
from .metrics import RegionMetrics, boundary_recall, undersegmentation_error, evaluate_regions
from .dataset import load_rgbd, make_synthetic_frame
from .config import load_raw_config, create_config

__version__ = "0.1.0"

__all__ = [
    "DaspParameters", "FeatureField", "PixelSample",
    "build_feature_field", "normalize_density",
    "finite_difference", "local_depth_gradient", "depth_gradients",

    "DaspDistance", "normal_distance",

    "SeedSampler", "FloydSteinbergSampler", "GridSampler",
    "AlicConfig", "Clusterer", "LocalKMeansClusterer", "SuperpixelAggregate",

    "Edge", "build_adjacency", "adjacency_edges",
    "is_convex", "edge_weight", "evaluate_edges", "to_networkx",

    "GroupingConfig", "GroupingResult", "GroupingConsistencyError",
    "Vertex", "find_root", "merge_regions", "group_superpixels",

    "DaspPipeline", "SegmentationResult", "dasp_grouping",

    "RegionMetrics", "boundary_recall", "undersegmentation_error", "evaluate_regions",

    "load_rgbd", "make_synthetic_frame",
    "load_raw_config", "create_config",
]
