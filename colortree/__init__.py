"""Hierarchical color clustering for raster vectorization."""
from colortree.types import (
    Color,
    ColorDelta,
    ColorSpace,
    KeyingAction,
    StepStatus,
    RunnerConfig,
    default_config,
    ClusteringError,
    ConfigurationError,
)
from colortree.cluster import Cluster, Clusters, NeighbourInfo
from colortree.image import ColorImage
from colortree.builder import Builder, BuilderImpl, IncrementalBuilder, PolicySet
from colortree.runner import Runner

__all__ = [
    "Color",
    "ColorDelta",
    "ColorSpace",
    "KeyingAction",
    "StepStatus",
    "RunnerConfig",
    "default_config",
    "ClusteringError",
    "ConfigurationError",
    "Cluster",
    "Clusters",
    "NeighbourInfo",
    "ColorImage",
    "Builder",
    "BuilderImpl",
    "IncrementalBuilder",
    "PolicySet",
    "Runner",
]
