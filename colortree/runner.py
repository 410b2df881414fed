"""Wires a RunnerConfig into the builder's predicates."""
import logging
from typing import List, Optional

from colortree.builder import Builder, BuilderImpl, IncrementalBuilder
from colortree.cluster import Cluster, Clusters, DiffFn, NeighbourInfo
from colortree.color_metrics import color_diff, color_same, oklab_color_diff
from colortree.image import ColorImage
from colortree.types import ColorSpace, RunnerConfig, default_config

logger = logging.getLogger(__name__)


def diff_function(color_space: ColorSpace) -> DiffFn:
    """Difference function for the configured color space."""
    if color_space is ColorSpace.OKLAB:
        return oklab_color_diff
    return color_diff


def patch_good(cluster: Cluster, good_min_area: int, good_max_area: int) -> bool:
    """
    Geometric gate for deepening.

    Area must be strictly inside (good_min_area, good_max_area); unless the
    minimum is zero the internal perimeter must also be below the area.
    """
    if good_min_area < cluster.area < good_max_area:
        if good_min_area == 0 or cluster.perimeter < cluster.area:
            return True
        # thread-like, thinner than 2px
    return False


class Runner:
    """Builds, starts or runs a clustering from a config and an image."""

    def __init__(self, config: Optional[RunnerConfig] = None, image: Optional[ColorImage] = None):
        self.config = config if config is not None else default_config()
        self.config.validate()
        self.image = image

    def init(self, image: ColorImage) -> None:
        self.image = image

    def builder(self) -> Builder:
        config = self.config
        config.validate()

        shift = config.same_color_shift
        tolerance = config.same_color_tolerance
        good_min_area = config.good_min_area
        good_max_area = config.good_max_area
        deepen_diff = config.deepen_diff
        hollow_neighbours = config.hollow_neighbours

        def same(a, b, depth: int) -> bool:
            # Each refinement level quantizes one bit finer.
            return color_same(a, b, max(shift - depth, 0), tolerance)

        def deepen(internal: BuilderImpl, patch: Cluster, neighbours: List[NeighbourInfo]) -> bool:
            return (
                bool(neighbours)
                and patch_good(patch, good_min_area, good_max_area)
                and neighbours[0].diff > deepen_diff
            )

        def hollow(internal: BuilderImpl, patch: Cluster, neighbours: List[NeighbourInfo]) -> bool:
            return 0 < len(neighbours) <= hollow_neighbours

        logger.debug(f"Runner config: {config}")

        return (
            Builder()
            .from_image(self.image)
            .diagonal(config.diagonal)
            .hierarchical(config.hierarchical)
            .key(config.key_color)
            .keying_action(config.keying_action)
            .batch_size(config.batch_size)
            .same(same)
            # the quantization shift reaches zero at this depth
            .finest_depth(shift)
            .diff(diff_function(config.color_space))
            .deepen(deepen)
            .hollow(hollow)
        )

    def start(self) -> IncrementalBuilder:
        return self.builder().start()

    def run(self) -> Clusters:
        return self.builder().run()
