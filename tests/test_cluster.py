"""Tests for the cluster model."""
import dataclasses
from collections import Counter

import numpy as np
import pytest

from colortree.cluster import (
    Cluster,
    Clusters,
    ColorSum,
    rank_neighbours,
    scan_borders,
)
from colortree.color_metrics import color_diff
from colortree.types import Color


def _two_by_three():
    """
    Label layout (3 wide, 2 high):

        0 0 1
        2 2 1
    """
    labels = [0, 0, 1, 2, 2, 1]
    clusters = {
        0: Cluster(id=0, indices=(0, 1), color=Color(0, 0, 0)),
        1: Cluster(id=1, indices=(2, 5), color=Color(255, 0, 0)),
        2: Cluster(id=2, indices=(3, 4), color=Color(0, 0, 255), keyed=True),
    }
    return labels, clusters


class TestScanBorders:
    """Test perimeter and border counting."""

    def test_internal_perimeter_ignores_image_edge(self):
        labels, _ = _two_by_three()
        borders = Counter()
        perimeter = scan_borders((0, 1), labels, 3, 2, 0, borders)
        # right of (1, 0) is cluster 1; below (0, 0) and (1, 0) is cluster 2
        assert perimeter == 3
        assert borders == Counter({2: 2, 1: 1})

    def test_single_cluster_has_no_perimeter(self):
        borders = Counter()
        assert scan_borders(range(16), [0] * 16, 4, 4, 0, borders) == 0
        assert not borders

    def test_incremental_chunks_add_up(self):
        labels, _ = _two_by_three()
        whole = Counter()
        total = scan_borders((3, 4), labels, 3, 2, 2, whole)
        parts = Counter()
        split = scan_borders((3,), labels, 3, 2, 2, parts) + \
            scan_borders((4,), labels, 3, 2, 2, parts)
        assert total == split
        assert whole == parts


class TestRankNeighbours:
    """Test neighbour ordering."""

    def test_descending_border_then_ascending_id(self):
        colors = {1: Color(10, 0, 0), 2: Color(20, 0, 0), 3: Color(30, 0, 0)}
        ranked = rank_neighbours(
            Color(0, 0, 0), {3: 2, 2: 5, 1: 2}, colors.__getitem__, color_diff
        )
        assert [n.id for n in ranked] == [2, 1, 3]
        assert [n.border for n in ranked] == [5, 2, 2]
        assert ranked[0].diff == 20

    def test_excluded_ids_dropped(self):
        ranked = rank_neighbours(
            Color(0, 0, 0), {1: 3, 2: 1}, lambda nid: Color(0, 0, 0), color_diff,
            excluded=lambda nid: nid == 1
        )
        assert [n.id for n in ranked] == [2]


class TestCluster:
    """Test Cluster values."""

    def test_area_and_points(self):
        cluster = Cluster(id=0, indices=(0, 4, 5), color=Color(1, 2, 3))
        assert cluster.area == 3
        assert cluster.points(4) == [(0, 0), (0, 1), (1, 1)]
        assert cluster.is_leaf

    def test_frozen(self):
        cluster = Cluster(id=0, indices=(0,), color=Color(1, 2, 3))
        with pytest.raises(dataclasses.FrozenInstanceError):
            cluster.hollow = True

    def test_color_sum_mean_rounds(self):
        total = ColorSum()
        total.add(Color(0, 0, 0))
        total.add(Color(1, 1, 3))
        assert total.count == 2
        assert total.mean() == Color(1, 1, 2)

    def test_empty_color_sum(self):
        assert ColorSum().mean() == Color(0, 0, 0)


class TestClusters:
    """Test the finished collection."""

    def test_mapping_access(self):
        labels, clusters = _two_by_three()
        result = Clusters(3, 2, clusters, labels)
        assert len(result) == 3
        assert result[1].color == Color(255, 0, 0)
        assert set(result) == {0, 1, 2}
        assert result.roots == (0, 1, 2)
        assert result.leaves == (0, 1, 2)

    def test_read_only(self):
        labels, clusters = _two_by_three()
        result = Clusters(3, 2, clusters, labels)
        with pytest.raises(TypeError):
            result[0] = clusters[1]
        clusters.pop(0)
        assert 0 in result

    def test_output_drops_discarded_keyed(self):
        labels, clusters = _two_by_three()
        assert Clusters(3, 2, clusters, labels).output == (0, 1)
        assert Clusters(3, 2, clusters, labels, background=2).output == (0, 1, 2)

    def test_mask_and_label_map(self):
        labels, clusters = _two_by_three()
        result = Clusters(3, 2, clusters, labels)
        expected = np.array([[False, False, True], [False, False, True]])
        assert np.array_equal(result.mask(1), expected)
        assert np.array_equal(result.label_map(), np.array([[0, 0, 1], [2, 2, 1]]))
        assert result.pixels(1) == [(2, 0), (2, 1)]

    def test_neighbours_skip_discarded(self):
        labels, clusters = _two_by_three()
        result = Clusters(3, 2, clusters, labels)
        assert [n.id for n in result.neighbours(0)] == [1]
        with_background = Clusters(3, 2, clusters, labels, background=2)
        assert [n.id for n in with_background.neighbours(0)] == [2, 1]
