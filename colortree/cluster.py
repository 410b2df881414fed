"""Cluster, neighbour relation and the finished cluster collection."""
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from colortree.color_metrics import color_diff
from colortree.types import Color

DiffFn = Callable[[Color, Color], int]


@dataclass(frozen=True)
class Cluster:
    """A region of the partition; interior once it has children."""
    id: int
    indices: Tuple[int, ...]  # row-major flat pixel indices, ascending
    color: Color
    perimeter: int = 0  # edges shared with other clusters, image border excluded
    parent: Optional[int] = None
    children: Tuple[int, ...] = ()
    depth: int = 0
    hollow: bool = False
    keyed: bool = False

    @property
    def area(self) -> int:
        return len(self.indices)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def points(self, width: int) -> List[Tuple[int, int]]:
        """Pixel coordinates as (x, y)."""
        return [(i % width, i // width) for i in self.indices]


@dataclass(frozen=True)
class NeighbourInfo:
    """Relation from a cluster to one adjacent cluster."""
    id: int
    diff: int
    border: int


class ColorSum:
    """Running channel totals of a growing cluster."""

    __slots__ = ("r", "g", "b", "count")

    def __init__(self):
        self.r = self.g = self.b = self.count = 0

    def add(self, color: Color) -> None:
        self.r += color[0]
        self.g += color[1]
        self.b += color[2]
        self.count += 1

    def mean(self) -> Color:
        """Rounded mean color; black when empty."""
        n = self.count
        if n == 0:
            return Color(0, 0, 0)
        return Color((self.r + n // 2) // n, (self.g + n // 2) // n, (self.b + n // 2) // n)


def scan_borders(
    indices: Sequence[int],
    labels: Sequence[int],
    width: int,
    height: int,
    own: int,
    borders: Counter
) -> int:
    """
    Count 4-neighbour edges leaving ``own`` for the given pixels.

    Shared border lengths are accumulated into ``borders`` by neighbour id.

    Returns:
        Number of edges to other clusters (image border not counted)
    """
    perimeter = 0
    last_row = (height - 1) * width
    for i in indices:
        x = i % width
        if i >= width:
            other = labels[i - width]
            if other != own:
                borders[other] += 1
                perimeter += 1
        if i < last_row:
            other = labels[i + width]
            if other != own:
                borders[other] += 1
                perimeter += 1
        if x > 0:
            other = labels[i - 1]
            if other != own:
                borders[other] += 1
                perimeter += 1
        if x < width - 1:
            other = labels[i + 1]
            if other != own:
                borders[other] += 1
                perimeter += 1
    return perimeter


def rank_neighbours(
    color: Color,
    borders: Mapping,
    color_of: Callable[[int], Color],
    diff: DiffFn,
    excluded: Callable[[int], bool] = lambda _: False
) -> List[NeighbourInfo]:
    """
    Build the neighbour list of a cluster.

    Ordered by descending shared border, then ascending id, so the first
    entry is the dominant neighbour.
    """
    neighbours = [
        NeighbourInfo(id=nid, diff=diff(color, color_of(nid)), border=border)
        for nid, border in borders.items()
        if not excluded(nid)
    ]
    neighbours.sort(key=lambda n: (-n.border, n.id))
    return neighbours


class Clusters(Mapping):
    """
    Immutable result of a clustering run.

    Maps cluster id to Cluster. Leaf clusters partition the image: every
    pixel belongs to exactly one leaf.
    """

    def __init__(
        self,
        width: int,
        height: int,
        clusters: Dict[int, Cluster],
        labels: Sequence[int],
        background: Optional[int] = None
    ):
        self._width = width
        self._height = height
        self._clusters = MappingProxyType(dict(clusters))
        self._labels = tuple(labels)
        self._background = background
        self._roots = tuple(c.id for c in self._clusters.values() if c.parent is None)
        self._leaves = tuple(c.id for c in self._clusters.values() if c.is_leaf)

    def __getitem__(self, cluster_id: int) -> Cluster:
        return self._clusters[cluster_id]

    def __iter__(self) -> Iterator[int]:
        return iter(self._clusters)

    def __len__(self) -> int:
        return len(self._clusters)

    def __repr__(self) -> str:
        return (f"Clusters({self._width}x{self._height}, {len(self)} clusters, "
                f"{len(self._leaves)} leaves)")

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def roots(self) -> Tuple[int, ...]:
        """Ids of the top of the hierarchy (the base partition)."""
        return self._roots

    @property
    def leaves(self) -> Tuple[int, ...]:
        return self._leaves

    @property
    def output(self) -> Tuple[int, ...]:
        """Leaves meant for drawing; discarded keyed clusters are left out."""
        return tuple(
            cid for cid in self._leaves
            if not self._clusters[cid].keyed or cid == self._background
        )

    @property
    def background(self) -> Optional[int]:
        return self._background

    def pixels(self, cluster_id: int) -> List[Tuple[int, int]]:
        return self._clusters[cluster_id].points(self._width)

    def mask(self, cluster_id: int) -> np.ndarray:
        """(H, W) boolean mask of the cluster's pixels."""
        flat = np.zeros(self._width * self._height, dtype=bool)
        flat[list(self._clusters[cluster_id].indices)] = True
        return flat.reshape(self._height, self._width)

    def label_map(self) -> np.ndarray:
        """(H, W) array of leaf cluster ids."""
        return np.array(self._labels, dtype=np.int64).reshape(self._height, self._width)

    def neighbours(self, cluster_id: int, diff: DiffFn = color_diff) -> List[NeighbourInfo]:
        """
        Neighbours of a leaf in the final partition.

        Discarded keyed clusters are not reported.
        """
        cluster = self._clusters[cluster_id]
        if not cluster.is_leaf:
            raise KeyError(f"Cluster {cluster_id} is not a leaf")
        borders = Counter()
        scan_borders(cluster.indices, self._labels, self._width, self._height,
                     cluster_id, borders)
        return rank_neighbours(
            cluster.color,
            borders,
            lambda nid: self._clusters[nid].color,
            diff,
            excluded=lambda nid: self._clusters[nid].keyed and nid != self._background
        )
