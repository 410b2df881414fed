"""Hierarchical cluster construction, paced in bounded batches."""
import logging
from collections import Counter, deque
from dataclasses import dataclass, replace
from enum import Enum, auto
from heapq import heappop, heappush
from typing import Callable, Deque, Dict, Iterator, List, Optional, Sequence

from colortree.cluster import (
    Cluster,
    Clusters,
    ColorSum,
    DiffFn,
    NeighbourInfo,
    rank_neighbours,
    scan_borders,
)
from colortree.image import ColorImage
from colortree.keying import KeyingPolicy
from colortree.types import (
    DEFAULT_BATCH_SIZE,
    HIERARCHICAL_MAX,
    ClusteringError,
    Color,
    ConfigurationError,
    KeyingAction,
    StepStatus,
)

logger = logging.getLogger(__name__)

UNASSIGNED = -1

SameFn = Callable[[Color, Color, int], bool]
ClusterPredicate = Callable[["BuilderImpl", Cluster, List[NeighbourInfo]], bool]


@dataclass(frozen=True)
class PolicySet:
    """
    Predicates driving the builder.

    Attributes:
        same: (a, b, depth) -> whether adjacent pixels join at that depth
        diff: (a, b) -> color difference magnitude
        deepen: (builder, cluster, neighbours) -> whether to re-partition
        hollow: (builder, cluster, neighbours) -> hollow flag
        finest_depth: deepest level at which ``same`` still gets stricter.
            A re-partition that finds a single child is retried one level
            deeper until this depth is reached.
    """
    same: SameFn
    diff: DiffFn
    deepen: ClusterPredicate
    hollow: ClusterPredicate
    finest_depth: int = 1


class _Stage(Enum):
    PARTITION = auto()
    REFINE = auto()
    CLASSIFY = auto()
    DONE = auto()


class _Growth:
    """Region growing over the pixels of one region, resumable."""

    def __init__(self, region: int, order: Sequence[int], depth: int, parent: Optional[int]):
        self.region = region  # label carried by pixels not yet grown
        self.order = order
        self.depth = depth
        self.parent = parent
        self.cursor = 0
        self.frontier: Deque[int] = deque()
        self.current: Optional[int] = None
        self.pending: List[int] = []  # heap of the current cluster's members
        self.ordered: List[int] = []
        self.total = ColorSum()
        self.keyed = False
        self.created: List[int] = []

    @property
    def done(self) -> bool:
        return self.current is None and self.cursor >= len(self.order)


class _Restore:
    """Hands the pixels of a one-child re-partition back to the parent."""

    def __init__(self, cluster_id: int, retry_depth: Optional[int]):
        self.cluster_id = cluster_id
        self.retry_depth = retry_depth
        self.cursor = 0


class _Scan:
    """Perimeter and neighbour border accumulation for one cluster."""

    def __init__(self, cluster_id: int):
        self.cluster_id = cluster_id
        self.cursor = 0
        self.perimeter = 0
        self.borders = Counter()


class BuilderImpl:
    """
    Mutable construction state.

    Advanced only through ``step``; consumed by ``finalize``.
    """

    def __init__(
        self,
        image: ColorImage,
        policies: PolicySet,
        diagonal: bool = False,
        hierarchical: int = HIERARCHICAL_MAX,
        batch_size: int = DEFAULT_BATCH_SIZE,
        keying: KeyingPolicy = KeyingPolicy()
    ):
        if batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {batch_size}")
        self.width = image.width
        self.height = image.height
        self.colors = image.colors()
        self.policies = policies
        self.diagonal = diagonal
        self.hierarchical = hierarchical
        self.batch_size = batch_size
        self.keying = keying

        self.labels = [UNASSIGNED] * (self.width * self.height)
        self.clusters: Dict[int, Cluster] = {}
        self._next_id = 0
        self._splits = 0
        self._background: Optional[int] = None
        self._background_pixels: List[int] = []

        self._stage = _Stage.PARTITION
        self._growth: Optional[_Growth] = _Growth(
            UNASSIGNED, range(len(self.labels)), depth=0, parent=None
        )
        self._restore: Optional[_Restore] = None
        self._scan: Optional[_Scan] = None
        self._candidates: Deque[int] = deque()
        self._evaluated = 0
        self._pending_hollow = False
        self._classify_cursor = 0
        self._consumed = False

        if diagonal:
            self._offsets = [(-1, -1), (0, -1), (1, -1), (-1, 0),
                             (1, 0), (-1, 1), (0, 1), (1, 1)]
        else:
            self._offsets = [(0, -1), (-1, 0), (1, 0), (0, 1)]

    # -- queries usable by predicates ------------------------------------

    def cluster(self, cluster_id: int) -> Cluster:
        return self.clusters[cluster_id]

    @property
    def finished(self) -> bool:
        return self._stage is _Stage.DONE

    @property
    def progress(self) -> int:
        """Rough completion estimate, 0..100."""
        if self._stage is _Stage.PARTITION:
            total = len(self.labels)
            return 50 * self._growth.cursor // total if total else 50
        if self._stage is _Stage.REFINE:
            active = 1 if (self._scan or self._growth or self._restore) else 0
            remaining = len(self._candidates) + active
            return 50 + 40 * self._evaluated // max(self._evaluated + remaining, 1)
        if self._stage is _Stage.CLASSIFY:
            return 90 + 10 * self._classify_cursor // max(self._next_id, 1)
        return 100

    # -- scheduling ------------------------------------------------------

    def step(self) -> StepStatus:
        """Perform at most ``batch_size`` units of work, mostly pixel visits."""
        if self._consumed:
            raise ClusteringError("Builder has already been finalized")
        budget = self.batch_size
        while budget > 0 and self._stage is not _Stage.DONE:
            if self._stage is _Stage.PARTITION:
                budget -= self._partition(budget)
            elif self._stage is _Stage.REFINE:
                budget -= self._refine(budget)
            else:
                budget -= self._classify(budget)
        return StepStatus.FINISHED if self.finished else StepStatus.PENDING

    def finalize(self) -> Clusters:
        if self._consumed:
            raise ClusteringError("Builder has already been finalized")
        if not self.finished:
            raise ClusteringError("Builder has pending work; step it to completion first")
        self._consumed = True
        clusters = dict(sorted(self.clusters.items()))
        result = Clusters(self.width, self.height, clusters, self.labels, self._background)
        logger.info(f"Clustering finished: {len(result)} clusters, {len(result.leaves)} leaves")
        self.clusters = {}
        self.labels = []
        return result

    # -- region growing --------------------------------------------------

    def _adjacent(self, i: int) -> Iterator[int]:
        x = i % self.width
        y = i // self.width
        for dx, dy in self._offsets:
            nx, ny = x + dx, y + dy
            if 0 <= nx < self.width and 0 <= ny < self.height:
                yield ny * self.width + nx

    def _allocate(self) -> int:
        cid = self._next_id
        self._next_id += 1
        return cid

    def _grow(self, budget: int) -> int:
        """Advance the active growth; returns work units used."""
        job = self._growth
        labels = self.labels
        colors = self.colors
        same = self.policies.same
        used = 0
        while used < budget:
            if job.frontier:
                i = job.frontier.popleft()
                used += 1
                color = colors[i]
                for j in self._adjacent(i):
                    if labels[j] != job.region:
                        continue
                    other = colors[j]
                    if self.keying.can_join(color, other) and same(color, other, job.depth):
                        labels[j] = job.current
                        heappush(job.pending, j)
                        job.total.add(other)
                        job.frontier.append(j)
            elif job.current is not None:
                used += self._close_cluster(job, budget - used)
            elif job.cursor < len(job.order):
                i = job.order[job.cursor]
                job.cursor += 1
                used += 1
                if labels[i] != job.region:
                    continue
                color = colors[i]
                if job.parent is None and self.keying.gathers_background \
                        and self.keying.is_key(color):
                    if self._background is None:
                        self._background = self._allocate()
                    labels[i] = self._background
                    self._background_pixels.append(i)
                    continue
                job.current = self._allocate()
                job.keyed = self.keying.discards and self.keying.is_key(color)
                job.pending = [i]
                job.ordered = []
                job.total = ColorSum()
                job.total.add(color)
                job.frontier.append(i)
                labels[i] = job.current
            else:
                break
        return used

    def _close_cluster(self, job: _Growth, budget: int) -> int:
        """Drain the member heap in index order; returns pops used."""
        count = min(budget, len(job.pending))
        job.ordered.extend(heappop(job.pending) for _ in range(count))
        if job.pending:
            return count
        cid = job.current
        self.clusters[cid] = Cluster(
            id=cid,
            indices=tuple(job.ordered),
            color=job.total.mean(),
            parent=job.parent,
            depth=job.depth,
            keyed=job.keyed,
        )
        job.created.append(cid)
        if job.parent is None and not job.keyed:
            self._candidates.append(cid)
        job.current = None
        job.ordered = []
        return count

    # -- stages ----------------------------------------------------------

    def _partition(self, budget: int) -> int:
        used = self._grow(budget)
        if self._growth.done:
            if self._background is not None:
                self.clusters[self._background] = Cluster(
                    id=self._background,
                    indices=tuple(self._background_pixels),
                    color=self.keying.key_color,
                    keyed=True,
                )
                self._background_pixels = []
            self._growth = None
            self._stage = _Stage.REFINE
            logger.info(f"Base partition: {len(self.clusters)} clusters "
                        f"({self.width}x{self.height})")
        return used

    def _refine(self, budget: int) -> int:
        if self._growth is not None:
            used = self._grow(budget)
            if self._growth.done:
                self._settle_deepening()
            return used
        if self._restore is not None:
            return self._advance_restore(budget)
        if self._scan is not None:
            used = self._advance_scan(budget)
            if self._scan_complete():
                self._evaluate()
            return used
        if self._candidates:
            cid = self._candidates.popleft()
            if self.clusters[cid].depth >= self.hierarchical:
                self._evaluated += 1
                return 1
            self._scan = _Scan(cid)
            return 0
        self._stage = _Stage.CLASSIFY
        logger.info(f"Refinement done: {len(self.clusters)} clusters, "
                    f"{len(self.clusters) - self._splits} leaves")
        return 0

    def _classify(self, budget: int) -> int:
        if self._scan is not None:
            used = self._advance_scan(budget)
            if self._scan_complete():
                scan = self._scan
                self._scan = None
                cluster = self.clusters[scan.cluster_id]
                neighbours = self._neighbours(cluster, scan.borders)
                cluster = replace(cluster, perimeter=scan.perimeter)
                hollow = not cluster.keyed and self.policies.hollow(self, cluster, neighbours)
                self.clusters[cluster.id] = replace(cluster, hollow=bool(hollow))
            return used
        # ids are dense: rollbacks release theirs
        if self._classify_cursor < self._next_id:
            cid = self._classify_cursor
            self._classify_cursor += 1
            if self.clusters[cid].is_leaf:
                self._scan = _Scan(cid)
                return 0
            return 1
        self._stage = _Stage.DONE
        return 0

    # -- neighbour scans -------------------------------------------------

    def _advance_scan(self, budget: int) -> int:
        scan = self._scan
        indices = self.clusters[scan.cluster_id].indices
        chunk = indices[scan.cursor:scan.cursor + budget]
        scan.perimeter += scan_borders(
            chunk, self.labels, self.width, self.height, scan.cluster_id, scan.borders
        )
        scan.cursor += len(chunk)
        return len(chunk)

    def _scan_complete(self) -> bool:
        return self._scan.cursor >= self.clusters[self._scan.cluster_id].area

    def _excluded(self, cluster_id: int) -> bool:
        return self.clusters[cluster_id].keyed and cluster_id != self._background

    def _neighbours(self, cluster: Cluster, borders: Counter) -> List[NeighbourInfo]:
        return rank_neighbours(
            cluster.color,
            borders,
            lambda nid: self.clusters[nid].color,
            self.policies.diff,
            excluded=self._excluded,
        )

    # -- deepening -------------------------------------------------------

    def _evaluate(self) -> None:
        scan = self._scan
        self._scan = None
        self._evaluated += 1
        cluster = replace(self.clusters[scan.cluster_id], perimeter=scan.perimeter)
        self.clusters[cluster.id] = cluster
        neighbours = self._neighbours(cluster, scan.borders)
        if not self.policies.deepen(self, cluster, neighbours):
            return
        logger.debug(f"Deepening cluster {cluster.id} (area {cluster.area}, depth {cluster.depth})")
        self._pending_hollow = bool(self.policies.hollow(self, cluster, neighbours))
        self._growth = _Growth(
            cluster.id, cluster.indices, depth=cluster.depth + 1, parent=cluster.id
        )

    def _settle_deepening(self) -> None:
        job = self._growth
        self._growth = None
        parent = self.clusters[job.parent]
        if len(job.created) < 2:
            # Nothing found at this level: release the ids and restore the
            # labels. A finer level is tried while `same` still tightens.
            for cid in job.created:
                del self.clusters[cid]
            if job.created:
                self._next_id = job.created[0]
            retry = None
            if job.depth < min(self.policies.finest_depth, self.hierarchical):
                retry = job.depth + 1
            self._restore = _Restore(parent.id, retry)
            return
        self.clusters[parent.id] = replace(
            parent, children=tuple(job.created), hollow=self._pending_hollow
        )
        self._splits += 1
        self._candidates.extend(job.created)
        logger.debug(f"Cluster {parent.id} split into {len(job.created)} children "
                     f"at depth {job.depth}")

    def _advance_restore(self, budget: int) -> int:
        restore = self._restore
        cluster = self.clusters[restore.cluster_id]
        chunk = cluster.indices[restore.cursor:restore.cursor + budget]
        labels = self.labels
        for i in chunk:
            labels[i] = cluster.id
        restore.cursor += len(chunk)
        if restore.cursor >= cluster.area:
            self._restore = None
            if restore.retry_depth is not None:
                self._growth = _Growth(
                    cluster.id, cluster.indices, depth=restore.retry_depth, parent=cluster.id
                )
        return len(chunk)


class IncrementalBuilder:
    """Resumable handle over a BuilderImpl."""

    def __init__(self, impl: BuilderImpl):
        self._impl = impl

    @property
    def progress(self) -> int:
        return self._impl.progress

    @property
    def finished(self) -> bool:
        return self._impl.finished

    def step(self) -> StepStatus:
        return self._impl.step()

    def result(self) -> Clusters:
        return self._impl.finalize()

    def run(self) -> Clusters:
        while self.step() is StepStatus.PENDING:
            pass
        return self.result()


class Builder:
    """Fluent assembly of a BuilderImpl."""

    def __init__(self):
        self._image: Optional[ColorImage] = None
        self._diagonal = False
        self._hierarchical = HIERARCHICAL_MAX
        self._batch_size = DEFAULT_BATCH_SIZE
        self._keying = KeyingPolicy()
        self._same: Optional[SameFn] = None
        self._diff: Optional[DiffFn] = None
        self._deepen: Optional[ClusterPredicate] = None
        self._hollow: Optional[ClusterPredicate] = None
        self._finest_depth = 1

    def from_image(self, image: ColorImage) -> "Builder":
        self._image = image
        return self

    def diagonal(self, diagonal: bool) -> "Builder":
        self._diagonal = diagonal
        return self

    def hierarchical(self, hierarchical: int) -> "Builder":
        self._hierarchical = hierarchical
        return self

    def batch_size(self, batch_size: int) -> "Builder":
        self._batch_size = batch_size
        return self

    def key(self, key_color: Color) -> "Builder":
        self._keying = replace(self._keying, key_color=Color(*key_color))
        return self

    def keying_action(self, action: KeyingAction) -> "Builder":
        self._keying = replace(self._keying, action=action)
        return self

    def same(self, fn: SameFn) -> "Builder":
        self._same = fn
        return self

    def diff(self, fn: DiffFn) -> "Builder":
        self._diff = fn
        return self

    def deepen(self, fn: ClusterPredicate) -> "Builder":
        self._deepen = fn
        return self

    def hollow(self, fn: ClusterPredicate) -> "Builder":
        self._hollow = fn
        return self

    def finest_depth(self, depth: int) -> "Builder":
        self._finest_depth = depth
        return self

    def policies(self, policies: PolicySet) -> "Builder":
        self._same = policies.same
        self._diff = policies.diff
        self._deepen = policies.deepen
        self._hollow = policies.hollow
        self._finest_depth = policies.finest_depth
        return self

    def build(self) -> BuilderImpl:
        if self._image is None:
            raise ConfigurationError("Builder has no image")
        missing = [
            name for name, fn in (("same", self._same), ("diff", self._diff),
                                  ("deepen", self._deepen), ("hollow", self._hollow))
            if fn is None
        ]
        if missing:
            raise ConfigurationError(f"Builder is missing policies: {', '.join(missing)}")
        return BuilderImpl(
            self._image,
            PolicySet(self._same, self._diff, self._deepen, self._hollow, self._finest_depth),
            diagonal=self._diagonal,
            hierarchical=self._hierarchical,
            batch_size=self._batch_size,
            keying=self._keying,
        )

    def start(self) -> IncrementalBuilder:
        return IncrementalBuilder(self.build())

    def run(self) -> Clusters:
        return self.start().run()
