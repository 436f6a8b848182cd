"""Length-weighted point sampling over a subsampled road network.

Roads are kept with a fixed probability in the first pass so that a planet
file fits in memory, their nodes are located in the second pass, and points
are then drawn with probability proportional to physical road length. Where
there are more roads there are more people, so this approximates
population-weighted sampling without population data.
"""

import logging
from typing import Callable, Optional, Sequence

import numpy as np

from ..errors import EmptyRoadNetworkError, UnresolvedNodeError
from ..models import MapElement, has_tag
from .geometry import distance, slerp_array
from .models import LengthIndex, RoadNetwork, SampledPointSet

logger = logging.getLogger(__name__)

DEFAULT_KEEP_PROBABILITY = 0.01
DEFAULT_SAMPLE_COUNT = 10_000_000


def build_length_index(network: RoadNetwork) -> LengthIndex:
    """Compute per-segment lengths and per-road start offsets in road order.

    Raises UnresolvedNodeError if any road references a node whose location
    was never found.
    """
    total_length = 0
    road_offsets = []
    segment_lengths = []
    for road_idx, road in enumerate(network.roads):
        road_offsets.append(total_length)
        segments = []
        for a_id, b_id in zip(road, road[1:]):
            a = network.nodes.get(a_id)
            b = network.nodes.get(b_id)
            if a is None or b is None:
                missing = a_id if a is None else b_id
                raise UnresolvedNodeError(missing, f"road #{road_idx}")
            length = distance(a, b)
            segments.append(length)
            total_length += length
        segment_lengths.append(segments)
    return LengthIndex(
        road_offsets=road_offsets,
        segment_lengths=segment_lengths,
        total_length=total_length,
    )


def locate_offsets(
    index: LengthIndex, offsets: Sequence[int],
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Map offsets along the network to (road, segment, alpha).

    Offsets are sorted first, which lets a single forward sweep of a road
    cursor and a segment cursor place every offset in amortized linear time.
    Returns the sorted offsets along with road indices, segment indices and
    the interpolation fraction within each segment. Alpha is NaN for offsets
    that land on a zero-length segment or a road without segments.
    """
    offsets = np.sort(np.asarray(offsets, dtype=np.int64))
    n = len(offsets)
    road_out = np.zeros(n, dtype=np.int64)
    segment_out = np.zeros(n, dtype=np.int64)
    alpha_out = np.full(n, np.nan)
    if index.num_roads == 0:
        return offsets, road_out, segment_out, alpha_out

    road_offsets = index.road_offsets
    num_roads = index.num_roads
    road_idx = 0
    segment_idx = 0
    consumed = 0
    for i, offset in enumerate(offsets.tolist()):
        while road_idx + 1 < num_roads and road_offsets[road_idx + 1] <= offset:
            road_idx += 1
            segment_idx = 0
            consumed = 0
        segments = index.segment_lengths[road_idx]
        offset_in_road = offset - road_offsets[road_idx]
        while (
            segment_idx + 1 < len(segments)
            and consumed + segments[segment_idx] < offset_in_road
        ):
            consumed += segments[segment_idx]
            segment_idx += 1

        road_out[i] = road_idx
        segment_out[i] = segment_idx
        if segments and segments[segment_idx] > 0:
            alpha_out[i] = (offset_in_road - consumed) / segments[segment_idx]
    return offsets, road_out, segment_out, alpha_out


class RoadSampler:
    """Collects a random subset of roads and samples points along them.

    Moves through three stages: collecting (the two passes), indexed
    (after :meth:`build_index`) and sampled (after :meth:`sample`).
    """

    def __init__(
        self,
        keep_probability: float = DEFAULT_KEEP_PROBABILITY,
        sample_count: int = DEFAULT_SAMPLE_COUNT,
        seed: Optional[int] = None,
    ):
        if not 0 < keep_probability <= 1:
            raise ValueError(f"keep_probability must be in (0, 1], got {keep_probability}")
        if sample_count <= 0:
            raise ValueError(f"sample_count must be positive, got {sample_count}")
        self.keep_probability = keep_probability
        self.sample_count = sample_count
        self.rng = np.random.default_rng(seed)
        self.network = RoadNetwork()
        self.index: Optional[LengthIndex] = None
        self.sampled: Optional[SampledPointSet] = None
        self.roads_seen = 0

    def pass_handlers(self) -> list[Callable[[MapElement], None]]:
        return [self.first_pass, self.second_pass]

    def first_pass(self, element: MapElement) -> None:
        if element.kind != "way" or not has_tag(element.tags, "highway"):
            return
        self.roads_seen += 1
        if self.rng.random() >= self.keep_probability:
            return
        self.network.roads.append(list(element.node_ids))
        self.network.pending.update(element.node_ids)

    def second_pass(self, element: MapElement) -> None:
        if element.kind == "node" and element.id in self.network.pending:
            self.network.nodes[element.id] = element.location

    def build_index(self) -> LengthIndex:
        logger.info(
            "Computing road lengths for %d of %d roads (%d nodes)",
            len(self.network.roads), self.roads_seen, len(self.network.pending),
        )
        self.index = build_length_index(self.network)
        logger.info("Found a total of %dkm of roads", self.index.total_length // 1_000_000)
        return self.index

    def sample(self, offsets: Optional[Sequence[int]] = None) -> SampledPointSet:
        """Draw points proportional to road length.

        Without ``offsets``, ``sample_count`` offsets are drawn uniformly over
        the network. The result is computed once and reused afterwards.
        """
        if self.sampled is not None:
            return self.sampled
        if self.index is None:
            raise ValueError("Build the length index first with build_index().")
        if self.index.total_length <= 0:
            raise EmptyRoadNetworkError(
                f"Road network of {len(self.network.roads)} roads has zero total length"
            )

        if offsets is None:
            offsets = self.rng.integers(
                0, self.index.total_length, size=self.sample_count, dtype=np.int64,
            )
        logger.info("Locating %d offsets on the road network", len(offsets))
        sorted_offsets, roads, segments, alphas = locate_offsets(self.index, offsets)

        valid = np.isfinite(alphas) & (alphas >= 0.0) & (alphas <= 1.0)
        for i in np.flatnonzero(~valid).tolist():
            logger.debug(
                "Invalid alpha %s at offset %d (road %d, segment %d)",
                alphas[i], sorted_offsets[i], roads[i], segments[i],
            )

        keep = np.flatnonzero(valid)
        lat1 = np.empty(len(keep))
        lon1 = np.empty(len(keep))
        lat2 = np.empty(len(keep))
        lon2 = np.empty(len(keep))
        for j, i in enumerate(keep.tolist()):
            road = self.network.roads[roads[i]]
            a = self.network.nodes[road[segments[i]]]
            b = self.network.nodes[road[segments[i] + 1]]
            lat1[j], lon1[j] = a.lat, a.lon
            lat2[j], lon2[j] = b.lat, b.lon

        lats, lons = slerp_array(lat1, lon1, alphas[keep], lat2, lon2)
        finite = np.isfinite(lats) & np.isfinite(lons)
        rejected = len(alphas) - int(np.count_nonzero(finite))
        if rejected:
            logger.warning("Dropped %d of %d samples with an invalid alpha", rejected, len(alphas))

        self.sampled = SampledPointSet(lats=lats[finite], lons=lons[finite], rejected=rejected)
        logger.info("Sampled %d road points", len(self.sampled))
        return self.sampled

    def export(self, sink) -> int:
        """Write the sampled points to ``sink``. Returns the number offered."""
        if self.sampled is None:
            raise ValueError("Sample the road network first with sample().")
        sink.write_arrays(self.sampled.lats, self.sampled.lons)
        return len(self.sampled)
