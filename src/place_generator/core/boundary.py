"""Administrative boundary reconstruction and polygon containment.

A boundary relation references ways, which reference nodes, and none of the
three are stored next to each other in the file. The resolver therefore needs
three passes: relations name their ways, ways name their nodes, and nodes
finally give locations.
"""

import bisect
import logging
from typing import Callable, Iterable, Optional

import numpy as np

from ..errors import UnsupportedBoundaryError
from ..models import GeoPoint, MapElement, has_tag, tag_value
from .geometry import Edge, count_crossings, point_in_polygon
from .models import BoundaryRelation

logger = logging.getLogger(__name__)

POLYGON_ROLES = ("outer", "inner")


class BoundaryFilter:
    """Inside/outside test against an unordered set of boundary edges.

    Edges are kept sorted by their western endpoint so a query only scans
    edges that start west of it. An empty filter contains nothing.
    """

    def __init__(self, edges: Iterable[Edge] = (), name: str = ""):
        self.name = name
        self.edges = sorted(edges, key=lambda e: min(e[0].lon, e[1].lon))
        self._min_lons = [min(p1.lon, p2.lon) for p1, p2 in self.edges]
        self._lat1 = np.array([p1.lat for p1, _ in self.edges], dtype=float)
        self._lon1 = np.array([p1.lon for p1, _ in self.edges], dtype=float)
        self._lat2 = np.array([p2.lat for _, p2 in self.edges], dtype=float)
        self._lon2 = np.array([p2.lon for _, p2 in self.edges], dtype=float)

    @classmethod
    def empty(cls, name: str = "") -> "BoundaryFilter":
        return cls((), name=name)

    def __len__(self) -> int:
        return len(self.edges)

    def is_empty(self) -> bool:
        return not self.edges

    def _candidates(self, lon: float) -> int:
        # Edges whose western end is at or east of the query can never straddle it.
        return bisect.bisect_left(self._min_lons, lon)

    def contains(self, point: GeoPoint) -> bool:
        return point_in_polygon(point, self.edges[:self._candidates(point.lon)])

    def contains_many(self, lats, lons) -> np.ndarray:
        """Vectorized :meth:`contains` over arrays of latitudes and longitudes."""
        lats = np.asarray(lats, dtype=float)
        lons = np.asarray(lons, dtype=float)
        result = np.zeros(lats.shape, dtype=bool)
        for i, (lat, lon) in enumerate(zip(lats.tolist(), lons.tolist())):
            end = self._candidates(lon)
            if end == 0:
                continue
            crossings = count_crossings(
                lat, lon,
                self._lat1[:end], self._lon1[:end], self._lat2[:end], self._lon2[:end],
            )
            result[i] = crossings % 2 == 1
        return result


class BoundaryResolver:
    """Collects administrative boundaries over three passes.

    If ``relation_ids`` is given only those relations are kept, which keeps
    way and node lookups down to the regions actually exported.
    """

    def __init__(self, relation_ids: Optional[Iterable[int]] = None):
        self.wanted = set(relation_ids) if relation_ids is not None else None
        self.relations: dict[int, BoundaryRelation] = {}
        self.way_ids: set[int] = set()
        self.ways: dict[int, list[int]] = {}
        self.node_ids: set[int] = set()
        self.nodes: dict[int, GeoPoint] = {}

    def pass_handlers(self) -> list[Callable[[MapElement], None]]:
        return [self.find_boundaries, self.find_node_ids, self.find_nodes]

    def find_boundaries(self, element: MapElement) -> None:
        if element.kind != "relation":
            return
        if not has_tag(element.tags, "boundary", "administrative"):
            return
        if self.wanted is not None and element.id not in self.wanted:
            return

        way_ids = []
        seen = set()
        for member in element.members:
            if member.role not in POLYGON_ROLES:
                continue
            if member.kind == "relation":
                raise UnsupportedBoundaryError(
                    f"Boundary relation {element.id} has relation {member.ref} "
                    f"as an {member.role} member"
                )
            if member.kind != "way":
                logger.debug(
                    "Ignoring %s member %d of boundary relation %d",
                    member.kind, member.ref, element.id,
                )
                continue
            # A repeated way would cancel its own crossings.
            if member.ref in seen:
                continue
            seen.add(member.ref)
            way_ids.append(member.ref)

        relation = BoundaryRelation(
            id=element.id, name=tag_value(element.tags, "name"), way_ids=way_ids,
        )
        self.relations[relation.id] = relation
        self.way_ids.update(way_ids)
        logger.debug("Found boundary %d (%s) with %d ways", relation.id, relation.name, len(way_ids))

    def find_node_ids(self, element: MapElement) -> None:
        if element.kind == "way" and element.id in self.way_ids:
            self.ways[element.id] = list(element.node_ids)
            self.node_ids.update(element.node_ids)

    def find_nodes(self, element: MapElement) -> None:
        if element.kind == "node" and element.id in self.node_ids:
            self.nodes[element.id] = element.location

    def filter(self, relation_id: int) -> BoundaryFilter:
        """Build a containment filter for one relation.

        The ways are not stitched into rings; every consecutive node pair
        becomes an edge, which the even-odd rule handles in any order. An
        unknown or partially resolved relation yields an empty filter.
        """
        relation = self.relations.get(relation_id)
        if relation is None:
            logger.warning("Unknown boundary relation %d, filter will match nothing", relation_id)
            return BoundaryFilter.empty()

        edges = []
        for way_id in relation.way_ids:
            node_ids = self.ways.get(way_id)
            if node_ids is None:
                logger.warning(
                    "Way %d of boundary %d (%s) was not found, filter will match nothing",
                    way_id, relation_id, relation.name,
                )
                return BoundaryFilter.empty(relation.name)
            for a_id, b_id in zip(node_ids, node_ids[1:]):
                a = self.nodes.get(a_id)
                b = self.nodes.get(b_id)
                if a is None or b is None:
                    logger.warning(
                        "Node %d of boundary %d (%s) was not found, filter will match nothing",
                        a_id if a is None else b_id, relation_id, relation.name,
                    )
                    return BoundaryFilter.empty(relation.name)
                edges.append((a, b))

        logger.info("Boundary %d (%s) has %d edges", relation_id, relation.name, len(edges))
        return BoundaryFilter(edges, name=relation.name)
