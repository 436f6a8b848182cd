"""Replayable OpenStreetMap element sources.

A source is asked to replay the whole dataset once per pass. The osmium
source re-reads the file from the start each time; the memory source replays
a fixed list and exists for fixtures and small extracts.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Callable, Iterable, Optional

import osmium

from ..errors import DatasetError
from ..models import MapElement, Member, Node, Relation, Way

logger = logging.getLogger(__name__)

ElementCallback = Callable[[MapElement], None]
ProgressCallback = Callable[[int, Optional[int]], None]

_MEMBER_KINDS = {"n": "node", "w": "way", "r": "relation"}


class ElementSource(ABC):
    """Replays a dataset as Node, Way and Relation models."""

    def __init__(self, expected_nodes: Optional[int] = None, progress_every: int = 1_000_000):
        self.expected_nodes = expected_nodes
        self.progress_every = progress_every

    @abstractmethod
    def _replay(self, callback: ElementCallback) -> None:
        """Feed every element of the dataset, in file order, to ``callback``."""
        pass

    def for_each(self, callback: ElementCallback, progress: Optional[ProgressCallback] = None) -> int:
        """Run one full pass over the dataset. Returns the number of nodes seen."""
        nodes_seen = 0

        def on_element(element: MapElement) -> None:
            nonlocal nodes_seen
            callback(element)
            if element.kind == "node":
                nodes_seen += 1
                if progress is not None and nodes_seen % self.progress_every == 0:
                    progress(nodes_seen, self.expected_nodes)

        self._replay(on_element)
        if progress is not None:
            progress(nodes_seen, self.expected_nodes)
        return nodes_seen


class MemoryElementSource(ElementSource):
    """A source over an in-memory list of elements."""

    def __init__(self, elements: Iterable[MapElement], **kwargs):
        super().__init__(**kwargs)
        self.elements = list(elements)
        self.passes = 0

    def _replay(self, callback: ElementCallback) -> None:
        self.passes += 1
        for element in self.elements:
            callback(element)


class _ElementHandler(osmium.SimpleHandler):
    """Copies osmium's transient objects into element models."""

    def __init__(self, callback: ElementCallback):
        super().__init__()
        self.callback = callback
        self.invalid_locations = 0

    def node(self, n):
        if not n.location.valid():
            self.invalid_locations += 1
            return
        self.callback(Node.model_construct(
            id=n.id, kind="node",
            lat=n.location.lat, lon=n.location.lon,
            tags=[(t.k, t.v) for t in n.tags],
        ))

    def way(self, w):
        self.callback(Way.model_construct(
            id=w.id, kind="way",
            node_ids=[nd.ref for nd in w.nodes],
            tags=[(t.k, t.v) for t in w.tags],
        ))

    def relation(self, r):
        members = [
            Member.model_construct(ref=m.ref, kind=_MEMBER_KINDS[m.type], role=m.role)
            for m in r.members
        ]
        self.callback(Relation.model_construct(
            id=r.id, kind="relation",
            members=members,
            tags=[(t.k, t.v) for t in r.tags],
        ))


class OsmiumElementSource(ElementSource):
    """Reads a .osm.pbf (or any format osmium understands) once per pass."""

    def __init__(self, path: str, **kwargs):
        super().__init__(**kwargs)
        self.path = str(path)

    def _replay(self, callback: ElementCallback) -> None:
        if not os.path.isfile(self.path):
            raise DatasetError(f"Dataset not found: {self.path}")
        handler = _ElementHandler(callback)
        try:
            # Node locations come from the node records themselves, no location index needed.
            handler.apply_file(self.path, locations=False)
        except RuntimeError as exc:
            raise DatasetError(f"Could not read dataset {self.path}: {exc}") from exc
        if handler.invalid_locations:
            logger.warning(
                "Skipped %d nodes without a valid location in %s",
                handler.invalid_locations, self.path,
            )


class ElementCounter:
    """Tallies element kinds seen during a pass."""

    def __init__(self):
        self.nodes = 0
        self.ways = 0
        self.relations = 0

    def process(self, element: MapElement) -> None:
        if element.kind == "node":
            self.nodes += 1
        elif element.kind == "way":
            self.ways += 1
        else:
            self.relations += 1

    def log_summary(self) -> None:
        logger.info(
            "Dataset holds %d nodes, %d ways and %d relations",
            self.nodes, self.ways, self.relations,
        )
