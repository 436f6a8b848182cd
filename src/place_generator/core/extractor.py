"""Point extraction for features matching a tag, e.g. brand=McDonald's."""

import logging
from typing import Callable, Optional

from ..models import MapElement, TagFilter
from .models import ExtractedPointSet

logger = logging.getLogger(__name__)


class TagPointExtractor:
    """Collects the locations of every node and way matching a tag filter.

    Nodes are recorded directly in the first pass. A matching way stands in
    for a point-like feature (a shop's building outline, say) and is
    approximated by its first node, whose location is only known after the
    second pass.
    """

    def __init__(self, name: str, key: str, value: Optional[str] = None):
        self.name = name
        self.filter = TagFilter(key=key, value=value)
        self.state = ExtractedPointSet()
        self.node_matches = 0

    def pass_handlers(self) -> list[Callable[[MapElement], None]]:
        return [self.first_pass, self.second_pass]

    def first_pass(self, element: MapElement) -> None:
        if element.kind == "node":
            for key, value in element.tags:
                if self.filter.matches(key, value):
                    self.state.points.append(element.location)
                    self.node_matches += 1
        elif element.kind == "way":
            for key, value in element.tags:
                if not self.filter.matches(key, value):
                    continue
                if not element.node_ids:
                    logger.debug("Way %d matches %s but has no nodes", element.id, self.name)
                    continue
                first = element.node_ids[0]
                self.state.pending[first] = self.state.pending.get(first, 0) + 1

    def second_pass(self, element: MapElement) -> None:
        if element.kind == "node" and element.id in self.state.pending:
            location = element.location
            for _ in range(self.state.pending[element.id]):
                self.state.points.append(location)

    @property
    def points(self):
        return self.state.points

    def export(self, sink) -> int:
        """Write every recorded point to ``sink``. Returns the count written."""
        logger.info(
            "Exporting %d %s points (%d from nodes, %d pending way nodes)",
            len(self.state.points), self.name, self.node_matches, sum(self.state.pending.values()),
        )
        for point in self.state.points:
            sink.write(point)
        return len(self.state.points)
