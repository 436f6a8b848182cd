"""Fatal pipeline errors.

Each of these means the input broke an assumption the extraction depends on,
so the run aborts instead of writing partial output.
"""


class PlaceGeneratorError(Exception):
    """Base class for errors that abort a generation run."""


class DatasetError(PlaceGeneratorError):
    """The map dataset could not be opened or decoded."""


class UnresolvedNodeError(PlaceGeneratorError):
    """A node id collected in an earlier pass was never resolved to a location."""

    def __init__(self, node_id: int, context: str = ""):
        self.node_id = node_id
        msg = f"Node {node_id} was referenced but never resolved"
        if context:
            msg += f" ({context})"
        super().__init__(msg)


class EmptyRoadNetworkError(PlaceGeneratorError):
    """Sampling was requested from a road network of zero total length."""


class UnsupportedBoundaryError(PlaceGeneratorError):
    """A boundary relation uses a member topology the polygon filter can't assemble."""
