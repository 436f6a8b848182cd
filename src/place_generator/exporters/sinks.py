"""Point sinks and the wrappers that compose them."""

from abc import ABC, abstractmethod
from typing import Iterable, TextIO

import numpy as np

from ..core.boundary import BoundaryFilter
from ..models import GeoPoint


class PointSink(ABC):
    """Anything that accepts points, one at a time or as arrays."""

    @abstractmethod
    def write(self, point: GeoPoint) -> None:
        pass

    def write_arrays(self, lats, lons) -> int:
        """Write points given as parallel latitude and longitude arrays.

        Returns the number of points written.
        """
        count = 0
        for lat, lon in zip(np.asarray(lats).tolist(), np.asarray(lons).tolist()):
            self.write(GeoPoint.fast(lat, lon))
            count += 1
        return count

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class TeeSink(PointSink):
    """Passes points through unchanged and logs each one as "lat,lon" text."""

    def __init__(self, inner: PointSink, text: TextIO):
        self.inner = inner
        self.text = text

    def write(self, point: GeoPoint) -> None:
        self.text.write(f"{point.lat},{point.lon}\n")
        self.inner.write(point)

    def write_arrays(self, lats, lons) -> int:
        lats = np.asarray(lats)
        lons = np.asarray(lons)
        self.text.writelines(
            f"{lat},{lon}\n" for lat, lon in zip(lats.tolist(), lons.tolist())
        )
        return self.inner.write_arrays(lats, lons)

    def close(self) -> None:
        self.text.flush()
        self.inner.close()


class BoundaryGatedSink(PointSink):
    """Forwards a point only if one of the boundary filters contains it.

    Several filters form a union, e.g. the countries of a continent.
    """

    def __init__(self, inner: PointSink, filters: Iterable[BoundaryFilter]):
        self.inner = inner
        self.filters = list(filters)
        self.accepted = 0
        self.dropped = 0

    def accepts(self, point: GeoPoint) -> bool:
        return any(f.contains(point) for f in self.filters)

    def accepts_many(self, lats, lons) -> np.ndarray:
        """Boolean mask of the points inside at least one filter."""
        lats = np.asarray(lats, dtype=float)
        lons = np.asarray(lons, dtype=float)
        inside = np.zeros(lats.shape, dtype=bool)
        for f in self.filters:
            # Only points no earlier filter accepted need testing.
            todo = ~inside
            if not todo.any():
                break
            inside[todo] = f.contains_many(lats[todo], lons[todo])
        return inside

    def write(self, point: GeoPoint) -> None:
        if self.accepts(point):
            self.accepted += 1
            self.inner.write(point)
        else:
            self.dropped += 1

    def write_arrays(self, lats, lons) -> int:
        lats = np.asarray(lats)
        lons = np.asarray(lons)
        mask = self.accepts_many(lats, lons)
        kept = int(mask.sum())
        self.accepted += kept
        self.dropped += len(mask) - kept
        return self.inner.write_arrays(lats[mask], lons[mask])

    def close(self) -> None:
        self.inner.close()
