"""Binary point files: headerless little-endian float32 (lat, lon) records."""

import os
import struct
from typing import BinaryIO, Union

import numpy as np

from ..models import GeoPoint
from .sinks import PointSink

RECORD = struct.Struct("<ff")
RECORD_SIZE = RECORD.size
RECORD_DTYPE = np.dtype([("lat", "<f4"), ("lon", "<f4")])


class BinaryPointSink(PointSink):
    """Appends one 8-byte record per point.

    The file has no header or count; its length alone gives the number of
    records. A path is opened (and later closed) by the sink, an already open
    binary stream is only flushed on close.
    """

    def __init__(self, target: Union[str, os.PathLike, BinaryIO]):
        if isinstance(target, (str, os.PathLike)):
            self.stream = open(target, "wb")
            self._owns_stream = True
        else:
            self.stream = target
            self._owns_stream = False
        self.count = 0

    def write(self, point: GeoPoint) -> None:
        self.stream.write(RECORD.pack(point.lat, point.lon))
        self.count += 1

    def write_arrays(self, lats, lons) -> int:
        records = np.empty(len(lats), dtype=RECORD_DTYPE)
        records["lat"] = lats
        records["lon"] = lons
        self.stream.write(records.tobytes())
        self.count += len(records)
        return len(records)

    def close(self) -> None:
        if self._owns_stream:
            self.stream.close()
        else:
            self.stream.flush()


def read_point_arrays(path: Union[str, os.PathLike]) -> tuple[np.ndarray, np.ndarray]:
    """Load a point file as float32 latitude and longitude arrays."""
    size = os.path.getsize(path)
    if size % RECORD_SIZE:
        raise ValueError(
            f"{path} is {size} bytes, not a whole number of {RECORD_SIZE}-byte records"
        )
    records = np.fromfile(path, dtype=RECORD_DTYPE)
    return records["lat"], records["lon"]


def read_points(path: Union[str, os.PathLike]) -> list[GeoPoint]:
    lats, lons = read_point_arrays(path)
    return [GeoPoint.fast(lat, lon) for lat, lon in zip(lats.tolist(), lons.tolist())]
