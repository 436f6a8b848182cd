"""Random locations drawn from generated point files.

This is the reading side of the point file format, used by whatever picks
places to show a player. Unknown dataset names fall back to ``world``.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Mapping, Optional, Union

import numpy as np

from .exporters.binary import read_point_arrays
from .models import GeoPoint

logger = logging.getLogger(__name__)

DEFAULT_DATASET = "world"


class LocationGenerator(ABC):

    @abstractmethod
    def sample_from_dataset(self, dataset: str) -> GeoPoint:
        pass


class DatafileLocationGenerator(LocationGenerator):
    """Holds each dataset's points in memory and draws one uniformly."""

    def __init__(
        self,
        datasets: Mapping[str, tuple[np.ndarray, np.ndarray]],
        default: str = DEFAULT_DATASET,
        seed: Optional[int] = None,
    ):
        if default not in datasets:
            raise ValueError(f"Default dataset '{default}' is not loaded")
        for name, (lats, _) in datasets.items():
            if len(lats) == 0:
                raise ValueError(f"Dataset '{name}' has no points")
        self.datasets = dict(datasets)
        self.default = default
        self.rng = np.random.default_rng(seed)

    @classmethod
    def from_datafiles(
        cls,
        files: Mapping[str, Union[str, os.PathLike]],
        default: str = DEFAULT_DATASET,
        seed: Optional[int] = None,
    ) -> "DatafileLocationGenerator":
        datasets = {}
        for name, path in files.items():
            datasets[name] = read_point_arrays(path)
            logger.info("Loaded %d points for dataset %s from %s", len(datasets[name][0]), name, path)
        return cls(datasets, default=default, seed=seed)

    def sample_from_dataset(self, dataset: str) -> GeoPoint:
        if dataset not in self.datasets:
            logger.debug("Unknown dataset %s, using %s", dataset, self.default)
            dataset = self.default
        lats, lons = self.datasets[dataset]
        idx = int(self.rng.integers(len(lats)))
        return GeoPoint(lat=float(lats[idx]), lon=float(lons[idx]))


class MockLocationGenerator(LocationGenerator):
    """Always returns the same place, for tests of code that consumes locations."""

    def __init__(self, point: GeoPoint = GeoPoint(lat=30.0, lon=98.0)):
        self.point = point

    def sample_from_dataset(self, dataset: str) -> GeoPoint:
        return self.point
