"""Pydantic state and result models for the extraction components."""

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from place_generator.models import GeoPoint


class ExtractedPointSet(BaseModel):
    """Points matched so far plus node ids still waiting for a location.

    ``pending`` maps each waiting node id to the number of times it was referenced.
    """
    points: list[GeoPoint] = Field(default_factory=list)
    pending: dict[int, int] = Field(default_factory=dict)


class RoadNetwork(BaseModel):
    """Kept roads as node-id lists and the locations of the nodes they use."""
    roads: list[list[int]] = Field(default_factory=list)
    pending: set[int] = Field(default_factory=set)
    nodes: dict[int, GeoPoint] = Field(default_factory=dict)


class BoundaryRelation(BaseModel):
    id: int
    name: str = ""
    way_ids: list[int] = Field(default_factory=list)


class LengthIndex(BaseModel):
    """Cumulative length table over a road network, in millimetres."""
    road_offsets: list[int]
    segment_lengths: list[list[int]]
    total_length: int = Field(ge=0)

    @field_validator("segment_lengths")
    @classmethod
    def segment_lengths_must_be_non_negative(cls, v: list[list[int]]) -> list[list[int]]:
        for i, segments in enumerate(v):
            for length in segments:
                if length < 0:
                    raise ValueError(f"Road {i} has negative segment length {length}")
        return v

    @model_validator(mode="after")
    def offsets_must_accumulate_lengths(self) -> "LengthIndex":
        if len(self.road_offsets) != len(self.segment_lengths):
            raise ValueError(
                f"{len(self.road_offsets)} road offsets for "
                f"{len(self.segment_lengths)} roads"
            )
        running = 0
        for i, (offset, segments) in enumerate(zip(self.road_offsets, self.segment_lengths)):
            if offset != running:
                raise ValueError(f"Road {i} starts at {offset}, expected {running}")
            running += sum(segments)
        if running != self.total_length:
            raise ValueError(
                f"total_length is {self.total_length} but segments sum to {running}"
            )
        return self

    @property
    def num_roads(self) -> int:
        return len(self.road_offsets)


class SampledPointSet(BaseModel):
    """Points drawn from a road network, materialized once for repeated export."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    lats: np.ndarray
    lons: np.ndarray
    rejected: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def arrays_must_match(self) -> "SampledPointSet":
        if self.lats.shape != self.lons.shape:
            raise ValueError(
                f"lats has shape {self.lats.shape} but lons has shape {self.lons.shape}"
            )
        return self

    def __len__(self) -> int:
        return len(self.lats)
