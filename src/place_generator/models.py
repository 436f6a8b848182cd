"""Pydantic domain models for points, map elements and tag filters."""

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)

    @classmethod
    def fast(cls, lat: float, lon: float) -> "GeoPoint":
        """Build a point without validation, for per-element hot paths."""
        return cls.model_construct(lat=lat, lon=lon)


Tags = list[tuple[str, str]]
MemberKind = Literal["node", "way", "relation"]


class Member(BaseModel):
    ref: int
    kind: MemberKind
    role: str = ""


class Node(BaseModel):
    id: int
    kind: Literal["node"] = "node"
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    tags: Tags = Field(default_factory=list)

    @property
    def location(self) -> GeoPoint:
        return GeoPoint.fast(self.lat, self.lon)


class Way(BaseModel):
    id: int
    kind: Literal["way"] = "way"
    node_ids: list[int] = Field(default_factory=list)
    tags: Tags = Field(default_factory=list)


class Relation(BaseModel):
    id: int
    kind: Literal["relation"] = "relation"
    members: list[Member] = Field(default_factory=list)
    tags: Tags = Field(default_factory=list)


MapElement = Union[Node, Way, Relation]


class TagFilter(BaseModel):
    """Matches a tag when the key is equal and, if set, the value is equal too."""
    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    value: Optional[str] = None

    def matches(self, key: str, value: str) -> bool:
        if key != self.key:
            return False
        return self.value is None or self.value == value


def has_tag(tags: Tags, key: str, value: Optional[str] = None) -> bool:
    """Return True if any tag in ``tags`` has ``key`` (and ``value`` when given)."""
    for k, v in tags:
        if k == key and (value is None or v == value):
            return True
    return False


def tag_value(tags: Tags, key: str, default: str = "") -> str:
    for k, v in tags:
        if k == key:
            return v
    return default
