"""Run configuration for place generation.

Names the dataset to read, the brand and road point files to write, and the
boundary regions road samples are additionally filtered by. Loaded from YAML.
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from place_generator.core.roads import DEFAULT_KEEP_PROBABILITY, DEFAULT_SAMPLE_COUNT


class BrandDataset(BaseModel):
    name: str = Field(min_length=1)
    key: str = Field(default="brand", min_length=1)
    value: Optional[str] = None
    output: str = Field(min_length=1)


class RoadSampling(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    enabled: bool = True
    output: str = Field(default="roads.dat", min_length=1)
    keep_probability: float = Field(default=DEFAULT_KEEP_PROBABILITY, gt=0, le=1)
    sample_count: int = Field(default=DEFAULT_SAMPLE_COUNT, gt=0)


class Region(BaseModel):
    """A named union of boundary relations applied to the road samples."""
    name: str = Field(min_length=1)
    relation_ids: list[int] = Field(min_length=1)
    output: str = Field(min_length=1)


DEFAULT_BRANDS = [
    BrandDataset(name="mcdonalds", key="brand", value="McDonald's", output="mcdonalds.dat"),
]


class GeneratorConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    dataset: str = Field(min_length=1)
    expected_nodes: Optional[int] = Field(default=None, gt=0)
    output_dir: str = "."
    seed: Optional[int] = None
    debug_text: bool = False
    progress_every: int = Field(default=1_000_000, gt=0)
    brands: list[BrandDataset] = Field(default_factory=lambda: list(DEFAULT_BRANDS))
    roads: RoadSampling = Field(default_factory=RoadSampling)
    regions: list[Region] = Field(default_factory=list)

    @field_validator("brands")
    @classmethod
    def brand_names_must_be_unique(cls, v: list[BrandDataset]) -> list[BrandDataset]:
        names = [b.name for b in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate brand dataset names: {', '.join(duplicates)}")
        return v

    @model_validator(mode="after")
    def outputs_must_be_unique(self) -> "GeneratorConfig":
        outputs = [b.output for b in self.brands] + [r.output for r in self.regions]
        if self.roads.enabled:
            outputs.append(self.roads.output)
        duplicates = sorted({o for o in outputs if outputs.count(o) > 1})
        if duplicates:
            raise ValueError(f"Output files used more than once: {', '.join(duplicates)}")
        return self

    @model_validator(mode="after")
    def regions_need_roads(self) -> "GeneratorConfig":
        if self.regions and not self.roads.enabled:
            raise ValueError("Regions filter road samples, enable roads to use them")
        return self

    def output_path(self, filename: str) -> Path:
        return Path(self.output_dir) / filename

    def relation_ids(self) -> set[int]:
        return {rid for region in self.regions for rid in region.relation_ids}


def load_config(path) -> GeneratorConfig:
    """Read a YAML config file. Raises pydantic.ValidationError if invalid."""
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    return GeneratorConfig.model_validate(data)
