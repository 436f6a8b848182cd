"""Tests for drawing random locations from point files."""
import pytest


def _write(path, points):
    from place_generator.exporters.binary import BinaryPointSink
    from place_generator.models import GeoPoint
    with BinaryPointSink(path) as sink:
        for lat, lon in points:
            sink.write(GeoPoint(lat=lat, lon=lon))
    return path


class TestDatafileLocationGenerator:
    def test_samples_from_named_dataset(self, tmp_path):
        from place_generator.locations import DatafileLocationGenerator
        gen = DatafileLocationGenerator.from_datafiles({
            "world": _write(tmp_path / "roads.dat", [(1.0, 1.0), (2.0, 2.0)]),
            "mcdonalds": _write(tmp_path / "mcdonalds.dat", [(30.0, -97.0)]),
        }, seed=0)
        for _ in range(10):
            p = gen.sample_from_dataset("mcdonalds")
            assert (p.lat, p.lon) == (30.0, -97.0)

    def test_unknown_dataset_falls_back_to_world(self, tmp_path):
        from place_generator.locations import DatafileLocationGenerator
        gen = DatafileLocationGenerator.from_datafiles({
            "world": _write(tmp_path / "roads.dat", [(1.0, 1.0), (2.0, 2.0)]),
        }, seed=0)
        seen = {(p.lat, p.lon) for p in (gen.sample_from_dataset("atlantis") for _ in range(50))}
        assert seen == {(1.0, 1.0), (2.0, 2.0)}

    def test_default_dataset_must_exist(self, tmp_path):
        from place_generator.locations import DatafileLocationGenerator
        with pytest.raises(ValueError, match="world"):
            DatafileLocationGenerator.from_datafiles({
                "mcdonalds": _write(tmp_path / "mcdonalds.dat", [(30.0, -97.0)]),
            })

    def test_empty_dataset_rejected(self, tmp_path):
        from place_generator.locations import DatafileLocationGenerator
        with pytest.raises(ValueError, match="no points"):
            DatafileLocationGenerator.from_datafiles({"world": _write(tmp_path / "roads.dat", [])})


class TestMockLocationGenerator:
    def test_fixed_point(self):
        from place_generator.locations import MockLocationGenerator
        gen = MockLocationGenerator()
        p = gen.sample_from_dataset("anything")
        assert (p.lat, p.lon) == (30.0, 98.0)
