"""Tests for the length-weighted road sampler."""

import logging
import math

import numpy as np
import pytest

from place_generator.core.geometry import distance
from place_generator.core.models import LengthIndex
from place_generator.core.roads import RoadSampler, build_length_index, locate_offsets
from place_generator.errors import EmptyRoadNetworkError, UnresolvedNodeError
from place_generator.exporters.sinks import PointSink
from place_generator.models import GeoPoint, Node, Way

# Longitude span of 1 km along the equator on a 6360 km sphere.
KM_LON = math.degrees(1.0 / 6360.0)


def _two_road_sampler(**kwargs) -> RoadSampler:
    """Road A is 1 km along the equator, road B 3 km along lat 10."""
    sampler = RoadSampler(keep_probability=1.0, **kwargs)
    elements = [
        Way(id=100, node_ids=[1, 2], tags=[("highway", "residential")]),
        Way(id=101, node_ids=[3, 4], tags=[("highway", "primary")]),
    ]
    nodes = [
        Node(id=1, lat=0.0, lon=0.0),
        Node(id=2, lat=0.0, lon=KM_LON),
        Node(id=3, lat=10.0, lon=0.0),
        Node(id=4, lat=10.0, lon=3 * KM_LON / math.cos(math.radians(10.0))),
    ]
    for e in elements:
        sampler.first_pass(e)
    for n in nodes:
        sampler.second_pass(n)
    return sampler


class TestCollection:
    def test_keeps_highways_only(self):
        sampler = RoadSampler(keep_probability=1.0)
        sampler.first_pass(Way(id=1, node_ids=[1, 2, 3], tags=[("highway", "service")]))
        sampler.first_pass(Way(id=2, node_ids=[4, 5], tags=[("building", "yes")]))
        sampler.first_pass(Node(id=6, lat=0.0, lon=0.0, tags=[("highway", "stop")]))
        assert sampler.network.roads == [[1, 2, 3]]
        assert sampler.network.pending == {1, 2, 3}

    def test_subsampling_keeps_about_the_configured_fraction(self):
        sampler = RoadSampler(keep_probability=0.5, seed=7)
        for i in range(2000):
            sampler.first_pass(Way(id=i, node_ids=[i * 2, i * 2 + 1], tags=[("highway", "x")]))
        assert sampler.roads_seen == 2000
        assert 850 < len(sampler.network.roads) < 1150

    def test_second_pass_resolves_pending_nodes_only(self):
        sampler = RoadSampler(keep_probability=1.0)
        sampler.first_pass(Way(id=1, node_ids=[1, 2], tags=[("highway", "service")]))
        sampler.second_pass(Node(id=1, lat=1.0, lon=1.0))
        sampler.second_pass(Node(id=99, lat=2.0, lon=2.0))
        assert set(sampler.network.nodes) == {1}

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            RoadSampler(keep_probability=0.0)
        with pytest.raises(ValueError):
            RoadSampler(sample_count=0)


class TestLengthIndex:
    def test_two_roads(self):
        sampler = _two_road_sampler()
        idx = sampler.build_index()
        length_a, length_b = idx.segment_lengths[0][0], idx.segment_lengths[1][0]
        assert idx.road_offsets == [0, length_a]
        assert idx.total_length == length_a + length_b
        assert length_a == pytest.approx(1_000_000, abs=10)
        assert length_b == pytest.approx(3_000_000, rel=1e-3)

    def test_segments_use_integer_distance(self):
        sampler = _two_road_sampler()
        idx = sampler.build_index()
        a = GeoPoint(lat=0.0, lon=0.0)
        b = GeoPoint(lat=0.0, lon=KM_LON)
        assert idx.segment_lengths[0] == [distance(a, b)]

    def test_unresolved_node_is_fatal(self):
        sampler = RoadSampler(keep_probability=1.0)
        sampler.first_pass(Way(id=1, node_ids=[1, 2], tags=[("highway", "service")]))
        sampler.second_pass(Node(id=1, lat=1.0, lon=1.0))
        with pytest.raises(UnresolvedNodeError) as exc_info:
            sampler.build_index()
        assert exc_info.value.node_id == 2

    def test_single_node_road_has_no_segments(self):
        from place_generator.core.models import RoadNetwork
        network = RoadNetwork(roads=[[1]], nodes={1: GeoPoint(lat=0.0, lon=0.0)})
        idx = build_length_index(network)
        assert idx.segment_lengths == [[]]
        assert idx.total_length == 0


class TestLocateOffsets:
    def setup_method(self):
        self.index = LengthIndex(
            road_offsets=[0, 1_000_000],
            segment_lengths=[[1_000_000], [3_000_000]],
            total_length=4_000_000,
        )

    def test_half_way_along_first_road(self):
        _, roads, segments, alphas = locate_offsets(self.index, [500_000])
        assert roads[0] == 0
        assert segments[0] == 0
        assert alphas[0] == pytest.approx(0.5)

    def test_road_boundary_goes_to_next_road(self):
        _, roads, _, alphas = locate_offsets(self.index, [1_000_000])
        assert roads[0] == 1
        assert alphas[0] == pytest.approx(0.0)

    def test_into_second_road(self):
        _, roads, _, alphas = locate_offsets(self.index, [1_500_000, 3_999_999])
        np.testing.assert_array_equal(roads, [1, 1])
        np.testing.assert_allclose(alphas, [1 / 6, 2_999_999 / 3_000_000])

    def test_offsets_are_sorted(self):
        offsets, roads, _, _ = locate_offsets(self.index, [3_000_000, 0, 500_000])
        np.testing.assert_array_equal(offsets, [0, 500_000, 3_000_000])
        np.testing.assert_array_equal(roads, [0, 0, 1])

    def test_segments_within_a_road(self):
        index = LengthIndex(road_offsets=[0], segment_lengths=[[100, 200, 300]], total_length=600)
        offsets, roads, segments, alphas = locate_offsets(index, [599, 0, 150, 100, 300])
        np.testing.assert_array_equal(offsets, [0, 100, 150, 300, 599])
        np.testing.assert_array_equal(segments, [0, 0, 1, 1, 2])
        np.testing.assert_allclose(alphas, [0.0, 1.0, 0.25, 1.0, 299 / 300])

    def test_zero_length_road_is_skipped(self):
        index = LengthIndex(
            road_offsets=[0, 0, 10],
            segment_lengths=[[], [10], [0]],
            total_length=10,
        )
        _, roads, _, alphas = locate_offsets(index, [0, 5, 9])
        np.testing.assert_array_equal(roads, [1, 1, 1])
        np.testing.assert_allclose(alphas, [0.0, 0.5, 0.9])

    def test_zero_length_segment_gives_nan(self):
        index = LengthIndex(road_offsets=[0], segment_lengths=[[0, 10]], total_length=10)
        _, _, segments, alphas = locate_offsets(index, [0])
        assert segments[0] == 0
        assert np.isnan(alphas[0])

    def test_empty_index(self):
        index = LengthIndex(road_offsets=[], segment_lengths=[], total_length=0)
        offsets, roads, _, alphas = locate_offsets(index, [])
        assert len(offsets) == 0


class TestSampling:
    def test_sample_requires_index(self):
        sampler = _two_road_sampler()
        with pytest.raises(ValueError, match="build_index"):
            sampler.sample()

    def test_export_requires_sample(self):
        sampler = _two_road_sampler()
        sampler.build_index()
        with pytest.raises(ValueError, match="sample"):
            sampler.export(object())

    def test_empty_network_is_fatal(self):
        sampler = RoadSampler(keep_probability=1.0)
        sampler.build_index()
        with pytest.raises(EmptyRoadNetworkError):
            sampler.sample()

    def test_explicit_offset_interpolates(self):
        sampler = _two_road_sampler()
        idx = sampler.build_index()
        half = idx.segment_lengths[0][0] // 2
        sampled = sampler.sample(offsets=[half])
        assert len(sampled) == 1
        assert sampled.lats[0] == pytest.approx(0.0, abs=1e-9)
        assert sampled.lons[0] == pytest.approx(KM_LON / 2, rel=1e-5)

    def test_fraction_on_longer_road(self):
        sampler = _two_road_sampler(sample_count=100_000, seed=42)
        sampler.build_index()
        sampled = sampler.sample()
        assert len(sampled) == 100_000
        assert sampled.rejected == 0
        on_b = np.count_nonzero(sampled.lats > 5.0) / len(sampled)
        assert on_b == pytest.approx(0.75, abs=0.01)

    def test_points_lie_on_roads(self):
        sampler = _two_road_sampler(sample_count=1000, seed=1)
        sampler.build_index()
        sampled = sampler.sample()
        on_a = sampled.lats < 5.0
        assert np.all(sampled.lons[on_a] >= -1e-9)
        assert np.all(sampled.lons[on_a] <= KM_LON + 1e-9)

    def test_sample_is_materialized_once(self):
        sampler = _two_road_sampler(sample_count=100, seed=3)
        sampler.build_index()
        first = sampler.sample()
        assert sampler.sample() is first

    def test_invalid_alpha_dropped_and_logged(self, caplog):
        sampler = RoadSampler(keep_probability=1.0)
        sampler.first_pass(Way(id=1, node_ids=[1, 2, 3], tags=[("highway", "service")]))
        for n in [
            Node(id=1, lat=0.0, lon=0.0),
            Node(id=2, lat=0.0, lon=0.0),
            Node(id=3, lat=0.0, lon=KM_LON),
        ]:
            sampler.second_pass(n)
        idx = sampler.build_index()
        assert idx.segment_lengths == [[0, idx.total_length]]

        with caplog.at_level(logging.WARNING, logger="place_generator.core.roads"):
            sampled = sampler.sample(offsets=[0, 500_000, idx.total_length + 1_000_000])

        assert len(sampled) == 1
        assert sampled.rejected == 2
        assert any("Dropped 2" in r.message for r in caplog.records)

    def test_export_writes_every_point(self):
        sampler = _two_road_sampler(sample_count=50, seed=5)
        sampler.build_index()
        sampler.sample()
        written = []

        class Sink(PointSink):
            def write(self, point):
                written.append(point)

        assert sampler.export(Sink()) == 50
        assert len(written) == 50
        assert all(isinstance(p, GeoPoint) for p in written)
