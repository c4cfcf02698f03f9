"""Tests for FrozenSearcher building, persistence and sharing."""

import gzip
import io
import json
import random
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock, patch

import pytest

from counties.exceptions import CountiesValidationError, DecodeError, DuplicateIDError, IndexFrozenError
from modules.county_lookup.dataset import build_index
from modules.county_lookup.geometry import Point, Polygon
from modules.county_lookup.regions import Region, RegionStore
from modules.county_lookup.resolver import MatchStatus
from modules.county_lookup.searcher import FrozenSearcher, SearcherSnapshot, read_bytes
from modules.county_lookup.searcher.persistence import SNAPSHOT_VERSION, encode_model
from modules.county_lookup.spatial_index import Finder


def square_region(region_id, x0, y0=0, size=10, name=None, state="CA"):
    ring = [(x0, y0), (x0, y0 + size), (x0 + size, y0 + size), (x0 + size, y0)]
    name = name or f"County {region_id}"
    return Region(id=region_id, polygon=Polygon(ring), name=name,
                  full_name=f"{name} County", state_code=state)


def freeze_regions(regions, observer=None):
    finder, store = build_index(regions)
    return FrozenSearcher.freeze(finder, store, observer=observer)


def query_points(seed=1, count=200):
    rng = random.Random(seed)
    return [Point(rng.uniform(-5, 45), rng.uniform(-5, 15)) for _ in range(count)]


class TestFrozenSearcherScenarios:
    """Concrete lookup scenarios against frozen searchers."""

    @pytest.fixture
    def single(self):
        """Searcher holding one 10x10 square with id 1."""
        return freeze_regions([square_region(1, 0)])

    @pytest.fixture
    def three(self):
        """Searcher holding three adjacent squares."""
        return freeze_regions([square_region(1, 0), square_region(2, 10), square_region(3, 20)])

    def test_single_square_hit(self, single):
        """Test (5, 5) inside the square resolves to id 1 at distance 0."""
        assert single.resolve(Point(5, 5)).as_pair() == (1, 0.0)

    def test_single_square_miss(self, single):
        """Test (50, 50) outside every box is not found."""
        resolution = single.resolve(Point(50, 50))
        assert resolution.status == MatchStatus.NOT_FOUND
        assert single.resolve_meta(Point(50, 50)) is None

    def test_shared_edge_consistent(self, three):
        """Test a shared-edge point always resolves to the same id."""
        answers = {three.resolve(Point(10, 5)).region_id for _ in range(10)}
        assert len(answers) == 1
        assert answers <= {1, 2}

    def test_duplicate_id_produces_no_searcher(self):
        """Test a duplicate id fails the build before any searcher exists."""
        with pytest.raises(DuplicateIDError):
            freeze_regions([square_region(1, 0), square_region(1, 10)])

    def test_round_trip_three_regions(self, three):
        """Test the deserialized copy answers scenario queries identically."""
        restored = FrozenSearcher.loads(three.dumps())
        assert restored.resolve(Point(5, 5)) == three.resolve(Point(5, 5))
        assert restored.resolve(Point(5, 5)).as_pair() == (1, 0.0)
        assert restored.region_count() == 3
        assert restored.node_capacity == three.node_capacity

    def test_resolve_meta(self, three):
        """Test metadata is returned for a matched point."""
        meta = three.resolve_meta(Point(25, 5))
        assert meta.id == 3
        assert meta.full_name == "County 3 County"
        assert meta.state_code == "CA"


class TestFrozenSearcherProperties:
    """Property checks over a larger set of queries."""

    @pytest.fixture
    def searcher(self):
        regions = [square_region(i + 1, i * 10) for i in range(4)]
        regions.append(Region(id=9, polygon=Polygon([(0, 10), (10, 10), (0, 14)]), name="Wedge"))
        return freeze_regions(regions)

    def test_round_trip_answers_identically(self, searcher):
        """Test every query gets the same answer after serialization."""
        restored = FrozenSearcher.loads(searcher.dumps())
        for point in query_points():
            assert restored.resolve(point) == searcher.resolve(point)

    def test_stream_round_trip(self, searcher):
        """Test dump and load through a binary stream."""
        buffer = io.BytesIO()
        searcher.dump(buffer)
        buffer.seek(0)
        restored = FrozenSearcher.load(buffer)
        assert restored.entries() == searcher.entries()

    def test_idempotent(self, searcher):
        """Test repeated queries against one searcher are identical."""
        for point in query_points(seed=2, count=50):
            assert searcher.resolve(point) == searcher.resolve(point)

    def test_duplicates_are_independent(self, searcher):
        """Test discarding one duplicate leaves another answering the same."""
        first = searcher.duplicate()
        second = searcher.duplicate()
        expected = [searcher.resolve(p) for p in query_points(seed=3, count=50)]
        del first
        assert [second.resolve(p) for p in query_points(seed=3, count=50)] == expected
        assert second is not searcher

    def test_outside_every_box_not_found(self, searcher):
        """Test points beyond every bounding box are never matched."""
        for point in (Point(-50, 0), Point(0, 100), Point(500, -500)):
            assert not searcher.resolve(point).found

    def test_concurrent_resolution(self, searcher):
        """Test many threads sharing one searcher agree with serial results."""
        points = query_points(seed=4, count=400)
        expected = [searcher.resolve(p) for p in points]
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(searcher.resolve, points))
        assert results == expected

    def test_searcher_is_immutable(self, searcher):
        """Test attribute assignment is refused."""
        with pytest.raises(AttributeError):
            searcher._regions = RegionStore.build([])


class TestFrozenSearcherBuild:
    """Test freezing rules."""

    def test_freeze_locks_finder(self):
        """Test the finder refuses adds once frozen into a searcher."""
        finder, store = build_index([square_region(1, 0)])
        searcher = FrozenSearcher.freeze(finder, store)
        assert finder.frozen
        with pytest.raises(IndexFrozenError):
            finder.add(2, square_region(2, 10).polygon)
        assert searcher.size() == 1

    def test_missing_region_rejected(self):
        """Test an indexed id without a region record fails the freeze."""
        finder = Finder()
        finder.add(1, square_region(1, 0).polygon)
        finder.add(2, square_region(2, 10).polygon)
        store = RegionStore.build([square_region(1, 0)])
        with pytest.raises(CountiesValidationError):
            FrozenSearcher.freeze(finder, store)
        assert not finder.frozen

    def test_empty_searcher(self):
        """Test a searcher with no regions answers not found."""
        searcher = FrozenSearcher.freeze(Finder(), RegionStore.build([]))
        assert len(searcher) == 0
        assert searcher.resolve(Point(0, 0)).status == MatchStatus.NOT_FOUND
        assert FrozenSearcher.loads(searcher.dumps()).size() == 0

    def test_multi_piece_round_trip(self):
        """Test extra polygon pieces are persisted with their own rings."""
        main = square_region(7, 0)
        island = Polygon([(100, 100), (100, 105), (105, 105), (105, 100)])
        finder = Finder()
        finder.add(7, main.polygon)
        finder.add(7, island)
        searcher = FrozenSearcher.freeze(finder, RegionStore.build([main]))

        snapshot = searcher.snapshot()
        assert snapshot.entries[0].polygon is None
        assert snapshot.entries[1].polygon is not None

        restored = FrozenSearcher.loads(searcher.dumps())
        assert restored.resolve(Point(102, 102)).as_pair() == (7, 0.0)
        assert restored.polygons(7) == searcher.polygons(7)

    def test_with_observer_shares_data(self):
        """Test with_observer reports to the new observer on the same data."""
        searcher = freeze_regions([square_region(1, 0)])
        observer = Mock()
        observed = searcher.with_observer(observer)
        observed.resolve(Point(50, 50))
        observer.on_not_found.assert_called_once()
        assert observed.entries() is searcher.entries()


class TestFrozenSearcherPersistence:
    """Test decoding failures and file I/O."""

    @pytest.fixture
    def searcher(self):
        return freeze_regions([square_region(1, 0), square_region(2, 10), square_region(3, 20)])

    def test_truncated_data(self, searcher):
        """Test truncated bytes raise DecodeError."""
        data = searcher.dumps()
        with pytest.raises(DecodeError):
            FrozenSearcher.loads(data[: len(data) // 2])

    def test_not_gzip(self):
        """Test arbitrary bytes raise DecodeError."""
        with pytest.raises(DecodeError):
            FrozenSearcher.loads(b"definitely not a searcher")

    def test_invalid_json(self):
        """Test gzip data that is not JSON raises DecodeError."""
        with pytest.raises(DecodeError):
            FrozenSearcher.loads(gzip.compress(b"{not json"))

    def test_schema_mismatch(self):
        """Test JSON that is not a snapshot raises DecodeError."""
        with pytest.raises(DecodeError):
            FrozenSearcher.loads(gzip.compress(json.dumps({"format": "other"}).encode()))

    def test_unsupported_version(self, searcher):
        """Test a newer snapshot version is refused."""
        snapshot = searcher.snapshot().model_copy(update={"version": SNAPSHOT_VERSION + 1})
        with pytest.raises(DecodeError):
            FrozenSearcher.loads(encode_model(snapshot))

    @pytest.mark.parametrize("polygon", [None, [[0, 0], [0, 1], [1, 1], [1, 0], [0, 0]]])
    def test_entry_for_missing_region(self, searcher, polygon):
        """Test an entry pointing at an unknown region raises DecodeError."""
        payload = json.loads(gzip.decompress(searcher.dumps()))
        payload["entries"].append({"id": 99, "polygon": polygon})
        with pytest.raises(DecodeError) as exc_info:
            FrozenSearcher.loads(gzip.compress(json.dumps(payload).encode()))

        assert exc_info.value.context["id"] == 99

    def test_dumps_is_deterministic(self, searcher):
        """Test the persisted bytes are identical across calls and copies."""
        data = searcher.dumps()
        assert searcher.dumps() == data
        assert searcher.duplicate().dumps() == data

    def test_duplicate_region_in_snapshot(self, searcher):
        """Test a snapshot repeating a region id raises DecodeError."""
        payload = json.loads(gzip.decompress(searcher.dumps()))
        payload["regions"].append(payload["regions"][0])
        with pytest.raises(DecodeError):
            FrozenSearcher.loads(gzip.compress(json.dumps(payload).encode()))

    def test_save_and_load_file(self, searcher, tmp_path):
        """Test save writes atomically and load_file restores the searcher."""
        path = tmp_path / "nested" / "searcher.json.gz"
        searcher.save(path)
        assert path.exists()
        assert [p.name for p in path.parent.iterdir()] == ["searcher.json.gz"]

        restored = FrozenSearcher.load_file(path)
        assert restored.resolve(Point(15, 5)).as_pair() == (2, 0.0)
        assert isinstance(SearcherSnapshot.model_validate_json(gzip.decompress(path.read_bytes())),
                          SearcherSnapshot)

    def test_failed_save_keeps_previous_file(self, searcher, tmp_path):
        """Test a write failure leaves the old file and no temporary file."""
        path = tmp_path / "searcher.json.gz"
        searcher.save(path)
        before = path.read_bytes()

        with patch("modules.county_lookup.searcher.persistence.os.replace",
                   side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                searcher.save(path)

        assert path.read_bytes() == before
        assert [p.name for p in tmp_path.iterdir()] == ["searcher.json.gz"]

    def test_read_retries_transient_errors(self, tmp_path):
        """Test transient read errors are retried before succeeding."""
        path = tmp_path / "data.bin"
        path.write_bytes(b"payload")
        real_open = open
        calls = {"count": 0}

        def flaky_open(*args, **kwargs):
            calls["count"] += 1
            if calls["count"] == 1:
                raise TimeoutError("slow disk")
            return real_open(*args, **kwargs)

        with patch("builtins.open", side_effect=flaky_open):
            assert read_bytes(path) == b"payload"
        assert calls["count"] == 2

    def test_read_missing_file_not_retried(self, tmp_path):
        """Test a missing file fails immediately."""
        with pytest.raises(FileNotFoundError):
            read_bytes(tmp_path / "missing.bin")
