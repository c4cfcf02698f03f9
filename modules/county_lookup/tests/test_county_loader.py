"""Tests for county dataset loading, the prepared cache and index building."""

import json

import pytest

from counties.config import InvalidGeometryPolicy, LookupConfig
from counties.exceptions import (
    CountiesValidationError,
    DecodeError,
    DuplicateIDError,
    InvalidGeometryError,
)
from modules.county_lookup.dataset import (
    CountyDatasetLoader,
    RawCountyRecord,
    build_index,
    check_topology,
    load_county_json,
    load_regions,
    process_json_data,
    save_regions,
)
from modules.county_lookup.geometry import Point, Polygon
from modules.county_lookup.regions import Region


def ring(x0, y0, size=1.0):
    return [[x0, y0], [x0, y0 + size], [x0 + size, y0 + size], [x0 + size, y0], [x0, y0]]


def county_record(geoid, x0, y0, name="Alameda", state="CA", poly=None, bbox=None):
    """One record in the source dataset format."""
    coordinates = ring(x0, y0)
    return {
        "geoid": str(geoid),
        "fullname": f"{name} County",
        "name": name,
        "state": state,
        "geotype": "County",
        "bbox": bbox if bbox is not None else json.dumps(coordinates),
        "poly": poly if poly is not None else json.dumps(coordinates),
    }


class TestRawCountyRecord:
    """Test conversion of source records to regions."""

    def test_to_region(self):
        """Test a well-formed record converts with metadata and geometry."""
        region = RawCountyRecord(**county_record(6001, -122.3, 37.4)).to_region()
        assert region.id == 6001
        assert region.name == "Alameda"
        assert region.full_name == "Alameda County"
        assert region.state_code == "CA"
        assert region.polygon.contains(Point(-121.8, 37.9))

    def test_bbox_recomputed_from_poly(self):
        """Test the source bbox is only checked, the region bbox comes from poly."""
        bogus_bbox = json.dumps(ring(0, 0, size=50))
        region = RawCountyRecord(**county_record(1, 10, 10, bbox=bogus_bbox)).to_region()
        assert region.bbox.as_tuple() == (10, 10, 11, 11)

    def test_non_integer_geoid(self):
        """Test a non-numeric geoid is a validation error."""
        with pytest.raises(CountiesValidationError):
            RawCountyRecord(**county_record("06X", 0, 0)).to_region()

    @pytest.mark.parametrize("field,value", [
        ("bbox", "[[0, 0], [1, 1]]"),
        ("bbox", "not json"),
        ("bbox", "null"),
        ("bbox", "5"),
        ("bbox", '{"a": 1}'),
        ("poly", "not json"),
        ("poly", '{"x": 1}'),
        ("poly", "[[0, 0], [1, 1]]"),
    ])
    def test_invalid_geometry(self, field, value):
        """Test undecodable or degenerate geometry raises InvalidGeometryError."""
        record = county_record(1, 0, 0)
        record[field] = value
        with pytest.raises(InvalidGeometryError):
            RawCountyRecord(**record).to_region()


class TestCountyDatasetLoader:
    """Test loading a source JSON file."""

    @pytest.fixture
    def dataset_path(self, tmp_path):
        records = [
            county_record(6001, -122.3, 37.4, name="Alameda"),
            county_record(6013, -122.3, 38.4, name="Contra Costa"),
            county_record(60010, 170.0, -14.3, name="Eastern", state="AS"),
            county_record(6075, -123.0, 37.4, name="San Francisco", poly="[[0, 0]]"),
        ]
        path = tmp_path / "county_poly.json"
        path.write_text(json.dumps(records))
        return path

    def test_skip_policy_drops_invalid(self, dataset_path):
        """Test skip policy logs and drops records with bad geometry."""
        loader = CountyDatasetLoader(LookupConfig(on_invalid_geometry="skip"))
        regions = loader.load_json(dataset_path)
        assert [r.id for r in regions] == [6001, 6013, 60010]
        assert loader.last_report.records_read == 4
        assert loader.last_report.skipped_invalid == 1
        assert loader.last_report.regions_loaded == 3
        assert "6075" in loader.last_report.errors[0]

    def test_skip_policy_drops_scalar_bbox(self, tmp_path):
        """Test a bbox that decodes to a scalar is handled by the skip policy."""
        records = [
            county_record(6001, -122.3, 37.4),
            county_record(6013, -122.3, 38.4, bbox="null"),
            county_record(6075, -123.0, 37.4, bbox="5"),
        ]
        path = tmp_path / "county_poly.json"
        path.write_text(json.dumps(records))

        loader = CountyDatasetLoader(LookupConfig(on_invalid_geometry="skip"))
        regions = loader.load_json(path)
        assert [r.id for r in regions] == [6001]
        assert loader.last_report.skipped_invalid == 2

    def test_fail_policy_reports_position(self, dataset_path):
        """Test fail policy raises with the record position."""
        loader = CountyDatasetLoader(LookupConfig(on_invalid_geometry=InvalidGeometryPolicy.FAIL))
        with pytest.raises(InvalidGeometryError) as exc_info:
            loader.load_json(dataset_path)
        assert exc_info.value.context["position"] == "4/4"

    def test_load_county_json(self, dataset_path):
        """Test the one-off helper uses the given config."""
        regions = load_county_json(dataset_path, LookupConfig(on_invalid_geometry="skip"))
        assert len(regions) == 3

    def test_not_an_array(self, tmp_path):
        """Test a JSON object at the top level is rejected."""
        path = tmp_path / "bad.json"
        path.write_text('{"geoid": "1"}')
        with pytest.raises(CountiesValidationError):
            CountyDatasetLoader().load_json(path)

    def test_invalid_json(self, tmp_path):
        """Test unparsable JSON is rejected."""
        path = tmp_path / "bad.json"
        path.write_text("[{")
        with pytest.raises(CountiesValidationError):
            CountyDatasetLoader().load_json(path)

    def test_missing_required_field(self, tmp_path):
        """Test a record without poly fails with its position."""
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([{"geoid": "1"}]))
        with pytest.raises(CountiesValidationError) as exc_info:
            CountyDatasetLoader().load_json(path)
        assert "1/1" in str(exc_info.value)

    def test_topology_warnings_counted(self, tmp_path, caplog):
        """Test self-intersecting rings are logged but still loaded."""
        bowtie = json.dumps([[0, 0], [1, 1], [1, 0], [0, 1], [0, 0]])
        path = tmp_path / "bowtie.json"
        path.write_text(json.dumps([county_record(1, 0, 0, poly=bowtie)]))

        loader = CountyDatasetLoader(LookupConfig(validate_topology=True))
        regions = loader.load_json(path)
        assert len(regions) == 1
        assert loader.last_report.topology_warnings == 1
        assert "not valid" in caplog.text

    def test_check_topology_valid(self):
        """Test a square passes the topology check."""
        region = Region(id=1, polygon=Polygon(ring(0, 0)))
        assert check_topology(region)


class TestPreparedCache:
    """Test the prepared region cache."""

    @pytest.fixture
    def regions(self):
        return [RawCountyRecord(**county_record(i, i * 2.0, 0, name=f"C{i}")).to_region()
                for i in range(1, 4)]

    def test_save_and_load(self, regions, tmp_path):
        """Test cached regions come back equal and in order."""
        path = tmp_path / "county_geo.json.gz"
        save_regions(path, regions, source="county_poly.json")
        assert load_regions(path) == regions

    def test_corrupt_cache(self, tmp_path):
        """Test a corrupt cache raises DecodeError."""
        path = tmp_path / "county_geo.json.gz"
        path.write_bytes(b"\x1f\x8b garbage")
        with pytest.raises(DecodeError):
            load_regions(path)

    def test_process_json_data(self, tmp_path):
        """Test the source JSON is converted to a loadable cache."""
        source = tmp_path / "county_poly.json"
        source.write_text(json.dumps([county_record(6001, -122.3, 37.4)]))
        saved = tmp_path / "county_geo.json.gz"

        report = process_json_data(source, saved)
        assert report.regions_loaded == 1
        assert [r.id for r in load_regions(saved)] == [6001]


class TestBuildIndex:
    """Test index construction from regions."""

    def test_excluded_states_left_out(self):
        """Test regions in excluded states are not indexed."""
        regions = [
            RawCountyRecord(**county_record(6001, 0, 0)).to_region(),
            RawCountyRecord(**county_record(60010, 5, 5, state="as")).to_region(),
        ]
        finder, store = build_index(regions, LookupConfig())
        assert store.ids() == [6001]
        assert finder.size() == 1
        assert finder.query(Point(5.5, 5.5)) == []

    def test_custom_exclusions(self):
        """Test the exclusion set is configurable."""
        regions = [RawCountyRecord(**county_record(6001, 0, 0)).to_region()]
        finder, store = build_index(regions, LookupConfig(excluded_states=["ca"]))
        assert len(store) == 0
        assert finder.size() == 0

    def test_duplicate_ids_fail(self):
        """Test duplicate ids fail the build."""
        regions = [RawCountyRecord(**county_record(1, 0, 0)).to_region(),
                   RawCountyRecord(**county_record(1, 3, 3)).to_region()]
        with pytest.raises(DuplicateIDError):
            build_index(regions)

    def test_node_capacity_from_config(self):
        """Test the finder uses the configured node capacity."""
        regions = [RawCountyRecord(**county_record(i, i * 2.0, 0)).to_region() for i in range(10)]
        finder, _ = build_index(regions, LookupConfig(node_capacity=4))
        assert finder.node_capacity == 4
        assert sorted(finder.query(Point(4.5, 0.5))) == [2]
