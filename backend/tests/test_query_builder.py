"""Tests for bounding box validation and filter construction."""

from datetime import datetime, timedelta, timezone

import pytest

from vesseltrack.ais.models import DataType
from vesseltrack.ais.query_builder import (
    AreaQuery,
    AreaQueryError,
    BoundingBox,
    build_area_filter,
    build_log_filter,
    calculate_area_size,
    calculate_density,
    classify_density,
    validate_area_query,
)

SINGAPORE_STRAIT = dict(
    min_longitude=103.5,
    max_longitude=104.5,
    min_latitude=0.5,
    max_latitude=1.5,
)


class TestBoundingBox:
    """Coordinate validation happens when the box is built."""

    def test_valid_box(self):
        bounds = BoundingBox(**SINGAPORE_STRAIT)
        assert bounds.center == {"latitude": 1.0, "longitude": 104.0}
        assert bounds.span == {"latitude_degrees": 1.0, "longitude_degrees": 1.0}

    def test_equal_longitudes_rejected(self):
        with pytest.raises(AreaQueryError, match="minLongitude must be less than maxLongitude"):
            BoundingBox(min_longitude=10, max_longitude=10, min_latitude=0, max_latitude=1)

    def test_inverted_latitudes_rejected(self):
        with pytest.raises(AreaQueryError, match="minLatitude"):
            BoundingBox(min_longitude=0, max_longitude=1, min_latitude=5, max_latitude=4)

    @pytest.mark.parametrize(
        "field,value",
        [
            ("min_longitude", -181),
            ("max_longitude", 181),
            ("min_latitude", -91),
            ("max_latitude", 91),
        ],
    )
    def test_out_of_range_rejected(self, field, value):
        coords = dict(min_longitude=-10, max_longitude=10, min_latitude=-10, max_latitude=10)
        coords[field] = value
        with pytest.raises(AreaQueryError):
            BoundingBox(**coords)

    def test_nan_rejected(self):
        with pytest.raises(AreaQueryError, match="valid numbers"):
            BoundingBox(
                min_longitude=float("nan"),
                max_longitude=10,
                min_latitude=0,
                max_latitude=1,
            )


class TestAreaQuery:
    def test_start_must_precede_end(self):
        bounds = BoundingBox(**SINGAPORE_STRAIT)
        moment = datetime(2025, 1, 1)
        with pytest.raises(AreaQueryError, match="startDate must be before endDate"):
            AreaQuery(bounds=bounds, start_date=moment, end_date=moment)

    def test_aware_dates_normalized_to_naive_utc(self):
        bounds = BoundingBox(**SINGAPORE_STRAIT)
        jakarta = timezone(timedelta(hours=7))
        query = AreaQuery(
            bounds=bounds,
            start_date=datetime(2025, 1, 1, 7, 0, tzinfo=jakarta),
            end_date=datetime(2025, 1, 2, tzinfo=timezone.utc),
        )
        assert query.start_date == datetime(2025, 1, 1, 0, 0)
        assert query.end_date.tzinfo is None

    def test_page_size_bounds(self):
        bounds = BoundingBox(**SINGAPORE_STRAIT)
        with pytest.raises(AreaQueryError):
            AreaQuery(bounds=bounds, page_size=101)
        with pytest.raises(AreaQueryError):
            AreaQuery(bounds=bounds, page=0)

    def test_for_page_keeps_other_fields(self):
        query = AreaQuery(bounds=BoundingBox(**SINGAPORE_STRAIT), data_type=DataType.ALL)
        second = query.for_page(2)
        assert second.page == 2
        assert second.data_type is DataType.ALL
        assert second.bounds == query.bounds


class TestAreaSize:
    def test_one_degree_at_equator(self):
        area = calculate_area_size(0, 1, -0.5, 0.5)
        assert area == pytest.approx(111.32 * 110.54, rel=1e-3)

    def test_whole_globe_rejected(self):
        query = AreaQuery(
            bounds=BoundingBox(
                min_longitude=-180, max_longitude=180, min_latitude=-90, max_latitude=90
            )
        )
        with pytest.raises(AreaQueryError, match="Search area too large"):
            validate_area_query(query)

    def test_small_area_accepted(self):
        query = AreaQuery(bounds=BoundingBox(**SINGAPORE_STRAIT))
        area = validate_area_query(query)
        assert 0 < area < 20000

    def test_density(self):
        assert calculate_density(0, 100.0) == 0.0
        assert calculate_density(10, 0) == 0.0
        assert calculate_density(50, 100.0) == 0.5

    @pytest.mark.parametrize(
        "count,area,expected",
        [
            (1, 0, "undefined"),
            (5, 100, "sparse"),
            (50, 100, "moderate"),
            (500, 100, "dense"),
            (5000, 100, "very-dense"),
        ],
    )
    def test_classification(self, count, area, expected):
        assert classify_density(count, area) == expected


class TestFilters:
    def test_area_filter_copies_bounds_and_window(self):
        bounds = BoundingBox(**SINGAPORE_STRAIT)
        start = datetime(2025, 1, 1)
        flt = build_area_filter(bounds, start_date=start)

        assert flt.min_longitude == 103.5
        assert flt.max_latitude == 1.5
        assert flt.start_date == start
        assert flt.end_date is None

    def test_single_mmsi_wins_over_list(self):
        flt = build_log_filter(mmsi=111111111, mmsi_list=[222222222, 333333333])
        assert flt.mmsi == 111111111
        assert flt.mmsi_in is None

    def test_mmsi_list_used_without_single(self):
        flt = build_log_filter(mmsi_list=[222222222, 333333333])
        assert flt.mmsi_in == (222222222, 333333333)

    def test_log_filter_rejects_reversed_window(self):
        with pytest.raises(AreaQueryError):
            build_log_filter(start_date=datetime(2025, 2, 1), end_date=datetime(2025, 1, 1))

    def test_describe_omits_unset(self):
        flt = build_log_filter(source="telkomsat", status="archived")
        assert flt.describe() == {"source": "telkomsat", "status": "archived"}
