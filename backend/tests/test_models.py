"""Tests for the internal report model and classification tables."""

from datetime import datetime, timedelta, timezone

import pytest

from vesseltrack.ais.models import (
    DataType,
    PositionReport,
    nav_status_code,
    nav_status_name,
    parse_timestamp,
    vessel_type_code,
    vessel_type_name,
)


class TestClassification:
    def test_known_vessel_type(self):
        assert vessel_type_name(70) == "Cargo"
        assert vessel_type_name(None) == "Not available"

    def test_unknown_vessel_type_fallback(self):
        assert vessel_type_name(99) == "Unknown Type (99)"

    def test_known_nav_status(self):
        assert nav_status_name(1) == "At anchor"
        assert nav_status_name(None) == "Not defined (default)"

    def test_unknown_nav_status_fallback(self):
        assert nav_status_name(9) == "Unknown Status (9)"

    def test_provider_labels_to_codes(self):
        assert vessel_type_code("Tanker") == 80
        assert vessel_type_code(" Cargo ") == 70
        assert vessel_type_code("Submarine") == 0
        assert vessel_type_code(None) == 0
        assert nav_status_code("Moored") == 5
        assert nav_status_code("") == 15
        assert nav_status_code("Drifting") == 15


class TestPositionReport:
    def test_rejects_invalid_coordinates(self):
        with pytest.raises(ValueError, match="latitude"):
            PositionReport(mmsi=123456789, latitude=91, longitude=0, timestamp=datetime(2025, 1, 1))
        with pytest.raises(ValueError, match="longitude"):
            PositionReport(mmsi=123456789, latitude=0, longitude=-181, timestamp=datetime(2025, 1, 1))

    def test_rejects_non_positive_mmsi(self):
        with pytest.raises(ValueError, match="MMSI"):
            PositionReport(mmsi=0, latitude=0, longitude=0, timestamp=datetime(2025, 1, 1))

    def test_heading_511_means_unknown(self):
        report = PositionReport(
            mmsi=123456789, latitude=0, longitude=0, timestamp=datetime(2025, 1, 1), heading=511
        )
        assert report.heading is None

    def test_to_record_has_storage_columns_only(self):
        report = PositionReport(
            mmsi=123456789,
            latitude=1.0,
            longitude=104.0,
            timestamp=datetime(2025, 1, 1),
            imo="9999999",
            source="",
        )
        record = report.to_record()
        assert record["source"] == "telkomsat"
        assert "imo" not in record
        assert record["course"] == 0.0


class TestParseTimestamp:
    def test_zulu_suffix(self):
        assert parse_timestamp("2025-01-14T12:30:00Z") == datetime(2025, 1, 14, 12, 30)

    def test_offset_converted_to_utc(self):
        assert parse_timestamp("2025-01-14T19:30:00+07:00") == datetime(2025, 1, 14, 12, 30)

    def test_provider_format(self):
        assert parse_timestamp("2025-01-14 12:30:00") == datetime(2025, 1, 14, 12, 30)

    def test_aware_datetime(self):
        value = datetime(2025, 1, 14, 13, 30, tzinfo=timezone(timedelta(hours=1)))
        assert parse_timestamp(value) == datetime(2025, 1, 14, 12, 30)

    @pytest.mark.parametrize("value", [None, "", "   ", "yesterday", 12345])
    def test_unparseable(self, value):
        assert parse_timestamp(value) is None


class TestDataType:
    def test_collections_read(self):
        assert DataType.VESSEL.reads_current and not DataType.VESSEL.reads_archive
        assert DataType.TRACK.reads_archive and not DataType.TRACK.reads_current
        assert DataType.ALL.reads_current and DataType.ALL.reads_archive
