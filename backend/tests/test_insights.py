"""Tests for the advisory estimates and track statistics."""

from datetime import datetime, timedelta

import pytest

from vesseltrack.ais import insights


class TestDistance:
    def test_haversine_one_degree_on_equator(self):
        assert insights.haversine_km(0, 0, 0, 1) == pytest.approx(111.195, abs=0.01)

    def test_haversine_same_point(self):
        assert insights.haversine_km(1.0, 104.0, 1.0, 104.0) == 0

    def test_track_distance_skips_points_without_position(self):
        points = [
            {"latitude": 0, "longitude": 0},
            {"latitude": 0, "longitude": 1},
            {"latitude": None, "longitude": 5},
            {"latitude": 0, "longitude": 2},
        ]
        assert insights.track_distance_km(points) == pytest.approx(111.195, abs=0.01)

    def test_format_distance(self):
        assert insights.format_distance(0.5) == "500 m"
        assert insights.format_distance(111.195) == "111.2 km"


class TestPlaybackStatistics:
    def test_speed_and_distance(self):
        points = [
            {"latitude": 0, "longitude": 0, "speed": 10},
            {"latitude": 0, "longitude": 1, "speed": 12},
            {"latitude": 0, "longitude": 2, "speed": 14},
        ]
        stats = insights.playback_statistics(points, 2.0)

        assert stats["avg_speed"] == 12.0
        assert stats["max_speed"] == 14
        assert stats["distance_covered"] == "222.4 km"
        assert stats["time_span"] == "2.0 hours"

    def test_missing_speed_counts_as_zero(self):
        stats = insights.playback_statistics([{"speed": None}, {"speed": 9}], 1.0)
        assert stats["avg_speed"] == 4.5
        assert stats["max_speed"] == 9

    def test_empty_track(self):
        stats = insights.playback_statistics([], 0.0)
        assert stats["avg_speed"] == 0
        assert stats["max_speed"] == 0
        assert stats["distance_covered"] == "0 m"


class TestEstimates:
    @pytest.mark.parametrize(
        "count, approach",
        [
            (100, "single-page"),
            (101, "manual-pagination"),
            (5000, "auto-fetch"),
            (20000, "auto-fetch-with-patience"),
            (20001, "consider-refinement"),
        ],
    )
    def test_recommended_approach(self, count, approach):
        assert insights.recommended_approach(count) == approach

    def test_download_time(self):
        assert insights.estimated_download_time(100) == "~0.5 seconds"
        assert insights.estimated_download_time(20000) == "~50 seconds"
        assert insights.estimated_download_time(50000) == "~5 minutes"

    def test_file_size(self):
        assert insights.estimate_file_size(3, "csv") == "600 bytes"
        assert insights.estimate_file_size(100, "csv") == "20 KB"
        assert insights.estimate_file_size(10000, "csv") == "1.9 MB"
        assert insights.estimate_file_size(100, "pdf") == "59 KB"

    def test_export_readiness_above_pdf_limit(self):
        readiness = insights.export_readiness(6000)
        assert readiness["pdf_ready"] is False
        assert readiness["recommended_format"] == "CSV"
        assert readiness["estimated_file_size"]["pdf"] == "Too large for PDF"


class TestTimeAgo:
    def test_buckets(self):
        now = datetime(2025, 1, 14, 12, 0, 0)

        assert insights.time_ago(None) == "Unknown"
        assert insights.time_ago(now - timedelta(minutes=5), now) == "5 minutes ago"
        assert insights.time_ago(now - timedelta(hours=3), now) == "3 hours ago"
        assert insights.time_ago(now - timedelta(days=2), now) == "2 days ago"
