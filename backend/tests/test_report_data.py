"""
test_report_data.py - Row shaping used by the report endpoints and PDFs.
"""

from datetime import datetime

from report_data import (
    DEFAULT_PRIORITY_COLOR,
    FALLBACK_PRIORITY_COLORS,
    attach_tape_logs,
    build_priority_colors,
    clean_param,
    dedupe_video_logs,
    format_counter,
    format_datetime,
    format_depth,
    friendly_event_type,
    is_rectified,
    priority_style,
    sort_by_priority,
    sort_tapes,
    text_color_for,
)


class TestParams:

    def test_placeholder_values_are_missing(self):
        assert clean_param("undefined") is None
        assert clean_param("null") is None
        assert clean_param("   ") is None
        assert clean_param(None) is None

    def test_real_value_kept(self):
        assert clean_param(" 42 ") == "42"


class TestPriorities:

    def test_sort_by_priority_unknown_last(self):
        rows = [{"priority": "Low"}, {"priority": "mystery"}, {"priority": "Critical"}, {"priority": "HIGH"}]
        assert [r["priority"] for r in sort_by_priority(rows)] == ["Critical", "HIGH", "Low", "mystery"]

    def test_record_color_wins(self):
        bg, text = priority_style("High", {"high": "0,0,255"}, record_color="255,255,0")
        assert bg == (255, 255, 0)
        assert text == (0, 0, 0)

    def test_library_color_before_fallback(self):
        bg, text = priority_style("High", {"high": "0,0,255"})
        assert bg == (0, 0, 255)
        assert text == (255, 255, 255)

    def test_fallback_palette(self):
        assert priority_style("critical") == FALLBACK_PRIORITY_COLORS["critical"]
        assert priority_style("Priority 2") == FALLBACK_PRIORITY_COLORS["high"]

    def test_unknown_priority_default(self):
        assert priority_style("whatever", {"whatever": ""}) == DEFAULT_PRIORITY_COLOR

    def test_text_color_threshold(self):
        assert text_color_for((255, 255, 255)) == (0, 0, 0)
        assert text_color_for((0, 0, 0)) == (255, 255, 255)

    def test_build_priority_colors(self):
        types = [
            {"lib_id": "1", "lib_desc": "Critical"},
            {"lib_id": "2", "lib_desc": "Low"},
        ]
        combos = [{"code_1": "1", "code_2": "255,0,0"}]
        assert build_priority_colors(types, combos) == {"critical": "255,0,0", "low": ""}

    def test_rectified(self):
        assert is_rectified({"is_rectified": True})
        assert is_rectified({"is_rectified": "true"})
        assert is_rectified({"rectified_remarks": "Cleaned and re-coated"})
        assert not is_rectified({"is_rectified": False})


class TestFormatting:

    def test_counter(self):
        assert format_counter(3725) == "01:02:05"
        assert format_counter("00:10:00") == "00:10:00"
        assert format_counter(None) == ""

    def test_depth(self):
        assert format_depth(0) == "-"
        assert format_depth(None) == "-"
        assert format_depth(12.5) == "12.5m"
        assert format_depth(30.0) == "30m"

    def test_event_type(self):
        assert friendly_event_type("START_TASK") == "Start Task"
        assert friendly_event_type("CUSTOM_EVENT") == "CUSTOM EVENT"
        assert friendly_event_type(None) == "-"

    def test_datetime(self):
        assert format_datetime(datetime(2026, 3, 4, 5, 6)) == "04/03/2026 05:06"
        assert format_datetime("2026-03-04T05:06:00") == "04/03/2026 05:06"
        assert format_datetime(None) == "-"


class TestVideoLogs:

    def test_dedupe_keeps_first_time_and_latest_remarks(self):
        logs = [
            {"video_log_id": 1, "event_type": "START_TASK", "timecode_start": "00:00:10",
             "event_time": "2026-01-01T10:00:00", "remarks": "first"},
            {"video_log_id": 2, "event_type": "START_TASK", "timecode_start": "00:00:10",
             "event_time": "2026-01-01T10:00:05", "remarks": "second"},
            {"video_log_id": 3, "event_type": "START_TASK", "timecode_start": "00:00:10",
             "event_time": "2026-01-01T10:00:09", "remarks": None},
            {"video_log_id": 4, "event_type": "STOP_TASK", "timecode_start": "00:05:00",
             "event_time": "2026-01-01T10:05:00", "remarks": None},
        ]
        result = dedupe_video_logs(logs)

        assert len(result) == 2
        assert result[0]["event_time"] == "2026-01-01T10:00:00"
        assert result[0]["remarks"] == "second"
        assert result[1]["event_type"] == "STOP_TASK"

    def test_tapes_without_logs_dropped(self):
        tapes = [{"tape_id": 1, "dive_job_id": 5, "tape_no": "1"}, {"tape_id": 2, "dive_job_id": 5, "tape_no": "2"}]
        logs = [{"tape_id": 1, "event_type": "NOTE", "timecode_start": "00:00:01"}]

        result = attach_tape_logs(tapes, logs, {5: "D-01"})

        assert [t["tape_id"] for t in result] == [1]
        assert result[0]["dive_no"] == "D-01"

    def test_tapes_sorted_numerically(self):
        tapes = [{"tape_no": "10"}, {"tape_no": "2"}, {"tape_no": "B"}, {"tape_no": "1"}]
        assert [t["tape_no"] for t in sort_tapes(tapes)] == ["1", "2", "10", "B"]
