"""
File parser tests.

Tests:
  - corrupted seconds digit is truncated, double spaces tolerated
  - header, blank and unparseable lines are skipped and counted
  - null bytes / CRLF / CR line endings
  - Windows-1252 fallback
  - grouping, time-in/time-out lookups, date validation, statistics
"""

from __future__ import annotations

from datetime import date, datetime, time

from app.services import file_parser
from tests.conftest import scan

HEADER = "No\tDevNo\tUserId\tName\tMode\tDateTime"


class TestParseContent:
    def test_stray_seconds_digit_is_dropped(self) -> None:
        records = file_parser.parse_content("1\t1\t10\tJohn Doe\tFP\t2025-11-05 08:00:181")

        assert len(records) == 1
        assert records[0].datetime == datetime(2025, 11, 5, 8, 0, 18)
        assert records[0].datetime.second == 18
        assert records[0].normalized_name == "john doe"

    def test_header_and_double_space(self) -> None:
        content = f"{HEADER}\n1\t1\t10\tNodado A\tFP\t2025-11-05  05:50:25\n"
        records = file_parser.parse_content(content)

        assert len(records) == 1
        assert records[0].raw_name == "Nodado A"
        assert records[0].datetime == datetime(2025, 11, 5, 5, 50, 25)
        assert records[0].device_user_id == "10"
        assert records[0].mode == "FP"

    def test_corrupted_lines_are_dropped_not_fatal(self) -> None:
        content = "\n".join(
            [
                HEADER,
                "1\t1\t10\tNodado A\tFP\t2025-11-05 07:01:00",
                "2\t1\t10\tNodado A\tFP\tnot-a-date",
                "3\t1\t10",
                "",
                "4\t1\t11\tNodado B\tFP\t2025-11-05 22:03:00",
            ]
        )
        result = file_parser.parse_content_with_summary(content)

        assert [r.normalized_name for r in result.records] == ["nodado a", "nodado b"]
        assert result.skipped_lines == 2

    def test_null_bytes_and_mixed_line_endings(self) -> None:
        content = (
            f"{HEADER}\r\n"
            "1\t1\t10\tNo\x00dado A\tFP\t2025-11-05 07:01:00\r"
            "2\t1\t10\tNodado A\tFP\t2025-11-05 16:02:00\n"
        )
        records = file_parser.parse_content(content)

        assert len(records) == 2
        assert all(r.normalized_name == "nodado a" for r in records)

    def test_space_padded_export(self) -> None:
        records = file_parser.parse_content("1  1  10  Nodado A  FP  2025-11-05  07:01:00")

        assert len(records) == 1
        assert records[0].datetime == datetime(2025, 11, 5, 7, 1, 0)

    def test_file_order_is_preserved(self) -> None:
        content = "\n".join(
            [
                HEADER,
                "1\t1\t10\tB\tFP\t2025-11-05 09:00:00",
                "2\t1\t10\tA\tFP\t2025-11-05 08:00:00",
            ]
        )
        assert [r.raw_name for r in file_parser.parse_content(content)] == ["B", "A"]

    def test_windows_1252_fallback(self) -> None:
        raw = f"{HEADER}\n1\t1\t10\tPe\xf1a J\tFP\t2025-11-05 08:00:00\n".encode("cp1252")
        result = file_parser.parse_bytes(raw)

        assert len(result.records) == 1
        assert result.records[0].raw_name == "Peña J"

    def test_round_trip_three_employees(self) -> None:
        names = ["Nodado A", "Nodado B", "Cabarliza M."]
        lines = [HEADER]
        for i in range(12):
            lines.append(f"{i + 1}\t1\t{i}\t{names[i % 3]}\tFP\t2025-11-05 {8 + i % 8:02d}:00:00")
        records = file_parser.parse_content("\n".join(lines))
        groups = file_parser.group_by_employee(records)

        assert len(groups) == 3
        assert sum(len(g) for g in groups.values()) == 12


class TestDerivedOperations:
    records = [
        scan("Nodado A", "2025-11-05 16:01:00"),
        scan("Nodado A", "2025-11-05 06:58:00"),
        scan("Nodado A", "2025-11-05 04:10:00"),
        scan("Nodado A", "2025-11-06 07:05:00"),
    ]

    def test_group_by_employee_sorts(self) -> None:
        groups = file_parser.group_by_employee(self.records)
        times = [r.datetime for r in groups["nodado a"]]
        assert times == sorted(times)

    def test_find_time_in_record(self) -> None:
        first = file_parser.find_time_in_record(self.records, date(2025, 11, 5))
        assert first.datetime == datetime(2025, 11, 5, 4, 10)

    def test_find_time_in_ignores_scans_far_before_schedule(self) -> None:
        found = file_parser.find_time_in_record(self.records, date(2025, 11, 5), time(7, 0))
        assert found.datetime == datetime(2025, 11, 5, 6, 58)

    def test_find_time_in_reaches_previous_evening_for_after_midnight_start(self) -> None:
        records = [scan("Reyes C", "2025-11-05 23:50:00"), scan("Reyes C", "2025-11-06 09:35:00")]

        found = file_parser.find_time_in_record(records, date(2025, 11, 6), time(0, 30))

        assert found.datetime == datetime(2025, 11, 5, 23, 50)
        assert file_parser.find_time_in_record(records, date(2025, 11, 6)).datetime == datetime(2025, 11, 6, 9, 35)

    def test_find_time_in_missing_date(self) -> None:
        assert file_parser.find_time_in_record(self.records, date(2025, 11, 7)) is None

    def test_find_by_time_range(self) -> None:
        found = file_parser.find_time_in_record_by_time_range(self.records, date(2025, 11, 5), 5, 11)
        assert found.datetime == datetime(2025, 11, 5, 6, 58)
        assert file_parser.find_time_in_record_by_time_range(self.records, date(2025, 11, 5), 18, 23) is None

    def test_find_time_out_selects_last(self) -> None:
        found = file_parser.find_time_out_record(self.records, date(2025, 11, 5))
        assert found.datetime == datetime(2025, 11, 5, 16, 1)

        ranged = file_parser.find_time_out_record_by_time_range(self.records, date(2025, 11, 5), 0, 11)
        assert ranged.datetime == datetime(2025, 11, 5, 6, 58)

    def test_validate_file_dates_ok(self) -> None:
        check = file_parser.validate_file_dates(self.records, date(2025, 11, 5))
        assert check["dates_found"] == [date(2025, 11, 5), date(2025, 11, 6)]
        assert check["warnings"] == []

    def test_validate_file_dates_warns_with_all_dates(self) -> None:
        check = file_parser.validate_file_dates(self.records, date(2025, 11, 6))
        assert len(check["warnings"]) == 1
        assert "2025-11-05" in check["warnings"][0]
        assert "2025-11-06" in check["warnings"][0]

    def test_get_statistics(self) -> None:
        stats = file_parser.get_statistics(self.records + [scan("Ogao-Ogao", "2025-11-05 09:00:00")])
        assert stats["total_records"] == 5
        assert stats["unique_employees"] == 2
        assert stats["date_range"]["start"] == datetime(2025, 11, 5, 4, 10)
        assert stats["date_range"]["end"] == datetime(2025, 11, 6, 7, 5)

    def test_get_statistics_empty(self) -> None:
        assert file_parser.get_statistics([])["total_records"] == 0

    def test_filter_by_date_range_keeps_next_morning(self) -> None:
        records = self.records + [scan("Nodado A", "2025-11-08 08:00:00")]
        split = file_parser.filter_by_date_range(records, date(2025, 11, 5), date(2025, 11, 5))

        assert len(split["within_range"]) == 4
        assert len(split["outside_range"]) == 1
        assert split["summary"]["extended_date_to"] == "2025-11-06"
        assert split["summary"]["date_breakdown"]["2025-11-08"] == {"count": 1, "in_range": False}
