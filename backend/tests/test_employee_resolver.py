"""
Employee resolution tests.

Tests:
  - last-name, initial and two-letter stages
  - full-name forms (first last / last first / middle / compound first names)
  - shift-type tie-break with context scans
  - deterministic fallback for unresolved ties
  - fuzzy suggestions for unmatched names
"""

from __future__ import annotations

from datetime import time

from app.services.employee_resolver import EmployeeResolver
from app.services.schedule_directory import ScheduleDirectory
from tests.conftest import scan, scheduled


def _resolver(*employees) -> EmployeeResolver:
    return EmployeeResolver(ScheduleDirectory(list(employees)))


ANGELO = scheduled(1, "Angelo", "Nodado", time(7, 0), time(16, 0))
BENEDICT = scheduled(2, "Benedict", "Nodado", time(22, 0), time(7, 0))
CABARLIZA = scheduled(3, "Maria Cristina", "Cabarliza", time(14, 0), time(23, 0), middle_name="Lopez")
OGAO = scheduled(4, "Mark", "Ogao-Ogao")


class TestStages:
    def test_unique_last_name(self) -> None:
        resolver = _resolver(ANGELO, CABARLIZA, OGAO)
        assert resolver.find_user_by_name("cabarliza").user_id == 3
        assert resolver.find_user_by_name("ogao ogao").user_id == 4

    def test_shared_last_name_by_initial(self) -> None:
        resolver = _resolver(ANGELO, BENEDICT)
        assert resolver.find_user_by_name("nodado a").user_id == 1
        assert resolver.find_user_by_name("nodado b").user_id == 2

    def test_shared_initial_by_two_letters(self) -> None:
        agnes = scheduled(5, "Agnes", "Nodado", time(7, 0), time(16, 0))
        resolver = _resolver(ANGELO, agnes)
        assert resolver.find_user_by_name("nodado an").user_id == 1
        assert resolver.find_user_by_name("nodado ag").user_id == 5
        assert resolver.find_user_by_name("nodado al") is None

    def test_comma_separated_name(self) -> None:
        resolver = _resolver(ANGELO, BENEDICT)
        assert resolver.find_user_by_name("nodado, b").user_id == 2

    def test_full_name_forms(self) -> None:
        resolver = _resolver(ANGELO, BENEDICT, CABARLIZA)
        assert resolver.find_user_by_name("angelo nodado").user_id == 1
        assert resolver.find_user_by_name("nodado benedict").user_id == 2
        assert resolver.find_user_by_name("cabarliza maria").user_id == 3
        assert resolver.find_user_by_name("maria cristina l cabarliza").user_id == 3

    def test_unknown_name(self) -> None:
        resolver = _resolver(ANGELO, BENEDICT)
        assert resolver.find_user_by_name("santos") is None
        assert resolver.find_user_by_name("") is None

    def test_punctuation_only_middle_name(self) -> None:
        dotted = scheduled(6, "Carla", "Reyes", middle_name=".")
        dashed = scheduled(7, "Dan", "Uy", middle_name=" - ")
        resolver = _resolver(ANGELO, dotted, dashed)

        assert resolver.find_user_by_name("someone unknown") is None
        assert resolver.find_user_by_name("carla reyes").user_id == 6
        assert resolver.find_user_by_name("uy dan").user_id == 7


class TestTieBreak:
    def test_shift_type_from_context_scans(self) -> None:
        resolver = _resolver(ANGELO, BENEDICT)
        night_scans = [scan("Nodado", "2025-11-06 07:01:00"), scan("Nodado", "2025-11-05 22:02:00")]
        morning_scans = [scan("Nodado", "2025-11-05 06:55:00"), scan("Nodado", "2025-11-05 16:03:00")]

        assert resolver.find_user_by_name("nodado", night_scans).user_id == 2
        assert resolver.find_user_by_name("nodado", morning_scans).user_id == 1

    def test_fallback_is_deterministic(self) -> None:
        resolver = _resolver(BENEDICT, ANGELO)
        assert resolver.find_user_by_name("nodado").user_id == 1
        afternoon = [scan("Nodado", "2025-11-05 13:00:00")]
        assert resolver.find_user_by_name("nodado", afternoon).user_id == 1


class TestSuggestions:
    def test_close_misspelling_gets_suggestion(self) -> None:
        resolver = _resolver(ANGELO, BENEDICT, CABARLIZA)
        assert resolver.find_user_by_name("nodadoo benedict") is None

        suggestion = resolver.suggest_closest("nodadoo benedict")
        assert suggestion is not None
        assert suggestion[0] == "Benedict Nodado"

    def test_unrelated_name_has_no_suggestion(self) -> None:
        resolver = _resolver(ANGELO, BENEDICT)
        assert resolver.suggest_closest("zzzz qqqq") is None
