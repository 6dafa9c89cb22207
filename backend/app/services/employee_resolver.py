"""
Employee name resolution.

Maps a normalized device name to one employee with an active schedule.
Devices print names in many shapes ("nodado", "nodado a", "nodado an",
"angelo nodado"), so candidates are narrowed by an ordered chain of filter
stages; the first stage that yields anyone wins.  Remaining ties are broken by
comparing the shift type of each candidate with the hour of the scans.

thefuzz is used only to suggest a likely employee for names that did not
resolve; it never resolves a name by itself.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from thefuzz import fuzz

from app.core.config import settings
from app.schemas.attendance import ScanRecord
from app.services.name_normalizer import normalize_name
from app.services.schedule_directory import ScheduleDirectory, ScheduledEmployee
from app.services.shift_calendar import determine_shift_type, shift_type_for_hour

logger = logging.getLogger(__name__)

_ws_re = re.compile(r"\s+")

Stage = Callable[[str, ScheduledEmployee], bool]


def _clean_query(name: str) -> str:
    return _ws_re.sub(" ", normalize_name(name).replace(",", " ")).strip()


def _last_name_only(query: str, e: ScheduledEmployee) -> bool:
    return query == e.normalized_last_name


def _last_name_initial(query: str, e: ScheduledEmployee) -> bool:
    first = e.normalized_first_name
    return bool(first) and query == f"{e.normalized_last_name} {first[0]}"


def _last_name_two_letters(query: str, e: ScheduledEmployee) -> bool:
    first = e.normalized_first_name
    return len(first) >= 2 and query == f"{e.normalized_last_name} {first[:2]}"


def _full_name_forms(e: ScheduledEmployee) -> set[str]:
    last = e.normalized_last_name
    first = e.normalized_first_name
    forms = {f"{last} {first}", f"{first} {last}"}

    # Compound first names ("maria cristina") are often printed with the first word only
    first_word = first.split(" ")[0] if first else ""
    if first_word and first_word != first:
        forms |= {f"{last} {first_word}", f"{first_word} {last}"}

    middle = normalize_name(e.middle_name or "")
    if middle:
        forms |= {
            f"{last} {first} {middle}",
            f"{first} {middle} {last}",
            f"{first} {middle[0]} {last}",
            f"{last} {first} {middle[0]}",
        }
    return forms


def _full_name(query: str, e: ScheduledEmployee) -> bool:
    return query in _full_name_forms(e)


STAGES: list[Stage] = [
    _last_name_only,
    _last_name_initial,
    _last_name_two_letters,
    _full_name,
]


def _first_prefix_key(e: ScheduledEmployee) -> tuple[str, int]:
    return e.normalized_first_name[:2], e.user_id


class EmployeeResolver:
    def __init__(self, directory: ScheduleDirectory) -> None:
        self.directory = directory

    def candidates_for(self, normalized_name: str) -> list[ScheduledEmployee]:
        """Candidates of the first stage that matches anyone; empty if none does."""
        query = _clean_query(normalized_name)
        if not query:
            return []

        pool = self.directory.active()
        for stage in STAGES:
            hits = [e for e in pool if stage(query, e)]
            if hits:
                return hits
        return []

    def find_user_by_name(
        self,
        normalized_name: str,
        context_records: list[ScanRecord] | None = None,
    ) -> ScheduledEmployee | None:
        candidates = self.candidates_for(normalized_name)
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0]

        if context_records:
            earliest = min(context_records, key=lambda r: r.datetime)
            scan_shift = shift_type_for_hour(earliest.hour)
            by_shift = [c for c in candidates if determine_shift_type(c) == scan_shift]
            if len(by_shift) == 1:
                logger.debug(
                    "'%s' resolved by shift type %s to user %d",
                    normalized_name, scan_shift, by_shift[0].user_id,
                )
                return by_shift[0]
            if by_shift:
                candidates = by_shift

        chosen = sorted(candidates, key=_first_prefix_key)[0]
        logger.warning(
            "Ambiguous name '%s' (%d candidates: %s); picked user %d",
            normalized_name,
            len(candidates),
            ", ".join(c.name for c in candidates),
            chosen.user_id,
        )
        return chosen

    def suggest_closest(self, normalized_name: str) -> tuple[str, int] | None:
        """Best fuzzy match among active employees, if it reaches FUZZY_SUGGEST_THRESHOLD."""
        query = _clean_query(normalized_name)
        if not query:
            return None

        best_score = 0
        best_name: str | None = None
        for employee in self.directory.active():
            score = max(
                fuzz.token_sort_ratio(query, f"{employee.first_name} {employee.last_name}"),
                fuzz.token_sort_ratio(query, f"{employee.last_name} {employee.first_name[:1]}"),
            )
            if score > best_score:
                best_score = score
                best_name = employee.name

        if best_name is not None and best_score >= settings.FUZZY_SUGGEST_THRESHOLD:
            return best_name, best_score
        return None
