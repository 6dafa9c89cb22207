"""Name normalization tests."""

import pytest

from app.services.name_normalizer import normalize_name


class TestNormalizeName:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Cabarliza M.", "cabarliza m"),
            ("Ogao-Ogao", "ogao ogao"),
            ("John    Doe", "john doe"),
            ("  Nodado A ", "nodado a"),
            ("Dela\tCruz J.R.", "dela cruz jr"),
            ("", ""),
        ],
    )
    def test_examples(self, raw: str, expected: str) -> None:
        assert normalize_name(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        ["Cabarliza M.", "Ogao-Ogao", "  A.-B.  c ", "--", "Ñoño Pérez", "x"],
    )
    def test_idempotent(self, raw: str) -> None:
        once = normalize_name(raw)
        assert normalize_name(once) == once

    def test_hyphen_run_collapses_to_single_space(self) -> None:
        assert normalize_name("Santos--Reyes") == "santos reyes"
