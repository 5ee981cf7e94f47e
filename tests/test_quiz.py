"""Tests for quiz metadata normalization, reconstruction and the quiz log."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest
from freezegun import freeze_time
from hypothesis import given, settings as hsettings
from hypothesis import strategies as st

from storefront.checkout.models import QuizAnswers
from storefront.checkout.quiz import (
    MAX_BRAND_LENGTH,
    MAX_YEAR_LENGTH,
    QuizLog,
    normalize_quiz,
    reconstruct_quiz,
)
from storefront.errors import LogAppendError


# ── Normalization ─────────────────────────────────────────────────────────


class TestQuizAnswersCoercion:
    def test_numeric_text_fields_are_stringified(self):
        quiz = QuizAnswers.model_validate({"brand": 500, "year": 2018})
        assert (quiz.brand, quiz.year) == ("500", "2018")

    @pytest.mark.parametrize("raw", ["150cv", "", "nan", {"hp": 150}, [150], True])
    def test_unparseable_power_is_dropped(self, raw):
        quiz = QuizAnswers.model_validate({"brand": "Fiat", "enginePowerHp": raw})
        assert quiz.engine_power_hp is None
        assert normalize_quiz(quiz) == {"vehicle_brand": "Fiat"}

    def test_numeric_power_string_is_accepted(self):
        assert QuizAnswers.model_validate({"enginePowerHp": "150"}).engine_power_hp == 150

    @pytest.mark.parametrize(
        "raw,expected",
        [("true", True), ("False", False), ("1", True), (0, False), ("sim", None), ({}, None)],
    )
    def test_flag_coercion(self, raw, expected):
        assert QuizAnswers.model_validate({"moreTorque": raw}).more_torque is expected

    def test_nested_text_is_dropped(self):
        quiz = QuizAnswers.model_validate({"brand": {"name": "Fiat"}, "year": ["2018"]})
        assert normalize_quiz(quiz) == {}


class TestNormalizeQuiz:
    def test_none_gives_empty_mapping(self):
        assert normalize_quiz(None) == {}

    def test_all_fields(self):
        quiz = QuizAnswers(
            brand="Volkswagen",
            year="2019",
            enginePowerHp=150,
            moreTorque=True,
            throttleResponse=False,
            reduceLag=True,
        )
        assert normalize_quiz(quiz) == {
            "vehicle_brand": "Volkswagen",
            "vehicle_year": "2019",
            "engine_power_hp": "150",
            "pref_more_torque": "true",
            "pref_throttle_response": "false",
            "pref_reduce_lag": "true",
        }

    def test_absent_fields_are_omitted(self):
        """Unset flags are not silently written as false."""
        assert normalize_quiz(QuizAnswers(brand="Fiat")) == {"vehicle_brand": "Fiat"}

    def test_empty_strings_are_omitted(self):
        assert normalize_quiz(QuizAnswers(brand="", year="")) == {}

    def test_numeric_year_is_accepted(self):
        assert normalize_quiz(QuizAnswers.model_validate({"year": 2021})) == {"vehicle_year": "2021"}

    def test_fractional_power_kept(self):
        assert normalize_quiz(QuizAnswers(enginePowerHp=99.5))["engine_power_hp"] == "99.5"

    def test_zero_power_is_present(self):
        assert normalize_quiz(QuizAnswers(enginePowerHp=0))["engine_power_hp"] == "0"

    @given(brand=st.text(min_size=MAX_BRAND_LENGTH + 1, max_size=200))
    @hsettings(max_examples=50)
    def test_long_brand_truncated_to_exactly_50(self, brand):
        md = normalize_quiz(QuizAnswers(brand=brand))
        assert md["vehicle_brand"] == brand[:MAX_BRAND_LENGTH]
        assert len(md["vehicle_brand"]) == 50

    @given(year=st.text(min_size=MAX_YEAR_LENGTH + 1, max_size=60))
    @hsettings(max_examples=50)
    def test_long_year_truncated_to_exactly_10(self, year):
        md = normalize_quiz(QuizAnswers(year=year))
        assert len(md["vehicle_year"]) == 10

    def test_short_strings_unchanged(self):
        md = normalize_quiz(QuizAnswers(brand="a" * 50, year="b" * 10))
        assert md["vehicle_brand"] == "a" * 50
        assert md["vehicle_year"] == "b" * 10


# ── Reconstruction ────────────────────────────────────────────────────────


class TestReconstructQuiz:
    def test_missing_metadata_gives_defaults(self):
        assert reconstruct_quiz(None) == {
            "brand": None,
            "year": None,
            "enginePowerHp": None,
            "moreTorque": False,
            "throttleResponse": False,
            "reduceLag": False,
        }

    def test_flags_true_only_for_literal_true(self):
        quiz = reconstruct_quiz(
            {"pref_more_torque": "true", "pref_throttle_response": "True", "pref_reduce_lag": "1"}
        )
        assert quiz["moreTorque"] is True
        assert quiz["throttleResponse"] is False
        assert quiz["reduceLag"] is False

    def test_power_parsed_as_number(self):
        assert reconstruct_quiz({"engine_power_hp": "150"})["enginePowerHp"] == 150
        assert reconstruct_quiz({"engine_power_hp": "99.5"})["enginePowerHp"] == 99.5

    def test_unparsable_power_is_none(self):
        assert reconstruct_quiz({"engine_power_hp": "lots"})["enginePowerHp"] is None

    @given(
        power=st.one_of(
            st.integers(min_value=0, max_value=5000),
            st.floats(min_value=0, max_value=5000, allow_nan=False, allow_infinity=False),
        ),
        flags=st.tuples(st.booleans(), st.booleans(), st.booleans()),
    )
    def test_round_trip_exact(self, power, flags):
        quiz = QuizAnswers(
            brand="Ford",
            year="2020",
            enginePowerHp=power,
            moreTorque=flags[0],
            throttleResponse=flags[1],
            reduceLag=flags[2],
        )
        rebuilt = reconstruct_quiz(normalize_quiz(quiz))
        assert rebuilt["enginePowerHp"] == power
        assert (rebuilt["moreTorque"], rebuilt["throttleResponse"], rebuilt["reduceLag"]) == flags


# ── Quiz log ──────────────────────────────────────────────────────────────


class TestQuizLog:
    @pytest.mark.asyncio
    async def test_append_writes_one_line(self, tmp_path):
        log = QuizLog(tmp_path / "data" / "quiz_submissions.jsonl")
        await log.append({"vehicle_brand": "Fiat"})
        lines = log.path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["vehicle_brand"] == "Fiat"
        assert "ts" in entry

    @freeze_time("2026-03-02 18:00:00.250")
    def test_entry_timestamp_is_utc_milliseconds(self):
        entry = QuizLog.make_entry({"vehicle_year": "2019"})
        assert entry == {"ts": "2026-03-02T18:00:00.250Z", "vehicle_year": "2019"}

    def test_entry_timestamp_converts_to_utc(self):
        now = datetime(2026, 3, 2, 15, 0, tzinfo=timezone(timedelta(hours=-3)))
        assert QuizLog.make_entry({}, now)["ts"] == "2026-03-02T18:00:00.000Z"

    @pytest.mark.asyncio
    async def test_concurrent_appends_keep_whole_lines(self, tmp_path, read_quiz_log):
        log = QuizLog(tmp_path / "quiz.jsonl")
        await asyncio.gather(*(log.append({"vehicle_brand": f"brand-{i}" * 20}) for i in range(50)))
        entries = read_quiz_log(log.path)
        assert len(entries) == 50
        assert {e["vehicle_brand"] for e in entries} == {f"brand-{i}" * 20 for i in range(50)}

    @pytest.mark.asyncio
    async def test_append_failure_raises_log_append_error(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        log = QuizLog(blocker / "quiz.jsonl")
        with pytest.raises(LogAppendError):
            await log.append({"vehicle_brand": "Fiat"})
