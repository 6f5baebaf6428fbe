"""Tests for session classification."""
from __future__ import annotations

from datetime import date

import pytest

from plan_sync.models.schemas import AthleteBaseline, Split, WorkoutType
from plan_sync.services.workout_classifier import (
    calculate_pace_variation,
    classify_session,
    extract_keywords,
    load_keyword_patterns,
    normalize_activity_kind,
)

from builders import build_session


DAY = date(2025, 1, 1)


class TestActivityKind:
    """Test tracker kind normalization."""

    @pytest.mark.parametrize("raw", ["Run", "running", "TrailRun", "VirtualRun", " run "])
    def test_run_aliases(self, raw):
        assert normalize_activity_kind(raw) == "run"

    def test_ride_aliases(self):
        assert normalize_activity_kind("VirtualRide") == "ride"
        assert normalize_activity_kind("cycling") == "ride"

    def test_unknown_kind_is_lowercased(self):
        assert normalize_activity_kind("Rowing") == "rowing"

    def test_missing_kind(self):
        assert normalize_activity_kind(None) is None

    def test_other_kinds_are_not_classified(self, baseline):
        ride = build_session(1, DAY, activity_type="Ride")
        assert classify_session(ride, baseline) is None

    def test_trail_run_is_classified(self, baseline):
        assert classify_session(build_session(1, DAY, activity_type="TrailRun"), baseline) is not None


class TestKeywordRules:
    """Keyword evidence is checked before numeric evidence."""

    def test_race_keyword_wins(self, baseline):
        result = classify_session(build_session(1, DAY, name="Saturday parkrun 5k"), baseline)
        assert result.type == WorkoutType.RACE

    def test_interval_keyword(self, baseline):
        result = classify_session(build_session(1, DAY, name="Track 800m repeats", minutes=100), baseline)
        assert result.type == WorkoutType.INTERVAL

    def test_tempo_keyword(self, baseline):
        result = classify_session(build_session(1, DAY, name="Threshold session", pace_min_km=6.5), baseline)
        assert result.type == WorkoutType.TEMPO

    def test_spanish_long_run_keyword(self, baseline):
        result = classify_session(build_session(1, DAY, name="Tirada larga domingo"), baseline)
        assert result.type == WorkoutType.LONG_RUN

    def test_easy_keyword_is_low_priority(self, baseline):
        # Fast relative pace beats the easy keyword.
        result = classify_session(build_session(1, DAY, name="Easy run", pace_min_km=4.5), baseline)
        assert result.type == WorkoutType.TEMPO

    def test_extract_keywords_empty_name(self):
        signals = extract_keywords(None)
        assert not any([signals.race, signals.interval, signals.tempo, signals.long_run, signals.easy])


class TestNumericRules:
    """Rules driven by duration, pace and distance."""

    def test_long_duration(self, baseline):
        result = classify_session(build_session(1, DAY, minutes=95), baseline)
        assert result.type == WorkoutType.LONG_RUN

    def test_high_pace_variation(self, baseline):
        splits = tuple(Split(distance=1000, moving_time=t) for t in (240, 360, 240, 360))
        assert calculate_pace_variation(build_session(1, DAY, splits=splits)) == pytest.approx(0.2)

        result = classify_session(build_session(1, DAY, splits=splits), baseline)
        assert result.type == WorkoutType.INTERVAL

    def test_pace_variation_needs_two_splits(self):
        session = build_session(1, DAY, splits=(Split(distance=1000, moving_time=300),))
        assert calculate_pace_variation(session) is None

    def test_fast_pace_is_tempo(self, baseline):
        result = classify_session(build_session(1, DAY, pace_min_km=4.5), baseline)
        assert result.type == WorkoutType.TEMPO

    def test_slow_short_run_is_recovery(self, baseline):
        result = classify_session(build_session(1, DAY, pace_min_km=6.5, minutes=20), baseline)
        assert result.type == WorkoutType.RECOVERY

    def test_slow_run_is_easy(self, baseline):
        result = classify_session(build_session(1, DAY, pace_min_km=6.5, minutes=40), baseline)
        assert result.type == WorkoutType.EASY_RUN

    def test_distance_close_to_longest(self):
        baseline = AthleteBaseline(longest_distance=10.0, avg_distance=8.0)
        # 8.5 km at 5:30/km
        result = classify_session(build_session(1, DAY, minutes=46.75, pace_min_km=5.5), baseline)
        assert result.type == WorkoutType.LONG_RUN

    def test_short_distance_is_recovery(self):
        baseline = AthleteBaseline(longest_distance=30.0, avg_distance=10.0)
        # 3 km
        result = classify_session(build_session(1, DAY, minutes=16.5, pace_min_km=5.5), baseline)
        assert result.type == WorkoutType.RECOVERY

    def test_default_without_baseline(self):
        result = classify_session(build_session(1, DAY), None)
        assert result.type == WorkoutType.EASY_RUN
        assert result.confidence == 0.5
        assert result.signals.relative_pace is None


class TestConfidence:
    """Confidence reflects how much evidence backed the decision."""

    def test_all_signals_clamped_to_one(self, baseline):
        splits = tuple(Split(distance=1000, moving_time=300) for _ in range(3))
        session = build_session(
            1,
            DAY,
            name="Intervals",
            average_heartrate=160,
            average_cadence=172,
            splits=splits,
        )
        assert classify_session(session, baseline).confidence == 1.0

    def test_fast_and_very_long_is_penalised(self, baseline):
        # 17.8 km at 4:30/km against a 21 km longest run
        result = classify_session(build_session(1, DAY, minutes=80, pace_min_km=4.5), baseline)
        assert result.type == WorkoutType.TEMPO
        assert result.confidence == 0.55

    def test_only_first_keyword_counts(self):
        result = classify_session(build_session(1, DAY, name="Easy tempo"), None)
        assert result.confidence == 0.7

    def test_heart_rate_bonus(self):
        result = classify_session(build_session(1, DAY, average_heartrate=150), None)
        assert result.confidence == 0.65


class TestKeywordConfig:
    """Keyword vocabulary can be overridden from YAML."""

    def test_yaml_override(self, tmp_path):
        config = tmp_path / "keywords.yaml"
        config.write_text("classifier_keywords:\n  interval:\n    - hill sprints\n", encoding="utf-8")

        patterns = load_keyword_patterns(config)
        result = classify_session(build_session(1, DAY, name="Hill sprints"), None, keyword_patterns=patterns)

        assert result.type == WorkoutType.INTERVAL
        # Categories missing from the file keep their defaults
        assert patterns["race"].search("parkrun")

    def test_empty_yaml_uses_defaults(self, tmp_path):
        config = tmp_path / "empty.yaml"
        config.write_text("", encoding="utf-8")

        patterns = load_keyword_patterns(config)
        assert patterns["tempo"].search("Tempo Tuesday")
