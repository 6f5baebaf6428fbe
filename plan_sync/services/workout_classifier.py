"""Classify recorded sessions into semantic workout types.

Signals used:
    - Pace variation (coefficient of variation across splits)
    - Relative pace (session pace vs. athlete average)
    - Relative distance (vs. longest and average runs)
    - Duration
    - Keywords in the session name (English and Spanish vocabulary)

Keyword rules are evaluated before any numeric rule.
"""
from __future__ import annotations

import logging
import re
import statistics
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from plan_sync.models.schemas import (
    AthleteBaseline,
    Classification,
    ClassificationSignals,
    DistanceRatios,
    KeywordSignals,
    RecordedSession,
    WorkoutType,
)


logger = logging.getLogger(__name__)

KEYWORD_CATEGORIES = ("race", "interval", "tempo", "long_run", "easy")

DEFAULT_KEYWORDS: dict[str, list[str]] = {
    "interval": [
        r"interval", r"repeat", r"track", r"400m", r"800m", r"1000m",
        r"speed ?work", r"fartlek", r"series", r"intervalos",
    ],
    "tempo": [
        r"tempo", r"threshold", r"lt run", r"lactate", r"steady state",
        r"umbral", r"ritmo controlado",
    ],
    "long_run": [
        r"long run", r"long", r"marathon", r"half marathon", r"20k", r"25k", r"30k",
        r"tirada larga", r"fondo", r"rodaje largo",
    ],
    "easy": [
        r"easy", r"recovery", r"shake.*out", r"shakeout", r"base", r"aerobic",
        r"suave", r"recuperaci[oó]n", r"regenerativo",
    ],
    "race": [
        r"race", r"5k", r"10k", r"half", r"marathon", r"parkrun", r"competition",
        r"carrera", r"competici[oó]n", r"media marat[oó]n",
    ],
}

KEYWORD_CONFIDENCE_BONUS = {
    "race": 0.20,
    "interval": 0.20,
    "tempo": 0.20,
    "long_run": 0.15,
    "easy": 0.10,
}

_ACTIVITY_KIND_ALIASES = {
    "run": "run",
    "running": "run",
    "trailrun": "run",
    "trail_run": "run",
    "virtualrun": "run",
    "treadmill": "run",
    "ride": "ride",
    "bike": "ride",
    "cycling": "ride",
    "virtualride": "ride",
    "ebikeride": "ride",
    "swim": "swim",
    "swimming": "swim",
    "walk": "walk",
    "walking": "walk",
    "hike": "walk",
}


def normalize_activity_kind(activity_type: str | None) -> str | None:
    """Map tracker-specific activity labels onto a small set of kinds."""
    if not activity_type:
        return None
    normalized = activity_type.strip().lower()
    return _ACTIVITY_KIND_ALIASES.get(normalized, normalized)


def _compile(terms: dict[str, list[str]]) -> dict[str, re.Pattern[str]]:
    compiled: dict[str, re.Pattern[str]] = {}
    for category in KEYWORD_CATEGORIES:
        words = terms.get(category) or DEFAULT_KEYWORDS[category]
        compiled[category] = re.compile("|".join(words), re.IGNORECASE)
    return compiled


@lru_cache(maxsize=8)
def load_keyword_patterns(config_path: Path | None = None) -> dict[str, re.Pattern[str]]:
    """
    Build the keyword regexes, optionally overridden from a YAML file.

    The YAML file maps category names (race, interval, tempo, long_run, easy)
    to lists of regex fragments. Missing categories keep the defaults.
    """
    if config_path is None:
        return _compile(DEFAULT_KEYWORDS)

    with Path(config_path).open("r", encoding="utf-8") as fh:
        loaded: Any = yaml.safe_load(fh) or {}

    terms = loaded.get("classifier_keywords", loaded) if isinstance(loaded, dict) else {}
    if not terms:
        logger.warning("No classifier keywords in %s - using defaults", config_path)
        return _compile(DEFAULT_KEYWORDS)

    logger.info("Loaded classifier keywords from %s", config_path)
    return _compile({k: list(v) for k, v in terms.items() if isinstance(v, list)})


def calculate_pace_variation(session: RecordedSession) -> float | None:
    """
    Coefficient of variation (stdev / mean) of per-split pace.

    Returns None when fewer than two usable splits are available.
    """
    paces = [
        (split.moving_time / 60) / (split.distance / 1000)
        for split in session.splits
        if split.distance > 0 and split.moving_time > 0
    ]
    if len(paces) < 2:
        return None

    mean = statistics.fmean(paces)
    if mean <= 0:
        return 0.0
    return statistics.pstdev(paces) / mean


def session_pace(session: RecordedSession) -> float | None:
    """Session pace in min/km from average speed (m/s)."""
    if not session.average_speed:
        return None
    return 1000 / (session.average_speed * 60)


def get_relative_pace(session: RecordedSession, baseline: AthleteBaseline | None) -> float | None:
    """Session pace divided by baseline pace; below 1.0 means faster than usual."""
    pace = session_pace(session)
    if pace is None or baseline is None or not baseline.avg_pace:
        return None
    return pace / baseline.avg_pace


def get_relative_distance(
    session: RecordedSession,
    baseline: AthleteBaseline | None,
) -> DistanceRatios | None:
    if not session.distance or baseline is None:
        return None

    distance_km = session.distance / 1000
    return DistanceRatios(
        to_longest=distance_km / baseline.longest_distance if baseline.longest_distance else None,
        to_average=distance_km / baseline.avg_distance if baseline.avg_distance else None,
    )


def extract_keywords(
    name: str | None,
    patterns: dict[str, re.Pattern[str]] | None = None,
) -> KeywordSignals:
    if not name:
        return KeywordSignals()

    patterns = patterns or load_keyword_patterns()
    return KeywordSignals(**{
        category: bool(pattern.search(name))
        for category, pattern in patterns.items()
    })


def first_keyword(keywords: KeywordSignals) -> str | None:
    """Highest-priority keyword category present, if any."""
    for category in KEYWORD_CATEGORIES:
        if getattr(keywords, category):
            return category
    return None


def determine_workout_type(signals: ClassificationSignals) -> WorkoutType:
    """Apply the ordered decision rules; the first rule that fires wins."""
    keywords = signals.keywords

    if keywords.race:
        return WorkoutType.RACE
    if keywords.interval:
        return WorkoutType.INTERVAL
    if keywords.tempo:
        return WorkoutType.TEMPO
    if keywords.long_run:
        return WorkoutType.LONG_RUN

    if signals.duration_min > 90:
        return WorkoutType.LONG_RUN

    if signals.pace_variation is not None and signals.pace_variation > 0.15:
        return WorkoutType.INTERVAL

    relative_pace = signals.relative_pace
    if relative_pace is not None:
        if relative_pace < 0.90:
            return WorkoutType.TEMPO
        if relative_pace > 1.05:
            if signals.duration_min and signals.duration_min < 25:
                return WorkoutType.RECOVERY
            return WorkoutType.EASY_RUN

    ratios = signals.relative_distance
    if ratios is not None and ratios.to_longest is not None:
        if ratios.to_longest > 0.75:
            return WorkoutType.LONG_RUN
        if ratios.to_average is not None and ratios.to_average < 0.4:
            return WorkoutType.RECOVERY

    if keywords.easy:
        return WorkoutType.EASY_RUN

    return WorkoutType.EASY_RUN


def calculate_confidence(signals: ClassificationSignals, session: RecordedSession) -> float:
    """
    Score how much evidence backed the classification.

    Starts at 0.5 and adds a bonus per available signal plus one keyword
    bonus for the highest-priority keyword matched. Fast pace combined with
    near-longest distance is contradictory and costs 0.10.
    """
    confidence = 0.5

    if signals.relative_pace is not None:
        confidence += 0.15
    if session.has_heartrate or session.average_heartrate:
        confidence += 0.15
    if signals.pace_variation is not None:
        confidence += 0.10
    if session.average_cadence:
        confidence += 0.05

    category = first_keyword(signals.keywords)
    if category is not None:
        confidence += KEYWORD_CONFIDENCE_BONUS[category]

    ratios = signals.relative_distance
    if (
        signals.relative_pace is not None
        and signals.relative_pace < 0.90
        and ratios is not None
        and ratios.to_longest is not None
        and ratios.to_longest > 0.8
    ):
        confidence -= 0.10

    return round(min(1.0, max(0.0, confidence)), 2)


def classify_session(
    session: RecordedSession,
    baseline: AthleteBaseline | None,
    tracked_kind: str = "run",
    keyword_patterns: dict[str, re.Pattern[str]] | None = None,
) -> Classification | None:
    """
    Classify a session by workout type.

    Args:
        session: Recorded session from the tracker
        baseline: Athlete baseline, or None when history is unavailable
        tracked_kind: Activity kind the plan is built around (default: run)
        keyword_patterns: Optional precompiled keyword regexes

    Returns:
        Classification with type, confidence and signal breakdown, or None if
        the session is not of the tracked kind.
    """
    if normalize_activity_kind(session.activity_type) != tracked_kind:
        return None

    signals = ClassificationSignals(
        pace_variation=calculate_pace_variation(session),
        relative_pace=get_relative_pace(session, baseline),
        relative_distance=get_relative_distance(session, baseline),
        duration_min=(session.moving_time or 0) / 60,
        keywords=extract_keywords(session.name, keyword_patterns),
    )

    workout_type = determine_workout_type(signals)
    confidence = calculate_confidence(signals, session)

    logger.debug(
        "Classified session %s as %s (confidence=%.2f)",
        session.id,
        workout_type.value,
        confidence,
    )
    return Classification(type=workout_type, confidence=confidence, signals=signals)
