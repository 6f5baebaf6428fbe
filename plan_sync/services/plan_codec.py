"""Normalize stored plan documents into structured schedules.

Older plans store each day as a pipe-delimited string::

    day_name|day_index|is_rest_day|is_completed|activity_category|activity_title|total_duration_min|segments

where ``segments`` is a ``||``-joined list of
``KIND:description,<value> <min|km|m>,Zone <n>`` entries. Those records are
converted here, at the store boundary, so the matching core only ever sees
structured slots.
"""
from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import ValidationError

from plan_sync.exceptions import InvalidPlanStructureError
from plan_sync.models.schemas import PlanData


logger = logging.getLogger(__name__)

_HEADER_FIELDS = 7
_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(min|km|m)\b")
_ZONE_RE = re.compile(r"Zone\s*(\d+)", re.IGNORECASE)


def _to_int(value: str, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def parse_segment(raw: str) -> dict[str, Any] | None:
    """Parse ``KIND:description,30 min,Zone 2``; returns None if malformed."""
    trimmed = raw.strip()
    if not trimmed:
        return None

    parts = trimmed.split(",")
    if len(parts) < 3:
        logger.warning("Invalid segment format (missing parts): %s", trimmed)
        return None

    type_and_desc, duration, zone = parts[0], parts[1], parts[2]
    segment_type, _, description = type_and_desc.partition(":")

    duration_match = _DURATION_RE.search(duration.strip())
    if not duration_match:
        logger.warning("Invalid segment duration: %s", duration)
        return None

    zone_match = _ZONE_RE.search(zone.strip())
    if not zone_match:
        logger.warning("Invalid segment zone: %s", zone)
        return None

    zone_value = int(zone_match.group(1))
    return {
        "segment_type": segment_type.strip().upper(),
        "description": description.strip(),
        "duration_value": float(duration_match.group(1)),
        "duration_unit": duration_match.group(2),
        "intensity_zone": zone_value if 1 <= zone_value <= 5 else None,
    }


def parse_day_string(raw: str) -> dict[str, Any]:
    """Convert one pipe-delimited day record into slot fields."""
    # Segments are joined with "||", so only the header pipes may be split on.
    parts = raw.split("|", _HEADER_FIELDS)
    if len(parts) <= _HEADER_FIELDS:
        logger.warning("Invalid day format (not enough fields), using defaults: %s", raw)
        parts = parts + [""] * (_HEADER_FIELDS + 1 - len(parts))
        parts[_HEADER_FIELDS] = ""

    day_name, day_index, is_rest, is_completed, category, title, duration, raw_segments = parts
    segments = [
        segment
        for segment in (parse_segment(s) for s in raw_segments.split("||"))
        if segment is not None
    ] if raw_segments.strip() else []

    return {
        "day_name": day_name or "Monday",
        "day_index": _to_int(day_index),
        "is_rest_day": is_rest.strip().lower() == "true",
        "is_completed": is_completed.strip().lower() == "true",
        "activity_category": category or "REST",
        "activity_title": title or "Rest day",
        "total_estimated_duration_min": _to_int(duration) or None,
        "workout_structure": segments,
    }


def normalize_day(raw: Any) -> dict[str, Any]:
    if isinstance(raw, str):
        return parse_day_string(raw)
    if not isinstance(raw, dict):
        raise InvalidPlanStructureError(f"Unsupported day record: {type(raw).__name__}")

    day = dict(raw)
    segments = day.pop("workout_structure", None) or day.pop("workouts", None) or day.pop("segments", None) or []
    if not isinstance(segments, list):
        segments = [segments]
    day["workout_structure"] = segments

    # Older documents name the session link after the tracker.
    if "matched_activity_id" in day and "matched_session_id" not in day:
        day["matched_session_id"] = day.pop("matched_activity_id")
    return day


def normalize_plan_document(document: dict[str, Any] | None, fallback_start=None) -> PlanData:
    """
    Turn a stored plan JSON document into a validated PlanData.

    The start date is read from ``start_date``, then ``meta.start_date``, then
    ``fallback_start`` (the plan record's own start date).

    Raises:
        InvalidPlanStructureError: if the document has no schedule or fails validation
    """
    if not document or not isinstance(document, dict) or not document.get("schedule"):
        raise InvalidPlanStructureError("Invalid plan structure - missing schedule")

    meta = document.get("meta") or {}
    start_date = document.get("start_date") or meta.get("start_date") or fallback_start

    normalized = {
        **document,
        "start_date": start_date,
        "schedule": [
            {**week, "days": [normalize_day(day) for day in week.get("days", [])]}
            for week in document["schedule"]
        ],
    }

    try:
        return PlanData.model_validate(normalized)
    except ValidationError as exc:
        raise InvalidPlanStructureError(f"Invalid plan structure: {exc}") from exc


def serialize_plan_data(plan_data: PlanData) -> dict[str, Any]:
    """JSON-ready representation for persistence."""
    return plan_data.model_dump(mode="json")
