"""Plan adherence statistics, trends and warnings."""
from __future__ import annotations

from datetime import date
from typing import Any

from plan_sync.models.schemas import PlanData, PlanWeek
from plan_sync.services.plan_calendar import calculate_day_date, week_date_range


def calculate_week_compliance(
    week: PlanWeek | None,
    week_index: int = 0,
    start_date: date | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """
    Count completed and missed workouts for one week.

    A slot counts as missed when explicitly flagged, or, when the plan start
    date is known, when it is unresolved and its date is before ``today``.
    """
    if week is None or not week.days:
        return {
            "total_workouts": 0,
            "completed_workouts": 0,
            "missed_workouts": 0,
            "compliance_rate": 0.0,
            "missed_days": [],
        }

    today = today or date.today()
    total = 0
    completed = 0
    missed_days: list[dict[str, Any]] = []

    for day_index, day in enumerate(week.days):
        if day.is_rest_day:
            continue
        total += 1

        if day.is_completed or day.matched_session_id is not None:
            completed += 1
            continue

        overdue = start_date is not None and calculate_day_date(start_date, week_index, day_index) < today
        if day.is_missed or overdue:
            missed_days.append({
                "day_name": day.day_name,
                "day_index": day_index,
                "activity_title": day.activity_title,
                "is_missed": day.is_missed,
            })

    return {
        "total_workouts": total,
        "completed_workouts": completed,
        "missed_workouts": len(missed_days),
        "compliance_rate": (completed / total) * 100 if total else 0.0,
        "missed_days": missed_days,
    }


def analyze_plan_compliance(plan_data: PlanData, today: date | None = None) -> dict[str, Any]:
    """
    Analyze adherence across the whole plan.

    Returns:
        Dict with overall_compliance_rate (past and current weeks only),
        weekly_compliance, trends and warnings
    """
    today = today or date.today()
    weekly: list[dict[str, Any]] = []

    for week_index, week in enumerate(plan_data.schedule):
        week_start, week_end = week_date_range(plan_data.start_date, week_index)
        if today > week_end:
            status = "past"
        elif week_start <= today <= week_end:
            status = "current"
        else:
            status = "future"

        weekly.append({
            "week_number": week.week_number if week.week_number is not None else week_index + 1,
            "week_index": week_index,
            "phase": week.phase_name,
            **calculate_week_compliance(week, week_index, plan_data.start_date, today),
            "week_status": status,
            "week_range": {"start": week_start.isoformat(), "end": week_end.isoformat()},
        })

    relevant = [w for w in weekly if w["week_status"] != "future"]
    overall_total = sum(w["total_workouts"] for w in relevant)
    overall_completed = sum(w["completed_workouts"] for w in relevant)
    overall_rate = (overall_completed / overall_total) * 100 if overall_total else 0.0

    trends = detect_trends(weekly)
    return {
        "overall_compliance_rate": round(overall_rate),
        "weekly_compliance": weekly,
        "trends": trends,
        "warnings": generate_warnings(weekly, trends),
    }


def detect_trends(weekly: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Look at the last three finished weeks for low or shifting compliance."""
    past = [w for w in weekly if w["week_status"] == "past"]
    if len(past) < 2:
        return []

    recent = past[-3:]
    avg = sum(w["compliance_rate"] for w in recent) / len(recent)
    trends: list[dict[str, Any]] = []

    if avg < 50:
        trends.append({
            "type": "low_compliance",
            "severity": "high",
            "message": "You've completed less than 50% of your workouts recently",
            "weeks": len(recent),
            "avg_compliance_rate": round(avg),
        })
    elif avg < 70:
        trends.append({
            "type": "moderate_compliance",
            "severity": "medium",
            "message": f"You've completed about {round(avg)}% of your workouts recently",
            "weeks": len(recent),
            "avg_compliance_rate": round(avg),
        })

    if len(recent) == 3:
        first, second, third = (w["compliance_rate"] for w in recent)
        if third > second > first and third - first > 20:
            trends.append({
                "type": "improving",
                "severity": "positive",
                "message": "Great progress! Your consistency is improving",
                "weeks": 3,
            })
        elif third < second < first and first - third > 20:
            trends.append({
                "type": "declining",
                "severity": "medium",
                "message": "Your consistency has been declining recently",
                "weeks": 3,
            })

    return trends


def generate_warnings(weekly: list[dict[str, Any]], trends: list[dict[str, Any]]) -> list[dict[str, Any]]:
    warnings: list[dict[str, Any]] = []
    trend_types = {t["type"] for t in trends}

    current = next((w for w in weekly if w["week_status"] == "current"), None)
    if current and current["missed_workouts"] >= 2:
        warnings.append({
            "type": "missed_workouts",
            "severity": "medium",
            "week_number": current["week_number"],
            "message": f"You've missed {current['missed_workouts']} workouts this week",
            "action": "Consider adjusting your schedule or plan difficulty",
        })

    if "low_compliance" in trend_types:
        warnings.append({
            "type": "plan_too_aggressive",
            "severity": "high",
            "message": "Your plan might be too challenging for your current schedule",
            "action": "Consider modifying the plan or adjusting your weekly volume",
        })

    if "declining" in trend_types:
        warnings.append({
            "type": "consistency_declining",
            "severity": "medium",
            "message": "Your training consistency has been decreasing",
            "action": "Review what changed and consider taking a recovery week",
        })

    return warnings


def needs_weekly_check_in(week_summary: dict[str, Any], today: date | None = None) -> bool:
    """True once a week has ended with anything short of full compliance."""
    week_range = week_summary.get("week_range")
    if not week_range:
        return False

    today = today or date.today()
    week_end = date.fromisoformat(week_range["end"])
    has_issues = week_summary.get("compliance_rate", 0) < 100 or week_summary.get("missed_workouts", 0) > 0
    return today > week_end and has_issues
