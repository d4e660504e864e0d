"""Classroom slot capacity vs. section slot requirement, split Theory / Lab."""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, Optional

import pandas as pd

from acadops.filtering import filter_by_program
from acadops.filters import ALL_SEMESTERS, Settings
from acadops.normalize import parse_float, parse_int, round_decimal, round_half_up
from acadops.schema import CLASSROOM_COLUMNS, COURSE_KEY, SECTION_COLUMNS, ensure_columns
from acadops.semesters import latest_semester


CATEGORIES = ("Theory", "Lab")


def resolve_active_semester(sections: pd.DataFrame, selected: Optional[str] = None) -> str:
    """The caller's semester when it names one, else the latest semester in the sections."""
    if selected and str(selected).strip() and selected != ALL_SEMESTERS:
        return str(selected)
    if sections is None or sections.empty or "Semester" not in sections.columns:
        return ""
    return latest_semester(sections["Semester"]) or ""


def _is_lab(series: pd.Series) -> pd.Series:
    return series.astype(str).str.lower().str.contains("lab", regex=False, na=False)


def _positive(value: Optional[float]) -> bool:
    return value is not None and not math.isnan(value) and value > 0


def room_stats(rooms: pd.DataFrame, settings: Settings = Settings()) -> Dict[str, Any]:
    """Weekly slot capacity of a set of rooms.

    A room's explicit "Slot Per Room" is a daily count; otherwise the daily
    count is floor(operating minutes / slot duration).
    """
    if rooms.empty:
        return {"room_count": 0, "avg_slot_duration": 0, "avg_slot_per_room": 0, "slots_per_room": 0, "total_slots": 0}

    days = settings.operating_days_per_week
    minutes = settings.operating_minutes_per_day
    durations = []
    explicit = []
    weekly_total = 0.0
    for duration_raw, slots_raw in zip(rooms["Slot Duration"], rooms["Slot Per Room"]):
        duration = parse_int(duration_raw)
        if _positive(duration):
            durations.append(duration)
        slots = parse_float(slots_raw)
        if _positive(slots):
            explicit.append(slots)
            weekly_total += slots * days
        else:
            slot_minutes = duration if _positive(duration) else settings.default_slot_duration
            weekly_total += (minutes // slot_minutes) * days

    avg_duration = round_half_up(sum(durations) / len(durations)) if durations else settings.default_slot_duration
    if explicit:
        avg_slot_per_room = round_decimal(sum(explicit) / len(explicit))
    else:
        avg_slot_per_room = round_decimal(minutes / avg_duration) if avg_duration > 0 else 0
    return {
        "room_count": int(len(rooms)),
        "avg_slot_duration": avg_duration,
        "avg_slot_per_room": avg_slot_per_room,
        "slots_per_room": round_half_up(weekly_total / len(rooms)),
        "total_slots": round_half_up(weekly_total),
    }


def section_stats(sections: pd.DataFrame, low_student_threshold: int, settings: Settings = Settings()) -> Dict[str, Any]:
    """Weekly slot requirement of a set of sections."""
    total_courses = int(len(sections[COURSE_KEY].astype(str).drop_duplicates())) if not sections.empty else 0
    below = 0
    weekly_total = 0.0
    for students_raw, weekly_raw in zip(sections["Student"], sections["Weekly Class"]):
        students = parse_int(students_raw)
        if students is not None and 0 < students < low_student_threshold:
            below += 1
        weekly = parse_float(weekly_raw)
        weekly_total += weekly if _positive(weekly) else settings.default_weekly_class
    return {
        "total_courses": total_courses,
        "total_sections": int(len(sections)),
        "below_student_sections": below,
        "actual_sections": int(len(sections)) - below,
        "slot_requirement": int(math.ceil(weekly_total)),
    }


def compute_resource_stats(
    classrooms: pd.DataFrame,
    sections: pd.DataFrame,
    active_semester: str,
    low_student_threshold: int,
    settings: Settings = Settings(),
) -> Dict[str, Dict[str, Any]]:
    """{"Theory": stats, "Lab": stats}; surplus is total room slots minus slot requirement."""
    rooms = ensure_columns(classrooms, CLASSROOM_COLUMNS)
    secs = ensure_columns(sections, SECTION_COLUMNS)
    if active_semester:
        secs = secs[secs["Semester"].astype(str).str.strip() == str(active_semester).strip()]
    else:
        secs = secs.iloc[0:0]

    lab_room = _is_lab(rooms["Room Type"])
    lab_section = _is_lab(secs["Course Type"])
    out: Dict[str, Dict[str, Any]] = {}
    for category, room_part, section_part in [
        ("Theory", rooms[~lab_room], secs[~lab_section]),
        ("Lab", rooms[lab_room], secs[lab_section]),
    ]:
        stats = room_stats(room_part, settings)
        stats.update(section_stats(section_part, low_student_threshold, settings))
        stats["slot_surplus"] = stats["total_slots"] - stats["slot_requirement"]
        out[category] = stats
    return out


def compute_program_resources(
    pid: Optional[str],
    ctx: Dict[str, Any],
    semester: Optional[str] = None,
    low_student_threshold: Optional[int] = None,
    settings: Settings = Settings(),
) -> Dict[str, Any]:
    """Resource analysis for one program (or every program when `pid` is empty)."""
    sections = filter_by_program(ctx.get("sections", pd.DataFrame()), pid)
    classrooms = filter_by_program(ctx.get("classrooms", pd.DataFrame()), pid)
    active = resolve_active_semester(sections, semester)
    threshold = settings.low_student_threshold if low_student_threshold is None else low_student_threshold
    return {
        "pid": pid or "",
        "active_semester": active,
        "low_student_threshold": threshold,
        "stats": compute_resource_stats(classrooms, sections, active, threshold, settings),
    }


def category_totals(stats: Dict[str, Dict[str, Any]], categories: Iterable[str] = CATEGORIES) -> Dict[str, int]:
    """Sum of slots, requirement and surplus across the included categories."""
    keys = ["total_slots", "slot_requirement", "slot_surplus"]
    return {k: int(sum(stats[c][k] for c in categories if c in stats)) for k in keys}
