from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Tuple

from acadops.normalize import normalize_id, parse_int
from acadops.semesters import sort_semesters


ALL_SEMESTERS = "All"


@dataclass(frozen=True)
class Settings:
    capacity_bonus: int = 0
    low_student_threshold: int = 10
    admitted_semester_window: int = 12
    operating_minutes_per_day: int = 540
    operating_days_per_week: int = 6
    default_slot_duration: int = 90
    default_weekly_class: float = 2.0
    excluded_course_type_keywords: Tuple[str, ...] = ("thesis", "project", "internship", "viva")


@dataclass(frozen=True)
class SectionFilters:
    semester: str = ALL_SEMESTERS
    search: str = ""
    missing_fields: List[str] = field(default_factory=list)
    # Program filters; `programs` holds normalized PIDs.
    faculties: List[str] = field(default_factory=list)
    program_types: List[str] = field(default_factory=list)
    semester_types: List[str] = field(default_factory=list)
    programs: List[str] = field(default_factory=list)
    # Attribute filters
    teachers: List[str] = field(default_factory=list)
    course_types: List[str] = field(default_factory=list)
    types: List[str] = field(default_factory=list)
    credits: List[str] = field(default_factory=list)
    capacities: List[str] = field(default_factory=list)
    student_min: Optional[int] = None
    student_max: Optional[int] = None
    student_counts: List[int] = field(default_factory=list)
    class_taken_min: Optional[int] = None
    class_taken_max: Optional[int] = None
    class_taken_counts: List[int] = field(default_factory=list)

    @property
    def has_program_filters(self) -> bool:
        return bool(self.faculties or self.program_types or self.semester_types or self.programs)


@dataclass(frozen=True)
class ClassroomFilters:
    search: str = ""
    missing_fields: List[str] = field(default_factory=list)
    faculties: List[str] = field(default_factory=list)
    programs: List[str] = field(default_factory=list)
    buildings: List[str] = field(default_factory=list)
    floors: List[str] = field(default_factory=list)
    room_types: List[str] = field(default_factory=list)
    capacity_min: Optional[int] = None
    capacity_max: Optional[int] = None


def _as_str_list(values: Optional[Iterable[object]]) -> List[str]:
    if not values:
        return []
    return [str(v) for v in values if v is not None]


def _as_int_list(values: Optional[Iterable[object]]) -> List[int]:
    if not values:
        return []
    out: List[int] = []
    for v in values:
        parsed = parse_int(v)
        if parsed is not None:
            out.append(parsed)
    return out


def _bound(value: object) -> Optional[int]:
    # Empty or non-numeric bounds leave that side open.
    if value is None or str(value).strip() == "":
        return None
    return parse_int(value)


def default_course_types(available: Iterable[str], settings: Settings = Settings()) -> List[str]:
    """Every course type except thesis/project/internship/viva style entries."""
    keep: List[str] = []
    for course_type in available:
        lowered = str(course_type).lower()
        if not any(k in lowered for k in settings.excluded_course_type_keywords):
            keep.append(str(course_type))
    return keep


def normalize_section_filters(
    raw: dict,
    *,
    available_semesters: Optional[List[str]] = None,
    available_course_types: Optional[List[str]] = None,
    settings: Settings = Settings(),
) -> SectionFilters:
    ordered = sort_semesters(available_semesters or [])
    semester = raw.get("semester")
    if semester is None or str(semester).strip() == "":
        semester = ordered[0] if ordered else ALL_SEMESTERS
    semester = str(semester)

    # None means "never chosen": fall back to the default selection.
    raw_course_types = raw.get("course_types")
    if raw_course_types is None:
        course_types = default_course_types(available_course_types or [], settings)
    else:
        course_types = _as_str_list(raw_course_types)

    return SectionFilters(
        semester=semester,
        search=(raw.get("search") or "").strip(),
        missing_fields=_as_str_list(raw.get("missing_fields")),
        faculties=_as_str_list(raw.get("faculties")),
        program_types=_as_str_list(raw.get("program_types")),
        semester_types=_as_str_list(raw.get("semester_types")),
        programs=sorted({normalize_id(p) for p in _as_str_list(raw.get("programs")) if normalize_id(p)}),
        teachers=_as_str_list(raw.get("teachers")),
        course_types=course_types,
        types=_as_str_list(raw.get("types")),
        credits=_as_str_list(raw.get("credits")),
        capacities=_as_str_list(raw.get("capacities")),
        student_min=_bound(raw.get("student_min")),
        student_max=_bound(raw.get("student_max")),
        student_counts=_as_int_list(raw.get("student_counts")),
        class_taken_min=_bound(raw.get("class_taken_min")),
        class_taken_max=_bound(raw.get("class_taken_max")),
        class_taken_counts=_as_int_list(raw.get("class_taken_counts")),
    )


def normalize_classroom_filters(raw: dict) -> ClassroomFilters:
    return ClassroomFilters(
        search=(raw.get("search") or "").strip(),
        missing_fields=_as_str_list(raw.get("missing_fields")),
        faculties=_as_str_list(raw.get("faculties")),
        programs=sorted({normalize_id(p) for p in _as_str_list(raw.get("programs")) if normalize_id(p)}),
        buildings=_as_str_list(raw.get("buildings")),
        floors=_as_str_list(raw.get("floors")),
        room_types=_as_str_list(raw.get("room_types")),
        capacity_min=_bound(raw.get("capacity_min")),
        capacity_max=_bound(raw.get("capacity_max")),
    )


def clear_section_filters(filters: SectionFilters) -> SectionFilters:
    """Reset every facet; the semester selection survives a clear."""
    return replace(SectionFilters(), semester=filters.semester)
