"""Section and classroom filter engines.

Every active predicate is ANDed; an empty selection means no constraint. The
result is recomputed from the full row set on every call.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from acadops.filters import ALL_SEMESTERS, ClassroomFilters, SectionFilters
from acadops.normalize import (
    blank_mask,
    float_or_zero,
    int_or_zero,
    is_placeholder_teacher,
    normalize_id,
    to_int_series,
)
from acadops.schema import CLASSROOM_COLUMNS, PROGRAM_COLUMNS, SECTION_COLUMNS, ensure_columns
from acadops.semesters import sort_semesters


def build_program_map(programs: pd.DataFrame) -> pd.DataFrame:
    """Program rows indexed by normalized PID (later rows win on duplicates)."""
    df = ensure_columns(programs, PROGRAM_COLUMNS)
    df = df[~blank_mask(df["PID"])].copy()
    df["pid_norm"] = df["PID"].map(normalize_id)
    return df.drop_duplicates(subset=["pid_norm"], keep="last").set_index("pid_norm")


def filter_by_program(df: pd.DataFrame, pid: Optional[str]) -> pd.DataFrame:
    if df.empty or not pid or "PID" not in df.columns:
        return df
    return df[df["PID"].map(normalize_id) == normalize_id(pid)]


def search_mask(df: pd.DataFrame, term: str) -> pd.Series:
    q = (term or "").lower()
    if not q or df.empty:
        return pd.Series(True, index=df.index)
    text = df.fillna("").astype(str)
    hits = text.apply(lambda col: col.str.lower().str.contains(q, regex=False, na=False))
    return hits.any(axis=1)


def missing_fields_mask(df: pd.DataFrame, fields: Iterable[str]) -> pd.Series:
    """Rows blank in every selected field. A column the sheet lacks counts as blank."""
    mask = pd.Series(True, index=df.index)
    for col in fields:
        if col in df.columns:
            mask &= blank_mask(df[col])
    return mask


def _member_mask(series: pd.Series, selected: Iterable[Any]) -> pd.Series:
    selected = list(selected)
    if not selected:
        return pd.Series(True, index=series.index)
    return series.isin(set(selected))


def _range_mask(values: pd.Series, low: Optional[int], high: Optional[int]) -> pd.Series:
    mask = pd.Series(True, index=values.index)
    if low is not None:
        mask &= values >= low
    if high is not None:
        mask &= values <= high
    return mask


def _program_mask(
    df: pd.DataFrame,
    program_map: pd.DataFrame,
    *,
    programs: List[str],
    joined: Dict[str, List[str]],
) -> pd.Series:
    active_joins = {col: sel for col, sel in joined.items() if sel}
    if not programs and not active_joins:
        return pd.Series(True, index=df.index)

    pid_norm = df["PID"].map(normalize_id)
    # A program selection decides the row outright.
    if programs:
        return pid_norm.isin(set(programs))

    mask = pid_norm.isin(program_map.index)
    for col, selected in active_joins.items():
        values = pid_norm.map(program_map[col]) if col in program_map.columns else pd.Series("", index=df.index)
        mask &= values.isin(set(selected))
    return mask


def filter_sections(
    sections: pd.DataFrame,
    filters: SectionFilters,
    programs: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    df = ensure_columns(sections, SECTION_COLUMNS)
    if df.empty:
        return df

    mask = search_mask(df, filters.search)
    if filters.semester and filters.semester != ALL_SEMESTERS:
        mask &= df["Semester"] == filters.semester

    if filters.missing_fields:
        mask &= missing_fields_mask(df, filters.missing_fields)

    mask &= _member_mask(df["Teacher ID"], filters.teachers)
    mask &= _member_mask(df["Course Type"], filters.course_types)
    mask &= _member_mask(df["Type"], filters.types)
    mask &= _member_mask(df["Credit"], filters.credits)
    mask &= _member_mask(df["Capacity"], filters.capacities)

    students = to_int_series(df["Student"])
    mask &= _range_mask(students, filters.student_min, filters.student_max)
    mask &= _member_mask(students, filters.student_counts)

    class_taken = to_int_series(df["Class Taken"])
    mask &= _range_mask(class_taken, filters.class_taken_min, filters.class_taken_max)
    mask &= _member_mask(class_taken, filters.class_taken_counts)

    mask &= _program_mask(
        df,
        build_program_map(programs if programs is not None else pd.DataFrame()),
        programs=filters.programs,
        joined={
            "Faculty Short Name": filters.faculties,
            "Program Type": filters.program_types,
            "Semester Type": filters.semester_types,
        },
    )
    return df[mask]


def filter_classrooms(
    classrooms: pd.DataFrame,
    filters: ClassroomFilters,
    programs: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    df = ensure_columns(classrooms, CLASSROOM_COLUMNS)
    if df.empty:
        return df

    mask = search_mask(df, filters.search)
    if filters.missing_fields:
        mask &= missing_fields_mask(df, filters.missing_fields)

    mask &= _member_mask(df["Building"], filters.buildings)
    mask &= _member_mask(df["Floor"], filters.floors)
    mask &= _member_mask(df["Room Type"], filters.room_types)
    mask &= _range_mask(to_int_series(df["Capacity"]), filters.capacity_min, filters.capacity_max)

    mask &= _program_mask(
        df,
        build_program_map(programs if programs is not None else pd.DataFrame()),
        programs=filters.programs,
        joined={"Faculty Short Name": filters.faculties},
    )
    return df[mask]


def _distinct(series: pd.Series) -> List[str]:
    return series[~blank_mask(series)].astype(str).unique().tolist()


def section_filter_options(sections: pd.DataFrame, semester: str = ALL_SEMESTERS) -> Dict[str, Any]:
    """Facet option lists for the rows of the selected semester."""
    df = ensure_columns(sections, SECTION_COLUMNS)
    semesters = [ALL_SEMESTERS] + sort_semesters(df["Semester"].astype(str).str.strip())
    if semester and semester != ALL_SEMESTERS:
        df = df[df["Semester"] == semester]

    teachers: Dict[str, str] = {}
    for tid, name in zip(df["Teacher ID"], df["Employee Name"]):
        if is_placeholder_teacher(tid):
            continue
        teachers[str(tid)] = str(name) if str(name).strip() else str(tid)

    credits = _distinct(df["Credit"])
    capacities = _distinct(df["Capacity"])
    return {
        "semesters": semesters,
        "teachers": [
            {"id": tid, "name": name}
            for tid, name in sorted(teachers.items(), key=lambda item: item[1].lower())
        ],
        "course_types": sorted(_distinct(df["Course Type"])),
        "types": sorted(_distinct(df["Type"])),
        "credits": sorted(credits, key=float_or_zero),
        "capacities": sorted(capacities, key=int_or_zero),
        "student_counts": sorted(set(to_int_series(df["Student"]).tolist())),
        "class_taken_counts": sorted(set(to_int_series(df["Class Taken"]).tolist())),
    }


def classroom_filter_options(classrooms: pd.DataFrame) -> Dict[str, List[str]]:
    df = ensure_columns(classrooms, CLASSROOM_COLUMNS)
    return {
        "buildings": sorted(_distinct(df["Building"])),
        "floors": sorted(_distinct(df["Floor"])),
        "room_types": sorted(_distinct(df["Room Type"])),
    }


def program_filter_options(programs: pd.DataFrame) -> Dict[str, Any]:
    """Faculty, program type and semester type choices, plus the program list."""
    program_map = build_program_map(programs)
    listing = [
        {"pid": str(row["PID"]), "name": str(row["Program Short Name"]) or str(row["PID"]), "faculty": str(row["Faculty Short Name"])}
        for _, row in program_map.sort_values("PID").iterrows()
    ]
    return {
        "faculties": sorted(_distinct(program_map["Faculty Short Name"])),
        "program_types": sorted(_distinct(program_map["Program Type"])),
        "semester_types": sorted(_distinct(program_map["Semester Type"])),
        "programs": listing,
    }
