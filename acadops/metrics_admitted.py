"""Admitted vs. registered students.

Admitted students come per admission semester (a cache of one frame per
semester). The registered table is sparse: one column per registration
semester, each cell holding the ID of a student who registered that semester.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

import pandas as pd

from acadops.charts import stacked_bar_spec
from acadops.filters import Settings
from acadops.normalize import blank_mask, float_or_zero, normalize_id, normalize_semester
from acadops.schema import PROGRAM_COLUMNS, STUDENT_COLUMNS, UNKNOWN_HEADER, ensure_columns
from acadops.semesters import is_on_or_before, latest_semesters, sort_semesters


logger = logging.getLogger(__name__)

RegistrationLookup = Dict[str, Set[str]]
StudentCache = Mapping[str, pd.DataFrame]

TOP_UNREGISTERED_PROGRAMS = 10


def _semester_columns(registered: pd.DataFrame) -> List[str]:
    return [
        str(c)
        for c in registered.columns
        if str(c).strip() and not str(c).startswith(UNKNOWN_HEADER)
    ]


def build_registration_lookup(registered: pd.DataFrame) -> RegistrationLookup:
    """normalized student ID -> set of normalized semesters the student registered in."""
    lookup: RegistrationLookup = {}
    if registered is None or registered.empty:
        return lookup
    for sem in _semester_columns(registered):
        sem_key = normalize_semester(sem)
        for value in registered[sem]:
            sid = normalize_id(value)
            if not sid:
                continue
            lookup.setdefault(sid, set()).add(sem_key)
    logger.debug("registration lookup built for %d students", len(lookup))
    return lookup


def is_registered(lookup: RegistrationLookup, student_id: object, semester: object) -> bool:
    return normalize_semester(semester) in lookup.get(normalize_id(student_id), set())


def registered_semesters(registered: pd.DataFrame) -> List[str]:
    """Registration semester columns, latest first."""
    if registered is None:
        return []
    return sort_semesters(_semester_columns(registered))


def default_admitted_semesters(available: Iterable[str], settings: Settings = Settings()) -> List[str]:
    return latest_semesters(available, settings.admitted_semester_window)


def program_name_map(programs: pd.DataFrame) -> Dict[str, str]:
    df = ensure_columns(programs, PROGRAM_COLUMNS)
    names: Dict[str, str] = {}
    for pid, short in zip(df["PID"], df["Program Short Name"]):
        if normalize_id(pid) and str(short).strip():
            names[normalize_id(pid)] = str(short)
    return names


def stack_students(semesters: Iterable[str], cache: StudentCache) -> pd.DataFrame:
    """Concatenate the cached student frames, tagging each row with `_semester`."""
    frames: List[pd.DataFrame] = []
    for sem in semesters:
        students = cache.get(sem)
        if students is None or students.empty:
            continue
        frame = ensure_columns(students, STUDENT_COLUMNS)
        frame["_semester"] = sem
        frames.append(frame)
    if not frames:
        return ensure_columns(pd.DataFrame(), STUDENT_COLUMNS + ["_semester"])
    return pd.concat(frames, ignore_index=True)


def _registered_flags(ids: pd.Series, lookup: RegistrationLookup, semester: object) -> pd.Series:
    target = normalize_semester(semester)
    return ids.map(lambda sid: target in lookup.get(normalize_id(sid), set())).astype(bool)


def compute_admitted_report(
    selected_semesters: Iterable[str],
    student_cache: StudentCache,
    lookup: RegistrationLookup,
    target_semester: Optional[str],
    program_names: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Admitted / unregistered counts per admission semester and per program."""
    semesters = sort_semesters(selected_semesters)
    program_names = program_names or {}
    payload: Dict[str, Any] = {
        "target_semester": target_semester,
        "sorted_admitted_semesters": semesters,
        "totals": {"admitted": 0, "unregistered": 0},
        "semester_stats": [],
        "program_stats": [],
        "top_unregistered_programs": [],
        "charts": {},
    }
    if not target_semester:
        return payload

    students = stack_students(semesters, student_cache)
    students["_pid"] = students["PID"].map(normalize_id)
    students["_unregistered"] = ~_registered_flags(students["Student ID"], lookup, target_semester)

    sem_stats = (
        students.groupby("_semester")
        .agg(admitted=("_pid", "size"), unregistered=("_unregistered", "sum"))
        .reindex(pd.Index(semesters, name="_semester"), fill_value=0)
        .reset_index()
        .rename(columns={"_semester": "semester"})
    )
    sem_stats[["admitted", "unregistered"]] = sem_stats[["admitted", "unregistered"]].astype(int)

    cells = (
        students.groupby(["_pid", "_semester"])
        .agg(admitted=("Student ID", "size"), unregistered=("_unregistered", "sum"))
        .reset_index()
    )
    program_stats: List[Dict[str, Any]] = []
    for pid, grp in cells.groupby("_pid", sort=True):
        data = {
            str(row["_semester"]): {"admitted": int(row["admitted"]), "unregistered": int(row["unregistered"])}
            for _, row in grp.iterrows()
        }
        program_stats.append(
            {
                "pid": pid.upper(),
                "name": program_names.get(pid, pid.upper()),
                "data": data,
                "total_admitted": int(grp["admitted"].sum()),
                "total_unregistered": int(grp["unregistered"].sum()),
            }
        )

    top = sorted(program_stats, key=lambda p: p["total_unregistered"], reverse=True)[:TOP_UNREGISTERED_PROGRAMS]
    payload["totals"] = {
        "admitted": int(sem_stats["admitted"].sum()),
        "unregistered": int(sem_stats["unregistered"].sum()),
    }
    payload["semester_stats"] = sem_stats.to_dict(orient="records")
    payload["program_stats"] = program_stats
    payload["top_unregistered_programs"] = top
    chart = stacked_bar_spec(
        sem_stats,
        x="semester",
        value_vars=["admitted", "unregistered"],
        x_title="Admitted Semester",
        y_title="Students",
        sort=semesters,
    )
    if chart is not None:
        payload["charts"]["by_semester"] = chart
    return payload


def merge_admitted_students(
    selected_semesters: Iterable[str],
    student_cache: StudentCache,
    *,
    search: str = "",
    registration_filters: Optional[Mapping[str, str]] = None,
    lookup: Optional[RegistrationLookup] = None,
) -> pd.DataFrame:
    """Student directory across admission semesters.

    Semesters are walked latest first and the first row seen for a student ID
    wins. `registration_filters` maps a registration semester to
    "registered" or "unregistered".
    """
    students = stack_students(sort_semesters(selected_semesters), student_cache)
    sid = students["Student ID"].astype(str).str.strip()
    students = students[~blank_mask(sid)]
    students = students.loc[~sid[students.index].duplicated(keep="first")]

    query = (search or "").strip().lower()
    if query:
        name_hit = students["Student Name"].astype(str).str.lower().str.contains(query, regex=False, na=False)
        id_hit = students["Student ID"].astype(str).str.lower().str.contains(query, regex=False, na=False)
        students = students[name_hit | id_hit]

    if registration_filters:
        lookup = lookup or {}
        mask = pd.Series(True, index=students.index)
        for sem, kind in registration_filters.items():
            has_reg = _registered_flags(students["Student ID"], lookup, sem)
            if kind == "registered":
                mask &= has_reg
            elif kind == "unregistered":
                mask &= ~has_reg
        students = students[mask]
    return students.reset_index(drop=True)


def compute_program_kpis(
    pid: str,
    selected_semesters: Iterable[str],
    student_cache: StudentCache,
    lookup: RegistrationLookup,
    target_semester: Optional[str],
) -> Dict[str, Any]:
    """Enrollment vs. registration for one program as of the target semester.

    Only admission semesters on or before the target count.
    """
    empty = {
        "pid": pid,
        "target_semester": target_semester,
        "enrolled": 0,
        "registered": 0,
        "unregistered": 0,
        "total_credits_completed": 0.0,
        "unregistered_students": [],
    }
    if not pid or not target_semester:
        return empty

    semesters = [s for s in sort_semesters(selected_semesters) if is_on_or_before(s, target_semester)]
    students = stack_students(semesters, student_cache)
    students = students[students["PID"].map(normalize_id) == normalize_id(pid)]
    if students.empty:
        return empty

    registered = _registered_flags(students["Student ID"], lookup, target_semester)
    credits = students["Credit Completed"].map(float_or_zero)
    enrolled = int(len(students))
    registered_count = int(registered.sum())
    return {
        "pid": pid,
        "target_semester": target_semester,
        "enrolled": enrolled,
        "registered": registered_count,
        "unregistered": enrolled - registered_count,
        "total_credits_completed": float(credits.sum()),
        "unregistered_students": students[~registered].to_dict(orient="records"),
    }
