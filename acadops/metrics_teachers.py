from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional, Tuple

import altair as alt
import pandas as pd

from acadops.charts import to_vega_spec
from acadops.filtering import build_program_map
from acadops.filters import SectionFilters
from acadops.normalize import blank_mask, normalize_id, to_float_series, to_int_series
from acadops.schema import SECTION_COLUMNS, empty_frame, ensure_columns


TEACHER_SUMMARY_COLUMNS = [
    "teacher_id",
    "teacher_name",
    "designation",
    "mobile",
    "email",
    "credit_load",
    "student_count",
    "total_sections",
    "rows",
]

TEACHER_PROGRAM_COLUMNS = ["teacher_id", "faculty", "program"]


def assigned_mask(sections: pd.DataFrame) -> pd.Series:
    """True where the section has a real teacher (not blank, not "TBA")."""
    tid = sections["Teacher ID"]
    return ~blank_mask(tid) & (tid.astype(str) != "TBA")


def aggregate_teachers(sections: pd.DataFrame) -> pd.DataFrame:
    """One summary per exact Teacher ID, in first-seen order.

    Contact details come from the first row seen for the teacher.
    """
    df = ensure_columns(sections, SECTION_COLUMNS)
    if df.empty:
        return empty_frame(TEACHER_SUMMARY_COLUMNS)
    df = df[assigned_mask(df)].copy()
    if df.empty:
        return empty_frame(TEACHER_SUMMARY_COLUMNS)

    df["_row"] = df.index
    df["_credit"] = to_float_series(df["Credit"])
    df["_students"] = to_int_series(df["Student"])

    summary = (
        df.groupby("Teacher ID", sort=False)
        .agg(
            teacher_name=("Employee Name", "first"),
            designation=("Designation", "first"),
            mobile=("Mobile Number", "first"),
            email=("Email", "first"),
            credit_load=("_credit", "sum"),
            student_count=("_students", "sum"),
            total_sections=("_row", "size"),
            rows=("_row", list),
        )
        .reset_index()
        .rename(columns={"Teacher ID": "teacher_id"})
    )
    for col in ["teacher_name", "designation", "mobile", "email"]:
        summary[col] = summary[col].where(~blank_mask(summary[col]), "-")
    return summary[TEACHER_SUMMARY_COLUMNS]


def derive_teacher_programs(sections: pd.DataFrame, programs: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """Each assigned teacher's home faculty and program.

    The home program is the one most of the teacher's sections belong to
    (normalized PID join, ties go to the program seen first). A teacher with
    no mapped section gets faculty "Other" and program "Unassigned".
    """
    df = ensure_columns(sections, SECTION_COLUMNS)
    df = df[assigned_mask(df)]
    teacher_ids = df["Teacher ID"].drop_duplicates().tolist()
    if not teacher_ids:
        return empty_frame(TEACHER_PROGRAM_COLUMNS)

    program_map = build_program_map(programs)
    pid_norm = df["PID"].map(normalize_id)
    known = pid_norm.isin(program_map.index)
    pid_norm = pid_norm[known]
    faculty = pid_norm.map(program_map["Faculty Short Name"]).fillna("").astype(str)
    program = pid_norm.map(program_map["Program Short Name"]).fillna("").astype(str)
    mapped = pd.DataFrame(
        {
            "teacher_id": df.loc[known, "Teacher ID"],
            "faculty": faculty.where(faculty.str.strip() != "", "Other"),
            "program": program.where(program.str.strip() != "", pid_norm.map(program_map["PID"])),
        }
    )

    picks: Dict[str, Tuple[str, str]] = {}
    if not mapped.empty:
        counts = mapped.groupby(["teacher_id", "faculty", "program"], sort=False).size()
        for tid, fac, prog in counts.groupby(level="teacher_id", sort=False).idxmax().tolist():
            picks[tid] = (fac, prog)

    rows = []
    for tid in teacher_ids:
        fac, prog = picks.get(tid, ("Other", "Unassigned"))
        rows.append({"teacher_id": tid, "faculty": fac, "program": prog})
    return pd.DataFrame(rows, columns=TEACHER_PROGRAM_COLUMNS)


def compute_teacher_report(
    filters: SectionFilters,
    ctx: Dict[str, Any],
    programs: Optional[pd.DataFrame] = None,
) -> Dict[str, Any]:
    """Teachers by credit load, plus head counts per home faculty and program."""
    sections: pd.DataFrame = ctx.get("filtered_sections", pd.DataFrame())
    if programs is None:
        programs = ctx.get("programs", pd.DataFrame())
    summary = aggregate_teachers(sections)
    payload: Dict[str, Any] = {"filters": asdict(filters), "kpis": {}, "faculties": {}, "programs": [], "table": [], "charts": {}}
    if summary.empty:
        return payload

    homes = derive_teacher_programs(sections, programs)
    table = summary.merge(homes, on="teacher_id", how="left")
    table = table.sort_values("credit_load", ascending=False, kind="stable")

    by_program = (
        table.groupby(["faculty", "program"], sort=False)["teacher_id"]
        .count()
        .reset_index()
        .rename(columns={"teacher_id": "count"})
    )
    faculties = {
        fac: grp.sort_values("program")[["program", "count"]].to_dict(orient="records")
        for fac, grp in by_program.groupby("faculty", sort=True)
    }
    by_faculty = by_program.groupby("faculty")["count"].sum().reset_index()
    chart = (
        alt.Chart(by_faculty)
        .mark_bar()
        .encode(
            x=alt.X("faculty:N", title="Faculty"),
            y=alt.Y("count:Q", title="Teachers"),
            tooltip=["faculty", alt.Tooltip("count:Q", format=",")],
        )
    )

    payload["kpis"] = {
        "teachers": int(len(table)),
        "sections": int(table["total_sections"].sum()),
        "avg_credit_load": float(table["credit_load"].mean()),
        "max_credit_load": float(table["credit_load"].max()),
    }
    payload["faculties"] = faculties
    payload["programs"] = by_program.to_dict(orient="records")
    payload["table"] = table.drop(columns=["rows"]).to_dict(orient="records")
    payload["charts"] = {"by_faculty": to_vega_spec(chart)}
    return payload


def compute_unassigned_report(
    filters: SectionFilters,
    ctx: Dict[str, Any],
    programs: Optional[pd.DataFrame] = None,
) -> Dict[str, Any]:
    """Sections still waiting for a teacher, grouped by program and faculty."""
    sections = ensure_columns(ctx.get("filtered_sections", pd.DataFrame()), SECTION_COLUMNS)
    if programs is None:
        programs = ctx.get("programs", pd.DataFrame())
    payload: Dict[str, Any] = {"filters": asdict(filters), "kpis": {}, "faculties": {}, "programs": [], "charts": {}}
    if sections.empty:
        return payload

    unassigned = sections[~assigned_mask(sections)].copy()
    if unassigned.empty:
        payload["kpis"] = {"sections": 0, "students": 0, "programs": 0}
        return payload

    program_map = build_program_map(programs)
    pid_norm = unassigned["PID"].map(normalize_id)
    short_name = pid_norm.map(program_map["Program Short Name"]).fillna("")
    fallback = unassigned["Program"].where(~blank_mask(unassigned["Program"]), unassigned["PID"])
    fallback = fallback.where(~blank_mask(fallback), "Unknown")
    unassigned["_program"] = short_name.where(short_name.astype(str).str.strip() != "", fallback)
    faculty = pid_norm.map(program_map["Faculty Short Name"]).fillna("")
    unassigned["_faculty"] = faculty.where(faculty.astype(str).str.strip() != "", "Other")
    unassigned["_students"] = to_int_series(unassigned["Student"])
    unassigned["_capacity"] = to_int_series(unassigned["Capacity"])

    by_program = (
        unassigned.groupby("_program", sort=False)
        .agg(
            faculty=("_faculty", "first"),
            count=("_students", "size"),
            students=("_students", "sum"),
            capacity=("_capacity", "sum"),
        )
        .reset_index()
        .rename(columns={"_program": "program"})
    )
    faculties = {
        fac: grp.sort_values("program").to_dict(orient="records")
        for fac, grp in by_program.groupby("faculty", sort=True)
    }
    by_faculty = by_program.groupby("faculty")["count"].sum().reset_index()
    chart = (
        alt.Chart(by_faculty)
        .mark_bar()
        .encode(
            x=alt.X("faculty:N", title="Faculty"),
            y=alt.Y("count:Q", title="Unassigned Sections"),
            tooltip=["faculty", alt.Tooltip("count:Q", format=",")],
        )
    )

    payload["kpis"] = {
        "sections": int(len(unassigned)),
        "students": int(unassigned["_students"].sum()),
        "programs": int(len(by_program)),
    }
    payload["faculties"] = faculties
    payload["programs"] = by_program.to_dict(orient="records")
    payload["charts"] = {"by_faculty": to_vega_spec(chart)}
    return payload
