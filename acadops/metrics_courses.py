from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import numpy as np
import pandas as pd

from acadops.filters import SectionFilters
from acadops.normalize import blank_mask, to_int_series
from acadops.schema import COURSE_KEY, SECTION_COLUMNS, empty_frame, ensure_columns
from acadops.semesters import sort_semesters


COURSE_SUMMARY_COLUMNS = [
    "key",
    "semester",
    "ref",
    "pid",
    "program",
    "course_code",
    "course_title",
    "credit",
    "type",
    "course_type",
    "unit_capacity",
    "weekly_class",
    "total_sections",
    "total_capacity",
    "total_students",
    "total_vacancy",
    "avg_capacity",
    "extra_sections",
    "rows",
]


def aggregate_courses(sections: pd.DataFrame, capacity_bonus: int = 0) -> pd.DataFrame:
    """One summary per Semester + PID + Course Code + Course Title + Credit.

    Output keeps first-seen order. Course type, unit capacity and weekly class
    take the first non-empty value within the group. Every section adds
    `capacity_bonus` to the group's capacity.
    """
    df = ensure_columns(sections, SECTION_COLUMNS)
    if df.empty:
        return empty_frame(COURSE_SUMMARY_COLUMNS)

    work = df.copy()
    work["_row"] = work.index
    work["_program"] = work["Program"].where(~blank_mask(work["Program"]), work["PID"])
    work["_capacity"] = to_int_series(work["Capacity"]) + int(capacity_bonus)
    work["_students"] = to_int_series(work["Student"])
    for src, dst in [("Course Type", "_course_type"), ("Capacity", "_unit_capacity"), ("Weekly Class", "_weekly_class")]:
        # NaN for blanks so groupby "first" skips them.
        work[dst] = work[src].where(~blank_mask(work[src]))

    summary = (
        work.groupby(COURSE_KEY, sort=False, dropna=False)
        .agg(
            ref=("Ref", "first"),
            program=("_program", "first"),
            type=("Type", "first"),
            course_type=("_course_type", "first"),
            unit_capacity=("_unit_capacity", "first"),
            weekly_class=("_weekly_class", "first"),
            total_sections=("_row", "size"),
            total_capacity=("_capacity", "sum"),
            total_students=("_students", "sum"),
            rows=("_row", list),
        )
        .reset_index()
        .rename(
            columns={
                "Semester": "semester",
                "PID": "pid",
                "Course Code": "course_code",
                "Course Title": "course_title",
                "Credit": "credit",
            }
        )
    )
    summary[["course_type", "unit_capacity", "weekly_class"]] = summary[
        ["course_type", "unit_capacity", "weekly_class"]
    ].fillna("")
    summary["key"] = summary.apply(
        lambda r: "||".join(str(r[c]) for c in ["semester", "pid", "course_code", "course_title", "credit"]), axis=1
    )

    summary["total_vacancy"] = summary["total_capacity"] - summary["total_students"]
    summary["avg_capacity"] = np.floor(summary["total_capacity"] / summary["total_sections"] + 0.5).astype("int64")
    can_extend = (summary["total_vacancy"] > 0) & (summary["avg_capacity"] > 0)
    summary["extra_sections"] = np.where(
        can_extend,
        summary["total_vacancy"] // summary["avg_capacity"].where(can_extend, 1),
        0,
    ).astype("int64")
    return summary[COURSE_SUMMARY_COLUMNS]


def course_sections(sections: pd.DataFrame, summary_row: pd.Series) -> pd.DataFrame:
    """Drill-down: the section rows behind one course summary."""
    return sections.loc[list(summary_row["rows"])]


def compute_course_summary(filters: SectionFilters, ctx: Dict[str, Any], *, capacity_bonus: int = 0) -> Dict[str, Any]:
    sections: pd.DataFrame = ctx.get("filtered_sections", pd.DataFrame())
    summary = aggregate_courses(sections, capacity_bonus)
    if summary.empty:
        return {"filters": asdict(filters), "capacity_bonus": capacity_bonus, "kpis": {}, "table": []}

    kpis = {
        "courses": int(len(summary)),
        "sections": int(summary["total_sections"].sum()),
        "capacity": int(summary["total_capacity"].sum()),
        "students": int(summary["total_students"].sum()),
        "vacancy": int(summary["total_vacancy"].sum()),
        "over_enrolled_courses": int((summary["total_vacancy"] < 0).sum()),
        "extra_sections": int(summary["extra_sections"].sum()),
    }
    order = {s: i for i, s in enumerate(sort_semesters(summary["semester"]))}
    table = (
        summary.assign(_order=summary["semester"].astype(str).str.strip().map(order))
        .sort_values(["_order", "pid", "course_code"], kind="stable")
        .drop(columns=["_order"])
    )
    return {
        "filters": asdict(filters),
        "capacity_bonus": capacity_bonus,
        "kpis": kpis,
        "table": table.drop(columns=["rows"]).to_dict(orient="records"),
    }
