"""Sheet column sets.

Rows stay keyed by their spreadsheet headers. Each table has a required column
set; any other column a sheet carries is kept as-is on the frame.
"""

from __future__ import annotations

from typing import Iterable, List

import pandas as pd


SECTION_COLUMNS: List[str] = [
    "Ref",
    "Semester",
    "PID",
    "Program",
    "Course Code",
    "Section ID",
    "Course Title",
    "Section",
    "Credit",
    "Type",
    "Course Type",
    "Student",
    "Capacity",
    "Teacher ID",
    "Class Taken",
    "Weekly Class",
    "ClassRequirement",
    "Employee Name",
    "Designation",
    "Email",
    "Mobile Number",
]

PROGRAM_COLUMNS: List[str] = [
    "PID",
    "Faculty Short Name",
    "Faculty Full Name",
    "Program Full Name",
    "Program Short Name",
    "Department Name",
    "Program Type",
    "Semester Type",
    "Class Requirement",
    "Class Duration",
]

CLASSROOM_COLUMNS: List[str] = [
    "PID",
    "Building",
    "Floor",
    "Room",
    "Room Type",
    "Capacity",
    "Slot Duration",
    "Slot Per Room",
    "Shared Program",
]

TEACHER_COLUMNS: List[str] = ["Employee ID", "Employee Name", "Designation", "Email", "Mobile Number"]

REFERENCE_COLUMNS: List[str] = ["Ref", "Course Type", "Section Capacity", "Weekly Class"]

STUDENT_COLUMNS: List[str] = ["PID", "Student ID", "Student Name", "Credit Completed"]

# Semester + PID + Code + Title + Credit identifies a course.
COURSE_KEY: List[str] = ["Semester", "PID", "Course Code", "Course Title", "Credit"]


def ensure_columns(df: pd.DataFrame | None, cols: Iterable[str]) -> pd.DataFrame:
    """Return a copy carrying every column in `cols`, with blanks as "" (never NaN)."""
    out = pd.DataFrame() if df is None else df.copy()
    for col in cols:
        if col not in out.columns:
            out[col] = ""
    return out.fillna("")


def empty_frame(cols: Iterable[str]) -> pd.DataFrame:
    return pd.DataFrame({c: pd.Series(dtype=object) for c in cols})


# Header given to blank sheet columns by the CSV reader.
UNKNOWN_HEADER = "UNKNOWN"
