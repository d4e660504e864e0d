from __future__ import annotations

import io
import logging
import math
import os
import re
import zipfile
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

from acadops.filtering import build_program_map, filter_classrooms, filter_sections
from acadops.filters import ClassroomFilters, SectionFilters, Settings, normalize_section_filters
from acadops.metrics_admitted import build_registration_lookup, program_name_map, registered_semesters
from acadops.normalize import blank_mask, normalize_id, parse_float
from acadops.schema import (
    CLASSROOM_COLUMNS,
    PROGRAM_COLUMNS,
    REFERENCE_COLUMNS,
    SECTION_COLUMNS,
    STUDENT_COLUMNS,
    TEACHER_COLUMNS,
    UNKNOWN_HEADER,
    ensure_columns,
)
from acadops.semesters import sort_semesters


logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parents[1]
SHEET_SUFFIXES = (".csv", ".xlsx")

SECTIONS_STEM = "sections"
PROGRAMS_STEM = "programs"
CLASSROOMS_STEM = "classrooms"
TEACHERS_STEM = "teachers"
REFERENCES_STEM = "references"
REGISTERED_STEM = "registered"
ADMITTED_PREFIX = "admitted_"

FileSignature = Tuple[Tuple[str, float], ...]

_THEORY_VALUE = re.compile(r"(?:theory|th|lecture|lec)[:\s-]*(\d+)", re.IGNORECASE)
_LAB_VALUE = re.compile(r"(?:lab|laboratory|lb)[:\s-]*(\d+)", re.IGNORECASE)
_KIND_WORD = re.compile(r"(?:theory|th|lab|lb)", re.IGNORECASE)
_BARE_NUMBER = re.compile(r"(\d+(?:\.\d+)?)")
_LAB_COURSE_WORDS = ("lab", "sessional", "practical")


def data_dir() -> Path:
    override = os.environ.get("ACADOPS_DATA_DIR")
    return Path(override) if override else DATA_DIR


def get_source_files(base: Optional[Path] = None) -> List[Path]:
    base = base or data_dir()
    if not base.is_dir():
        return []
    return sorted(p for p in base.iterdir() if p.is_file() and p.suffix.lower() in SHEET_SUFFIXES)


def file_signature(files: List[Path]) -> FileSignature:
    return tuple((str(f), f.stat().st_mtime) for f in files)


def label_from_stem(stem: str, prefix: str) -> str:
    """"admitted_Spring_2024" -> "Spring 2024"."""
    return stem[len(prefix):].replace("_", " ").strip()


def _clean_headers(headers: List[object]) -> List[str]:
    seen: Dict[str, int] = {}
    out: List[str] = []
    for raw in headers:
        name = "" if raw is None or (isinstance(raw, float) and math.isnan(raw)) else str(raw)
        name = name.lstrip("\ufeff").strip() or UNKNOWN_HEADER
        count = seen.get(name, 0) + 1
        seen[name] = count
        out.append(name if count == 1 else f"{name}_{count}")
    return out


def _tidy(df: pd.DataFrame) -> pd.DataFrame:
    df = df.fillna("").astype(str)
    if df.empty:
        return df
    df = df.apply(lambda col: col.str.strip())
    keep = ~(df == "").all(axis=1)
    return df[keep].reset_index(drop=True)


def read_sheet_csv(source) -> pd.DataFrame:
    """Read a sheet export as strings.

    Accepts a path or CSV text. Headers lose any BOM, blank headers become
    UNKNOWN, repeated headers get `_2`, `_3`, ... Cells are stripped and fully
    blank rows dropped.
    """
    def _open():
        return source if isinstance(source, Path) else io.StringIO(str(source))

    try:
        width = len(pd.read_csv(_open(), header=None, nrows=1, dtype=str, encoding="utf-8-sig").columns)
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    # Rows longer than the header row are cut to its width.
    raw = pd.read_csv(
        _open(),
        header=None,
        dtype=str,
        keep_default_na=False,
        encoding="utf-8-sig",
        engine="python",
        on_bad_lines=lambda fields: fields[:width],
    )
    return _with_header_row(raw)


def _with_header_row(raw: pd.DataFrame) -> pd.DataFrame:
    if raw.empty:
        return pd.DataFrame()
    df = raw.iloc[1:].reset_index(drop=True)
    df.columns = _clean_headers(list(raw.iloc[0]))
    return _tidy(df)


def read_sheet(path: Path) -> pd.DataFrame:
    if path.suffix.lower() == ".xlsx":
        return _with_header_row(pd.read_excel(path, dtype=str, header=None, engine="openpyxl"))
    return read_sheet_csv(path)


def _safe_read(path: Path) -> Optional[pd.DataFrame]:
    try:
        df = read_sheet(path)
    except (OSError, ValueError, zipfile.BadZipFile) as exc:
        logger.warning("skipping unreadable sheet %s: %s", path.name, exc)
        return None
    logger.debug("read %s: %d rows", path.name, len(df))
    return df


def _files_with_stem(files: List[Path], stem: str) -> List[Path]:
    return [f for f in files if f.stem == stem or f.stem.startswith(stem + "_")]


def load_table(files: List[Path], stem: str, cols: List[str]) -> pd.DataFrame:
    frames = [df for df in (_safe_read(f) for f in _files_with_stem(files, stem)) if df is not None]
    if not frames:
        return ensure_columns(pd.DataFrame(), cols)
    return ensure_columns(pd.concat(frames, ignore_index=True), cols)


def mobile_number(row: pd.Series) -> str:
    """First non-blank value under a mobile/cell header (never an email column)."""
    for key, value in row.items():
        lower = str(key).lower()
        if ("mobile" in lower or "cell" in lower) and "email" not in lower:
            text = str(value).strip()
            if text:
                return text
    return ""


def requirement_value(text: str, kind: str) -> float:
    if not text:
        return 0.0
    match = (_THEORY_VALUE if kind == "Theory" else _LAB_VALUE).search(text)
    if match:
        return float(match.group(1))
    if kind == "Theory" and not _KIND_WORD.search(text):
        bare = _BARE_NUMBER.search(text)
        if bare:
            return float(bare.group(1))
    return 0.0


def class_requirements(requirement: str, duration: str) -> Dict[str, int]:
    """Per-kind class count: floor(requirement / duration), 0 without a duration."""
    out: Dict[str, int] = {}
    for kind in ("Theory", "Lab"):
        dur = requirement_value(duration, kind)
        out[kind] = int(math.floor(requirement_value(requirement, kind) / dur)) if dur > 0 else 0
    return out


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _prefer(primary: pd.Series, fallback: pd.Series) -> pd.Series:
    primary = primary.fillna("").astype(str)
    return primary.where(~blank_mask(primary), fallback)


def merge_section_rows(
    raw: pd.DataFrame,
    references: pd.DataFrame,
    teachers: pd.DataFrame,
    programs: pd.DataFrame,
    semester_label: str = "",
) -> pd.DataFrame:
    """Join a raw section sheet with the reference, teacher and program tables."""
    df = ensure_columns(raw, SECTION_COLUMNS).reset_index(drop=True)
    if df.empty:
        return df

    df["Semester"] = df["Semester"].astype(str).str.strip()
    if semester_label:
        df["Semester"] = df["Semester"].where(df["Semester"] != "", semester_label)

    refs = ensure_columns(references, REFERENCE_COLUMNS)
    refs = refs.drop_duplicates(subset=["Ref"], keep="last").set_index("Ref")
    for dst, src in [("Course Type", "Course Type"), ("Capacity", "Section Capacity"), ("Weekly Class", "Weekly Class")]:
        df[dst] = _prefer(df["Ref"].map(refs[src]), df[dst])

    staff = ensure_columns(teachers, TEACHER_COLUMNS)
    staff = staff[~blank_mask(staff["Employee ID"])].copy()
    staff["_mobile"] = staff.apply(mobile_number, axis=1) if not staff.empty else ""
    staff["_tid"] = staff["Employee ID"].map(normalize_id)
    staff = staff[staff["_tid"] != ""].drop_duplicates(subset=["_tid"], keep="last").set_index("_tid")
    tid = df["Teacher ID"].map(normalize_id)
    found = tid.isin(staff.index)
    for col in ["Employee Name", "Designation", "Email"]:
        df[col] = _prefer(tid.map(staff[col]), df[col])
    df["Mobile Number"] = tid.map(staff["_mobile"]).where(found, df["Mobile Number"]).fillna("")

    program_map = build_program_map(programs)
    pid = df["PID"].map(normalize_id)
    has_program = pid.isin(program_map.index)
    short = pid.map(program_map["Program Short Name"]).fillna("")
    df["Program"] = (df["PID"].astype(str) + " " + short).where(has_program, df["PID"])

    reqs = {
        key: class_requirements(str(row["Class Requirement"]), str(row["Class Duration"]))
        for key, row in program_map.iterrows()
    }

    def _requirement(row: pd.Series) -> str:
        per_kind = reqs.get(normalize_id(row["PID"]))
        if per_kind is None:
            return "0"
        course_type = str(row["Course Type"]).lower()
        base = per_kind["Lab"] if any(w in course_type for w in _LAB_COURSE_WORDS) else per_kind["Theory"]
        credit = parse_float(row["Credit"]) or 0.0
        return _format_number(base * credit if credit > 0 else base)

    df["ClassRequirement"] = df.apply(_requirement, axis=1)
    return df


def load_sections(
    files: List[Path],
    references: pd.DataFrame,
    teachers: pd.DataFrame,
    programs: pd.DataFrame,
) -> pd.DataFrame:
    frames: List[pd.DataFrame] = []
    for path in _files_with_stem(files, SECTIONS_STEM):
        raw = _safe_read(path)
        if raw is None:
            continue
        label = label_from_stem(path.stem, SECTIONS_STEM + "_") if path.stem != SECTIONS_STEM else ""
        frames.append(merge_section_rows(raw, references, teachers, programs, label))
    if not frames:
        return ensure_columns(pd.DataFrame(), SECTION_COLUMNS)
    sections = pd.concat(frames, ignore_index=True)
    logger.debug("loaded %d section rows", len(sections))
    return sections


def load_admitted(files: List[Path]) -> Dict[str, pd.DataFrame]:
    """Admission semester label -> admitted students of that semester."""
    cache: Dict[str, pd.DataFrame] = {}
    for path in files:
        if not path.stem.startswith(ADMITTED_PREFIX):
            continue
        df = _safe_read(path)
        if df is None:
            continue
        df = ensure_columns(df, STUDENT_COLUMNS)
        labels = df["Semester"].astype(str).str.strip() if "Semester" in df.columns else pd.Series(dtype=str)
        labels = labels[labels != ""]
        label = labels.iloc[0] if not labels.empty else label_from_stem(path.stem, ADMITTED_PREFIX)
        if not label:
            logger.warning("skipping %s: no admission semester", path.name)
            continue
        cache[label] = pd.concat([cache[label], df], ignore_index=True) if label in cache else df
    return cache


def load_registered(files: List[Path]) -> pd.DataFrame:
    frames = [df for df in (_safe_read(f) for f in files if f.stem == REGISTERED_STEM) if df is not None]
    return frames[0] if frames else pd.DataFrame()


@lru_cache(maxsize=4)
def _load_dashboard_data_cached(files_sig: FileSignature) -> Dict[str, object]:
    files = [Path(name) for name, _ in files_sig]
    programs = load_table(files, PROGRAMS_STEM, PROGRAM_COLUMNS)
    references = load_table(files, REFERENCES_STEM, REFERENCE_COLUMNS)
    teachers = load_table(files, TEACHERS_STEM, TEACHER_COLUMNS)
    classrooms = load_table(files, CLASSROOMS_STEM, CLASSROOM_COLUMNS)
    sections = load_sections(files, references, teachers, programs)
    admitted = load_admitted(files)
    registered = load_registered(files)

    return {
        "files": [Path(name).name for name, _ in files_sig],
        "semesters": sort_semesters(sections["Semester"]),
        "course_types": sorted(sections.loc[~blank_mask(sections["Course Type"]), "Course Type"].astype(str).unique()),
        "sections": sections,
        "programs": programs,
        "program_names": program_name_map(programs),
        "classrooms": classrooms,
        "teachers": teachers,
        "references": references,
        "admitted": admitted,
        "admitted_semesters": sort_semesters(admitted.keys()),
        "registered": registered,
        "registered_semesters": registered_semesters(registered),
        "registration_lookup": build_registration_lookup(registered),
    }


def load_dashboard_data() -> Dict[str, object]:
    files = get_source_files()
    if not files:
        logger.warning("no sheets found under %s", data_dir())
        return _load_dashboard_data_cached(())
    return _load_dashboard_data_cached(file_signature(files))


def prepare_context(
    section_filters: dict | SectionFilters,
    data_ctx: Dict[str, object],
    classroom_filters: Optional[ClassroomFilters] = None,
    settings: Settings = Settings(),
) -> Dict[str, object]:
    sections: pd.DataFrame = data_ctx.get("sections", pd.DataFrame())
    programs: pd.DataFrame = data_ctx.get("programs", pd.DataFrame())
    classrooms: pd.DataFrame = data_ctx.get("classrooms", pd.DataFrame())

    filt = (
        section_filters
        if isinstance(section_filters, SectionFilters)
        else normalize_section_filters(
            section_filters,
            available_semesters=data_ctx.get("semesters") or [],
            available_course_types=data_ctx.get("course_types") or [],
            settings=settings,
        )
    )
    filtered_sections = filter_sections(sections, filt, programs)
    filtered_classrooms = filter_classrooms(classrooms, classroom_filters or ClassroomFilters(), programs)
    logger.debug("filtered sections %d -> %d", len(sections), len(filtered_sections))

    return {
        **data_ctx,
        "filters": filt,
        "filtered_sections": filtered_sections,
        "filtered_classrooms": filtered_classrooms,
    }
