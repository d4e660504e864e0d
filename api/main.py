from __future__ import annotations

from dataclasses import asdict
import logging
import math
from typing import List, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from api.schemas import (
    AdmittedRequestModel,
    ClassroomFiltersModel,
    DirectoryRequestModel,
    ExportRequestModel,
    SectionFiltersModel,
)
from acadops.data import load_dashboard_data, prepare_context
from acadops.filtering import classroom_filter_options, program_filter_options, section_filter_options
from acadops.filters import (
    ALL_SEMESTERS,
    SectionFilters,
    Settings,
    default_course_types,
    normalize_classroom_filters,
    normalize_section_filters,
)
from acadops.metrics_admitted import (
    compute_admitted_report,
    compute_program_kpis,
    default_admitted_semesters,
    merge_admitted_students,
)
from acadops.metrics_courses import aggregate_courses, compute_course_summary
from acadops.metrics_resources import compute_program_resources
from acadops.metrics_teachers import aggregate_teachers, compute_teacher_report, compute_unassigned_report


app = FastAPI(title="Academic Operations API", version="0.1.0")
logger = logging.getLogger(__name__)
settings = Settings()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _filters_from_model(model: SectionFiltersModel, data_ctx: dict) -> SectionFilters:
    raw = model.model_dump()
    return normalize_section_filters(
        raw,
        available_semesters=data_ctx.get("semesters", []),
        available_course_types=data_ctx.get("course_types", []),
        settings=settings,
    )


def _admitted_selection(data_ctx: dict, semesters: Optional[List[str]]) -> List[str]:
    if semesters is None:
        return default_admitted_semesters(data_ctx.get("admitted_semesters", []), settings)
    return semesters


def _registration_target(data_ctx: dict, target: Optional[str]) -> Optional[str]:
    if target:
        return target
    registered = data_ctx.get("registered_semesters", [])
    return registered[0] if registered else None


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
            },
        )
    )


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/semesters")
def meta_semesters():
    try:
        data_ctx = load_dashboard_data()
        return _json(
            {
                "semesters": data_ctx.get("semesters", []),
                "admitted_semesters": data_ctx.get("admitted_semesters", []),
                "registered_semesters": data_ctx.get("registered_semesters", []),
            }
        )
    except Exception as exc:
        logger.exception("meta_semesters failed")
        return _error(exc)


@app.get("/meta/options")
def meta_options(semester: str = Query(default=ALL_SEMESTERS)):
    try:
        data_ctx = load_dashboard_data()
        course_types = data_ctx.get("course_types", [])
        return _json(
            {
                "sections": section_filter_options(data_ctx.get("sections", pd.DataFrame()), semester),
                "classrooms": classroom_filter_options(data_ctx.get("classrooms", pd.DataFrame())),
                "programs": program_filter_options(data_ctx.get("programs", pd.DataFrame())),
                "default_course_types": default_course_types(course_types, settings),
                "default_admitted_semesters": default_admitted_semesters(
                    data_ctx.get("admitted_semesters", []), settings
                ),
            }
        )
    except Exception as exc:
        logger.exception("meta_options failed")
        return _error(exc)


@app.post("/sections")
def sections(filters: SectionFiltersModel):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(filters, data_ctx)
        ctx = prepare_context(f, data_ctx, settings=settings)
        rows: pd.DataFrame = ctx["filtered_sections"]
        return _json(
            {
                "filters": asdict(f),
                "total": int(len(data_ctx.get("sections", pd.DataFrame()))),
                "count": int(len(rows)),
                "rows": rows.to_dict(orient="records"),
            }
        )
    except Exception as exc:
        logger.exception("sections failed")
        return _error(exc)


@app.post("/courses")
def courses(filters: SectionFiltersModel, capacity_bonus: int = Query(default=settings.capacity_bonus)):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(filters, data_ctx)
        ctx = prepare_context(f, data_ctx, settings=settings)
        return _json(compute_course_summary(f, ctx, capacity_bonus=capacity_bonus))
    except Exception as exc:
        logger.exception("courses failed")
        return _error(exc)


@app.post("/teachers")
def teachers(filters: SectionFiltersModel):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(filters, data_ctx)
        ctx = prepare_context(f, data_ctx, settings=settings)
        return _json(compute_teacher_report(f, ctx))
    except Exception as exc:
        logger.exception("teachers failed")
        return _error(exc)


@app.post("/unassigned")
def unassigned(filters: SectionFiltersModel):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(filters, data_ctx)
        ctx = prepare_context(f, data_ctx, settings=settings)
        return _json(compute_unassigned_report(f, ctx))
    except Exception as exc:
        logger.exception("unassigned failed")
        return _error(exc)


@app.post("/classrooms")
def classrooms(filters: ClassroomFiltersModel):
    try:
        data_ctx = load_dashboard_data()
        cf = normalize_classroom_filters(filters.model_dump())
        ctx = prepare_context({}, data_ctx, classroom_filters=cf, settings=settings)
        rows: pd.DataFrame = ctx["filtered_classrooms"]
        return _json(
            {
                "filters": asdict(cf),
                "total": int(len(data_ctx.get("classrooms", pd.DataFrame()))),
                "count": int(len(rows)),
                "rows": rows.to_dict(orient="records"),
                "options": classroom_filter_options(data_ctx.get("classrooms", pd.DataFrame())),
            }
        )
    except Exception as exc:
        logger.exception("classrooms failed")
        return _error(exc)


@app.post("/admitted")
def admitted(request: AdmittedRequestModel):
    try:
        data_ctx = load_dashboard_data()
        report = compute_admitted_report(
            _admitted_selection(data_ctx, request.semesters),
            data_ctx.get("admitted", {}),
            data_ctx.get("registration_lookup", {}),
            _registration_target(data_ctx, request.target),
            program_names=data_ctx.get("program_names", {}),
        )
        return _json(report)
    except Exception as exc:
        logger.exception("admitted failed")
        return _error(exc)


@app.post("/admitted/directory")
def admitted_directory(request: DirectoryRequestModel):
    try:
        data_ctx = load_dashboard_data()
        students = merge_admitted_students(
            _admitted_selection(data_ctx, request.semesters),
            data_ctx.get("admitted", {}),
            search=request.search,
            registration_filters=request.registration_filters,
            lookup=data_ctx.get("registration_lookup", {}),
        )
        return _json({"count": int(len(students)), "rows": students.to_dict(orient="records")})
    except Exception as exc:
        logger.exception("admitted_directory failed")
        return _error(exc)


@app.get("/programs/{pid}/kpis")
def program_kpis(
    pid: str,
    target: Optional[str] = Query(default=None),
    semesters: Optional[List[str]] = Query(default=None),
):
    try:
        data_ctx = load_dashboard_data()
        kpis = compute_program_kpis(
            pid,
            _admitted_selection(data_ctx, semesters),
            data_ctx.get("admitted", {}),
            data_ctx.get("registration_lookup", {}),
            _registration_target(data_ctx, target),
        )
        return _json(kpis)
    except Exception as exc:
        logger.exception("program_kpis failed")
        return _error(exc)


@app.get("/programs/{pid}/resources")
def program_resources(
    pid: str,
    semester: Optional[str] = Query(default=None),
    low_student_threshold: int = Query(default=settings.low_student_threshold),
):
    try:
        data_ctx = load_dashboard_data()
        return _json(compute_program_resources(pid, data_ctx, semester, low_student_threshold, settings))
    except Exception as exc:
        logger.exception("program_resources failed")
        return _error(exc)


@app.post("/export/{page}")
def export_page(page: str, request: ExportRequestModel):
    data_ctx = load_dashboard_data()
    f = _filters_from_model(request.sections, data_ctx)
    cf = normalize_classroom_filters(request.classrooms.model_dump())
    ctx = prepare_context(f, data_ctx, classroom_filters=cf, settings=settings)

    filename = f"{page}.csv"
    if page == "sections":
        export_df = ctx.get("filtered_sections")
    elif page == "courses":
        export_df = aggregate_courses(ctx["filtered_sections"], request.capacity_bonus).drop(columns=["rows"])
    elif page == "teachers":
        export_df = aggregate_teachers(ctx["filtered_sections"]).drop(columns=["rows"])
    elif page == "classrooms":
        export_df = ctx.get("filtered_classrooms")
    else:
        export_df = pd.DataFrame()

    if export_df is None or not hasattr(export_df, "to_csv"):
        export_df = pd.DataFrame()
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
