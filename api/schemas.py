from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class SectionFiltersModel(BaseModel):
    semester: Optional[str] = None
    search: str = ""
    missing_fields: List[str] = Field(default_factory=list)
    faculties: List[str] = Field(default_factory=list)
    program_types: List[str] = Field(default_factory=list)
    semester_types: List[str] = Field(default_factory=list)
    programs: List[str] = Field(default_factory=list)
    teachers: List[str] = Field(default_factory=list)
    # None selects the default course types; [] means every course type.
    course_types: Optional[List[str]] = None
    types: List[str] = Field(default_factory=list)
    credits: List[str] = Field(default_factory=list)
    capacities: List[str] = Field(default_factory=list)
    student_min: Optional[int] = None
    student_max: Optional[int] = None
    student_counts: List[int] = Field(default_factory=list)
    class_taken_min: Optional[int] = None
    class_taken_max: Optional[int] = None
    class_taken_counts: List[int] = Field(default_factory=list)


class ClassroomFiltersModel(BaseModel):
    search: str = ""
    missing_fields: List[str] = Field(default_factory=list)
    faculties: List[str] = Field(default_factory=list)
    programs: List[str] = Field(default_factory=list)
    buildings: List[str] = Field(default_factory=list)
    floors: List[str] = Field(default_factory=list)
    room_types: List[str] = Field(default_factory=list)
    capacity_min: Optional[int] = None
    capacity_max: Optional[int] = None


class AdmittedRequestModel(BaseModel):
    # None selects the latest admission semesters.
    semesters: Optional[List[str]] = None
    target: Optional[str] = None


class DirectoryRequestModel(BaseModel):
    semesters: Optional[List[str]] = None
    search: str = ""
    registration_filters: Dict[str, Literal["registered", "unregistered"]] = Field(default_factory=dict)


class ExportRequestModel(BaseModel):
    sections: SectionFiltersModel = Field(default_factory=SectionFiltersModel)
    classrooms: ClassroomFiltersModel = Field(default_factory=ClassroomFiltersModel)
    capacity_bonus: int = 0
