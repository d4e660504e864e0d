"""Filter normalization and the section / classroom filter engines."""

import pandas as pd

from acadops.filtering import (
    classroom_filter_options,
    filter_classrooms,
    filter_sections,
    program_filter_options,
    section_filter_options,
)
from acadops.filters import (
    ClassroomFilters,
    SectionFilters,
    clear_section_filters,
    default_course_types,
    normalize_classroom_filters,
    normalize_section_filters,
)


def _section(**overrides) -> dict:
    row = {
        "Semester": "Fall 2024",
        "PID": "15",
        "Course Code": "CSE101",
        "Course Title": "Intro",
        "Credit": "3",
        "Type": "Core",
        "Course Type": "Theory",
        "Capacity": "40",
        "Student": "30",
        "Teacher ID": "T1",
        "Employee Name": "Rahim",
        "Class Taken": "10",
    }
    row.update(overrides)
    return row


def _programs() -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"PID": "15", "Program Short Name": "CSE", "Faculty Short Name": "FSIT", "Program Type": "Undergraduate", "Semester Type": "Tri"},
            {"PID": "21", "Program Short Name": "EEE", "Faculty Short Name": "FE", "Program Type": "Undergraduate", "Semester Type": "Bi"},
        ]
    )


def _ids(df: pd.DataFrame) -> list:
    return df["Course Code"].tolist()


class TestNormalizeSectionFilters:

    def test_semester_defaults_to_latest(self):
        f = normalize_section_filters({}, available_semesters=["Spring 2024", "Fall 2024"])
        assert f.semester == "Fall 2024"

    def test_semester_all_without_data(self):
        assert normalize_section_filters({}).semester == "All"

    def test_default_course_types_only_when_unset(self):
        available = ["Theory", "Lab", "Thesis", "Final Project", "Internship", "Viva Voce"]
        f = normalize_section_filters({}, available_course_types=available)
        assert f.course_types == ["Theory", "Lab"]
        f = normalize_section_filters({"course_types": []}, available_course_types=available)
        assert f.course_types == []

    def test_bounds_and_program_ids(self):
        f = normalize_section_filters(
            {"student_min": "", "student_max": "40", "programs": ["CSE-15", "cse15", ""], "student_counts": ["3", "x"]}
        )
        assert f.student_min is None
        assert f.student_max == 40
        assert f.programs == ["cse15"]
        assert f.student_counts == [3]

    def test_default_course_types_helper(self):
        assert default_course_types(["Thesis", "Lab"]) == ["Lab"]

    def test_clear_keeps_semester(self):
        f = SectionFilters(semester="Fall 2024", search="x", teachers=["T1"])
        cleared = clear_section_filters(f)
        assert cleared == SectionFilters(semester="Fall 2024")


class TestFilterSections:

    def test_missing_field_selects_blank_rows(self):
        df = pd.DataFrame([_section(**{"Teacher ID": ""}), _section(**{"Teacher ID": "T1", "Course Code": "X"})])
        out = filter_sections(df, SectionFilters(missing_fields=["Teacher ID"]))
        assert _ids(out) == ["CSE101"]

    def test_missing_fields_require_all_blank(self):
        df = pd.DataFrame(
            [
                _section(**{"Teacher ID": "", "Capacity": ""}),
                _section(**{"Teacher ID": "", "Course Code": "B"}),
            ]
        )
        out = filter_sections(df, SectionFilters(missing_fields=["Teacher ID", "Capacity"]))
        assert _ids(out) == ["CSE101"]

    def test_search_any_field_case_insensitive(self):
        df = pd.DataFrame([_section(), _section(**{"Course Code": "EEE201", "Employee Name": "Karim"})])
        assert _ids(filter_sections(df, SectionFilters(search="KARIM"))) == ["EEE201"]

    def test_semester_exact(self):
        df = pd.DataFrame([_section(), _section(Semester="Spring 2024", **{"Course Code": "OLD"})])
        assert _ids(filter_sections(df, SectionFilters(semester="Spring 2024"))) == ["OLD"]
        assert len(filter_sections(df, SectionFilters(semester="All"))) == 2

    def test_categorical_membership(self):
        df = pd.DataFrame([_section(), _section(**{"Course Type": "Lab", "Course Code": "LAB1"})])
        assert _ids(filter_sections(df, SectionFilters(course_types=["Lab"]))) == ["LAB1"]
        assert len(filter_sections(df, SectionFilters(course_types=[]))) == 2

    def test_numeric_range_inclusive(self):
        df = pd.DataFrame(
            [
                _section(Student="10", **{"Course Code": "A"}),
                _section(Student="20", **{"Course Code": "B"}),
                _section(Student="n/a", **{"Course Code": "C"}),
            ]
        )
        assert _ids(filter_sections(df, SectionFilters(student_min=10, student_max=20))) == ["A", "B"]
        assert _ids(filter_sections(df, SectionFilters(student_max=5))) == ["C"]
        assert _ids(filter_sections(df, SectionFilters(student_counts=[20]))) == ["B"]

    def test_class_taken_range(self):
        df = pd.DataFrame([_section(**{"Class Taken": "3"}), _section(**{"Class Taken": "12", "Course Code": "B"})])
        assert _ids(filter_sections(df, SectionFilters(class_taken_min=5))) == ["B"]

    def test_faculty_filter_joins_through_normalized_pid(self):
        df = pd.DataFrame(
            [
                _section(PID="15"),
                _section(PID="21", **{"Course Code": "EEE"}),
                _section(PID="99", **{"Course Code": "ORPHAN"}),
            ]
        )
        out = filter_sections(df, SectionFilters(faculties=["FE"]), _programs())
        assert _ids(out) == ["EEE"]

    def test_unmatched_pid_excluded_when_type_filter_active(self):
        df = pd.DataFrame([_section(PID="99", **{"Course Code": "ORPHAN"}), _section()])
        out = filter_sections(df, SectionFilters(program_types=["Undergraduate"]), _programs())
        assert _ids(out) == ["CSE101"]

    def test_unmatched_pid_kept_without_program_filters(self):
        df = pd.DataFrame([_section(PID="99", **{"Course Code": "ORPHAN"})])
        assert _ids(filter_sections(df, SectionFilters(), _programs())) == ["ORPHAN"]

    def test_program_selection_decides_outright(self):
        df = pd.DataFrame([_section(PID="1-5"), _section(PID="21", **{"Course Code": "EEE"})])
        out = filter_sections(df, SectionFilters(programs=["15"], faculties=["FE"]), _programs())
        assert _ids(out) == ["CSE101"]

    def test_filter_is_pure(self):
        df = pd.DataFrame([_section(), _section(**{"Teacher ID": "T2"})])
        before = df.copy()
        filter_sections(df, SectionFilters(teachers=["T2"]))
        pd.testing.assert_frame_equal(df, before)


class TestFilterClassrooms:

    def _rooms(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {"PID": "15", "Building": "AB1", "Floor": "2", "Room": "201", "Room Type": "Theory", "Capacity": "60"},
                {"PID": "21", "Building": "AB2", "Floor": "3", "Room": "301", "Room Type": "Lab", "Capacity": "30"},
                {"PID": "", "Building": "AB1", "Floor": "1", "Room": "101", "Room Type": "Theory", "Capacity": ""},
            ]
        )

    def test_building_and_capacity(self):
        rooms = self._rooms()
        out = filter_classrooms(rooms, ClassroomFilters(buildings=["AB1"], capacity_min=50))
        assert out["Room"].tolist() == ["201"]

    def test_faculty_cascade(self):
        out = filter_classrooms(self._rooms(), ClassroomFilters(faculties=["FE"]), _programs())
        assert out["Room"].tolist() == ["301"]

    def test_missing_capacity(self):
        out = filter_classrooms(self._rooms(), normalize_classroom_filters({"missing_fields": ["Capacity"]}))
        assert out["Room"].tolist() == ["101"]

    def test_options(self):
        options = classroom_filter_options(self._rooms())
        assert options["buildings"] == ["AB1", "AB2"]
        assert options["room_types"] == ["Lab", "Theory"]


class TestFilterOptions:

    def test_section_options_for_semester(self):
        df = pd.DataFrame(
            [
                _section(Credit="3"),
                _section(Credit="1.5", **{"Teacher ID": "T2", "Employee Name": "Anika"}),
                _section(Credit="10", **{"Teacher ID": "TBA"}),
                _section(Semester="Spring 2024", Credit="4"),
            ]
        )
        options = section_filter_options(df, "Fall 2024")
        assert options["semesters"] == ["All", "Fall 2024", "Spring 2024"]
        assert options["credits"] == ["1.5", "3", "10"]
        assert options["teachers"] == [{"id": "T2", "name": "Anika"}, {"id": "T1", "name": "Rahim"}]

    def test_program_options(self):
        options = program_filter_options(_programs())
        assert options["faculties"] == ["FE", "FSIT"]
        assert [p["pid"] for p in options["programs"]] == ["15", "21"]
