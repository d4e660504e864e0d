"""Teacher aggregation, the teacher distribution report and the unassigned report."""

import pandas as pd

from acadops.filters import SectionFilters
from acadops.metrics_teachers import (
    aggregate_teachers,
    compute_teacher_report,
    compute_unassigned_report,
    derive_teacher_programs,
)


def _section(**overrides) -> dict:
    row = {
        "Semester": "Fall 2024",
        "PID": "15",
        "Program": "",
        "Course Code": "CSE101",
        "Credit": "3",
        "Capacity": "40",
        "Student": "30",
        "Teacher ID": "T1",
        "Employee Name": "Rahim",
        "Designation": "Lecturer",
        "Email": "rahim@example.edu",
        "Mobile Number": "",
    }
    row.update(overrides)
    return row


def _programs() -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"PID": "15", "Program Short Name": "CSE", "Faculty Short Name": "FSIT"},
            {"PID": "21", "Program Short Name": "EEE", "Faculty Short Name": "FE"},
        ]
    )


class TestAggregateTeachers:

    def test_tba_only_gives_nothing(self):
        assert aggregate_teachers(pd.DataFrame([_section(**{"Teacher ID": "TBA"})])).empty

    def test_blank_ids_skipped(self):
        df = pd.DataFrame([_section(**{"Teacher ID": "  "}), _section(**{"Teacher ID": ""}), _section()])
        summary = aggregate_teachers(df)
        assert summary["teacher_id"].tolist() == ["T1"]

    def test_accumulates_per_teacher(self):
        df = pd.DataFrame(
            [
                _section(Credit="3", Student="30"),
                _section(Credit="1.5", Student="abc"),
                _section(**{"Teacher ID": "T2", "Credit": "3", "Employee Name": ""}),
            ]
        )
        summary = aggregate_teachers(df).set_index("teacher_id")
        assert summary.loc["T1", "credit_load"] == 4.5
        assert summary.loc["T1", "student_count"] == 30
        assert summary.loc["T1", "total_sections"] == 2
        assert summary.loc["T1", "rows"] == [0, 1]
        assert summary.loc["T2", "teacher_name"] == "-"

    def test_ids_matched_exactly(self):
        df = pd.DataFrame([_section(**{"Teacher ID": "t-1"}), _section(**{"Teacher ID": "T1"})])
        assert len(aggregate_teachers(df)) == 2


class TestTeacherReport:

    def test_home_program_is_plurality(self):
        df = pd.DataFrame(
            [
                _section(PID="21"),
                _section(PID="15"),
                _section(PID="15"),
                _section(**{"Teacher ID": "T2", "PID": "21"}),
                _section(**{"Teacher ID": "T2", "PID": "15"}),
                _section(**{"Teacher ID": "T3", "PID": "99"}),
            ]
        )
        homes = derive_teacher_programs(df, _programs()).set_index("teacher_id")
        assert tuple(homes.loc["T1"]) == ("FSIT", "CSE")
        # tie goes to the program seen first
        assert tuple(homes.loc["T2"]) == ("FE", "EEE")
        assert tuple(homes.loc["T3"]) == ("Other", "Unassigned")

    def test_program_without_names_falls_back(self):
        programs = pd.DataFrame([{"PID": "30", "Program Short Name": "", "Faculty Short Name": ""}])
        homes = derive_teacher_programs(pd.DataFrame([_section(PID="3-0")]), programs)
        assert homes.iloc[0].tolist() == ["T1", "Other", "30"]

    def test_report_sorted_by_load_and_grouped(self):
        df = pd.DataFrame(
            [
                _section(Credit="3"),
                _section(**{"Teacher ID": "T2", "Credit": "12", "PID": "21"}),
                _section(**{"Teacher ID": "T3", "Credit": "10"}),
                _section(**{"Teacher ID": "T4", "Credit": "1", "PID": "99"}),
            ]
        )
        payload = compute_teacher_report(SectionFilters(), {"filtered_sections": df, "programs": _programs()})
        assert [r["teacher_id"] for r in payload["table"]] == ["T2", "T3", "T1", "T4"]
        assert payload["table"][0]["faculty"] == "FE"
        assert payload["faculties"] == {
            "FE": [{"program": "EEE", "count": 1}],
            "FSIT": [{"program": "CSE", "count": 2}],
            "Other": [{"program": "Unassigned", "count": 1}],
        }
        assert payload["kpis"]["teachers"] == 4
        assert "by_faculty" in payload["charts"]

    def test_programs_sorted_by_name_within_faculty(self):
        programs = pd.concat(
            [_programs(), pd.DataFrame([{"PID": "16", "Program Short Name": "BBA", "Faculty Short Name": "FSIT"}])]
        )
        df = pd.DataFrame([_section(), _section(**{"Teacher ID": "T2", "PID": "16"})])
        payload = compute_teacher_report(SectionFilters(), {"filtered_sections": df}, programs)
        assert [p["program"] for p in payload["faculties"]["FSIT"]] == ["BBA", "CSE"]

    def test_empty(self):
        payload = compute_teacher_report(SectionFilters(), {"filtered_sections": pd.DataFrame()})
        assert payload["table"] == []
        assert payload["faculties"] == {}


class TestUnassignedReport:

    def test_groups_by_program_and_faculty(self):
        df = pd.DataFrame(
            [
                _section(**{"Teacher ID": "TBA", "Student": "20"}),
                _section(**{"Teacher ID": "", "Student": "10"}),
                _section(**{"Teacher ID": "", "PID": "21", "Student": "5"}),
                _section(**{"Teacher ID": "", "PID": "99", "Program": "99 Misc"}),
                _section(),
            ]
        )
        payload = compute_unassigned_report(SectionFilters(), {"filtered_sections": df, "programs": _programs()})
        assert payload["kpis"] == {"sections": 4, "students": 65, "programs": 3}
        by_program = {p["program"]: p for p in payload["programs"]}
        assert by_program["CSE"]["count"] == 2
        assert by_program["CSE"]["students"] == 30
        assert by_program["99 Misc"]["faculty"] == "Other"
        assert sorted(payload["faculties"]) == ["FE", "FSIT", "Other"]

    def test_unknown_program_name(self):
        df = pd.DataFrame([_section(**{"Teacher ID": "", "PID": "", "Program": ""})])
        payload = compute_unassigned_report(SectionFilters(), {"filtered_sections": df, "programs": _programs()})
        assert payload["programs"][0]["program"] == "Unknown"

    def test_all_assigned(self):
        payload = compute_unassigned_report(SectionFilters(), {"filtered_sections": pd.DataFrame([_section()])})
        assert payload["kpis"]["sections"] == 0
        assert payload["programs"] == []
