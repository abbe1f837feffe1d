from datetime import date

import pytest

from marksheet.models import ExamStatus
from marksheet.schemas.scoring import (
    ExamRecord,
    Grade,
    InvalidMarkPolicy,
    MarkRecord,
    StudentRecord,
    StudentSummary,
    SubjectRecord,
    Trend,
    Urgency,
)
from marksheet.services.aggregation import (
    build_exam_performance,
    build_exam_result,
    build_overview,
    calculate_trend,
    exam_percentage,
    grade_distribution,
    priority_insights,
    score_marks,
    summarize_by_class,
    summarize_by_student,
    summarize_by_subject,
    trend_average_percentage,
)
from marksheet.utils.score_utils import InvalidInputError


def mark(student_id, subject_id, obtained, max_marks=100, exam_id="exam1"):
    return MarkRecord(
        student_id=student_id,
        exam_id=exam_id,
        subject_id=subject_id,
        marks_obtained=obtained,
        max_marks=max_marks,
    )


def scored(*marks, exams=(), subjects=(), default_passing_percentage=35.0):
    return score_marks(list(marks), list(exams), list(subjects), default_passing_percentage).scored


def summary(student_id, average):
    return StudentSummary(student_id=student_id, per_exam=[], average_performance=average, grade=Grade.F)


# score_marks


def test_score_marks_reject_policy_raises_on_first_invalid_mark():
    marks = [mark("a", "math", 50), mark("b", "math", -5), mark("c", "math", 200)]
    with pytest.raises(InvalidInputError, match="Mark #1"):
        score_marks(marks, [], [], 35.0, policy=InvalidMarkPolicy.REJECT)


def test_score_marks_defaults_to_reject():
    with pytest.raises(InvalidInputError):
        score_marks([mark("a", "math", 5, max_marks=0)], [], [], 35.0)


def test_score_marks_skip_policy_reports_invalid_marks():
    marks = [mark("a", "math", 50), mark("b", "math", -5), mark("c", "math", 200)]
    batch = score_marks(marks, [], [], 35.0, policy=InvalidMarkPolicy.SKIP)
    assert [m.student_id for m in batch.scored] == ["a"]
    assert [s.index for s in batch.skipped] == [1, 2]
    assert "negative" in batch.skipped[0].reason
    assert batch.skipped[1].mark.student_id == "c"


def test_score_marks_resolves_passing_marks():
    exams = [ExamRecord(id="exam1", passing_marks=50)]
    subjects = [SubjectRecord(id="art", passing_marks=20)]
    result = scored(
        mark("a", "art", 25),
        mark("a", "math", 45),
        mark("a", "math", 45, exam_id="exam2"),
        exams=exams,
        subjects=subjects,
    )
    art, math_exam1, math_exam2 = result
    assert art.passing_marks == 20 and art.passed
    assert math_exam1.passing_marks == 50 and not math_exam1.passed
    assert math_exam2.passing_marks == 35 and math_exam2.passed


def test_score_marks_scales_subject_passing_marks_to_mark():
    subjects = [SubjectRecord(id="math", max_marks=100, passing_marks=35)]
    (result,) = scored(mark("a", "math", 18, max_marks=20), subjects=subjects)

    assert result.grade == Grade.A_PLUS
    assert result.passing_marks == 7
    assert result.passed is True


def test_score_marks_scales_exam_passing_marks_to_mark():
    exams = [ExamRecord(id="exam1", passing_marks=105, total_marks=300)]
    marks = scored(mark("a", "math", 90), mark("a", "science", 90), mark("a", "english", 90), exams=exams)

    assert all(m.passing_marks == 35 for m in marks)
    result = build_exam_result("a", "exam1", marks)
    assert result.grade == Grade.A_PLUS
    assert result.passed is True


# conventions


def test_exam_percentage_is_totals_based():
    marks = [mark("a", "x", 10, max_marks=10), mark("b", "y", 1, max_marks=100)]
    assert exam_percentage(marks) == pytest.approx(10.0)


def test_exam_percentage_empty_is_zero():
    assert exam_percentage([]) == 0.0


def test_trend_average_percentage_is_mean():
    assert trend_average_percentage([100.0, 1.0]) == 50.5
    assert trend_average_percentage([]) == 0.0


# per student


def test_end_to_end_student_exam_scenario():
    marks = scored(mark("A", "math", 80), mark("A", "science", 70))
    summaries = summarize_by_student(marks, [ExamRecord(id="exam1")])

    assert len(summaries) == 1
    performance = summaries[0].per_exam[0]
    assert performance.exam_id == "exam1"
    assert performance.total_obtained == 150
    assert performance.total_max == 200
    assert performance.percentage == 75
    assert performance.grade == Grade.B_PLUS
    assert performance.passed is True
    assert performance.subject_count == 2


def test_summarize_by_student_missing_exam_is_zero_not_nan():
    marks = scored(mark("A", "math", 80, exam_id="exam1"))
    summaries = summarize_by_student(marks, [ExamRecord(id="exam1"), ExamRecord(id="exam2")])

    per_exam = {p.exam_id: p for p in summaries[0].per_exam}
    assert per_exam["exam2"].percentage == 0
    assert per_exam["exam2"].passed is False
    assert per_exam["exam2"].subject_count == 0
    assert summaries[0].average_performance == pytest.approx(40.0)


def test_summarize_by_student_average_is_mean_of_exam_percentages():
    marks = scored(
        mark("A", "x", 10, max_marks=10, exam_id="exam1"),
        mark("A", "y", 1, max_marks=100, exam_id="exam2"),
    )
    summaries = summarize_by_student(marks, [ExamRecord(id="exam1"), ExamRecord(id="exam2")])
    assert summaries[0].average_performance == pytest.approx(50.5)
    assert summaries[0].grade == Grade.C


def test_summarize_by_student_uses_student_list_and_class_levels():
    students = [StudentRecord(id="A", class_level="5"), StudentRecord(id="B", class_level="6")]
    exams = [ExamRecord(id="exam5", class_level="5"), ExamRecord(id="any")]
    marks = scored(mark("A", "math", 90, exam_id="exam5"))

    summaries = summarize_by_student(marks, exams, students)

    assert [s.student_id for s in summaries] == ["A", "B"]
    assert [p.exam_id for p in summaries[0].per_exam] == ["exam5", "any"]
    assert [p.exam_id for p in summaries[1].per_exam] == ["any"]
    assert summaries[1].class_level == "6"
    assert summaries[1].average_performance == 0


def test_summarize_by_student_empty():
    assert summarize_by_student([], []) == []


def test_summarize_by_student_trend():
    exams = [
        ExamRecord(id="final", exam_date=date(2024, 6, 1)),
        ExamRecord(id="midterm", exam_date=date(2024, 3, 1)),
    ]
    marks = scored(mark("A", "math", 50, exam_id="midterm"), mark("A", "math", 70, exam_id="final"))

    summaries = summarize_by_student(marks, exams)

    assert summaries[0].trend == Trend.IMPROVING
    assert summaries[0].trend_value == pytest.approx(20.0)


def test_summarize_by_student_leaves_out_cancelled_exams():
    exams = [
        ExamRecord(id="term1", status=ExamStatus.COMPLETED, exam_date=date(2024, 3, 1)),
        ExamRecord(id="term2", status=ExamStatus.CANCELLED, exam_date=date(2024, 6, 1)),
    ]
    marks = scored(mark("A", "math", 80, exam_id="term1"))

    summaries = summarize_by_student(marks, exams)

    assert [p.exam_id for p in summaries[0].per_exam] == ["term1"]
    assert summaries[0].average_performance == pytest.approx(80.0)
    assert summaries[0].trend == Trend.STABLE
    assert priority_insights(summaries) == []


def test_summarize_by_student_leaves_out_scheduled_exams_without_marks():
    exams = [
        ExamRecord(id="term1", status=ExamStatus.SCHEDULED),
        ExamRecord(id="term2", status=ExamStatus.SCHEDULED),
        ExamRecord(id="term3", status=ExamStatus.ONGOING),
    ]
    marks = scored(mark("A", "math", 80, exam_id="term1"))

    summaries = summarize_by_student(marks, exams)

    assert [p.exam_id for p in summaries[0].per_exam] == ["term1", "term3"]
    assert summaries[0].average_performance == pytest.approx(40.0)


def test_calculate_trend_thresholds():
    def trend(*pcts):
        performances = [
            build_exam_performance(f"e{i}", scored(mark("A", "m", pct, exam_id=f"e{i}")), date(2024, 1, i + 1))
            for i, pct in enumerate(pcts)
        ]
        return calculate_trend(performances, 5.0)

    assert trend(80, 60)[0] == Trend.DECLINING
    assert trend(80, 60)[1] == pytest.approx(-20.0)
    assert trend(60, 70)[0] == Trend.IMPROVING
    assert trend(60, 64)[0] == Trend.STABLE
    assert trend(60, 64)[1] == pytest.approx(4.0)
    assert trend(50, 50) == (Trend.STABLE, 0.0)
    assert trend(60) == (Trend.STABLE, 0.0)
    assert calculate_trend([], 5.0) == (Trend.STABLE, 0.0)


def test_calculate_trend_orders_undated_exams_last():
    undated = build_exam_performance("undated", scored(mark("A", "m", 20, exam_id="undated")))
    dated = build_exam_performance("dated", scored(mark("A", "m", 90, exam_id="dated")), date(2024, 5, 1))
    trend, change = calculate_trend([undated, dated], 5.0)
    assert trend == Trend.DECLINING
    assert change == pytest.approx(-70.0)


def test_build_exam_result_certificate_data():
    marks = scored(
        mark("A", "math", 80),
        mark("A", "science", 30),
        mark("B", "math", 99),
        mark("A", "math", 10, exam_id="exam2"),
    )
    result = build_exam_result("A", "exam1", marks)

    assert [m.subject_id for m in result.subjects] == ["math", "science"]
    assert result.total_obtained == 110
    assert result.total_max == 200
    assert result.percentage == pytest.approx(55.0)
    assert result.percentage_display == "55.0"
    assert result.grade == Grade.C
    assert result.passed is False  # science below 35


# per class


def test_summarize_by_class_empty():
    assert summarize_by_class([], []) == []


def test_summarize_by_class_is_totals_based():
    students = [StudentRecord(id="a", class_level="10"), StudentRecord(id="b", class_level="10")]
    marks = scored(mark("a", "x", 10, max_marks=10), mark("b", "y", 1, max_marks=100))

    summaries = summarize_by_class(marks, students)

    assert len(summaries) == 1
    assert summaries[0].average_score == pytest.approx(10.0)
    assert summaries[0].student_count == 2
    assert summaries[0].mark_count == 2
    assert summaries[0].total_marks_obtained == 11
    assert summaries[0].highest_percentage == 100.0
    assert summaries[0].lowest_percentage == 1.0
    assert summaries[0].pass_count == 1
    assert summaries[0].fail_count == 1


def test_summarize_by_class_equal_max_marks():
    students = [StudentRecord(id="a", class_level="9"), StudentRecord(id="b", class_level="9")]
    marks = scored(mark("a", "x", 100), mark("b", "x", 0))
    assert summarize_by_class(marks, students)[0].average_score == 50.0


def test_summarize_by_class_groups_by_student_class():
    students = [
        StudentRecord(id="a", class_level="9"),
        StudentRecord(id="b", class_level="8"),
        StudentRecord(id="c", class_level="8"),
    ]
    marks = scored(mark("a", "x", 90), mark("b", "x", 40), mark("c", "x", 60), mark("ghost", "x", 100))

    summaries = summarize_by_class(marks, students)

    assert [s.class_level for s in summaries] == ["8", "9"]
    assert summaries[0].average_score == 50.0
    assert summaries[0].student_count == 2
    assert summaries[1].average_score == 90.0
    assert sum(s.mark_count for s in summaries) == 3


def test_summarize_by_class_without_marks_is_zeroed():
    summaries = summarize_by_class([], [StudentRecord(id="a", class_level="7")])

    assert summaries[0].average_score == 0
    assert summaries[0].student_count == 1
    assert summaries[0].mark_count == 0
    assert summaries[0].highest_percentage is None
    assert summaries[0].lowest_percentage is None


# per subject


def test_summarize_by_subject_counts_distinct_students():
    marks = scored(mark("a", "math", 30), mark("a", "math", 60), mark("b", "math", 90))

    summaries = summarize_by_subject(marks)

    assert len(summaries) == 1
    assert summaries[0].distinct_student_count == 2
    assert summaries[0].mark_count == 3
    assert summaries[0].average_score == 60.0


def test_summarize_by_subject_retest_is_one_student():
    marks = scored(mark("a", "math", 30), mark("a", "math", 60))
    assert summarize_by_subject(marks)[0].distinct_student_count == 1


def test_summarize_by_subject_grade_distribution_and_pass_counts():
    marks = scored(mark("a", "math", 95), mark("b", "math", 55), mark("c", "math", 20), mark("a", "art", 71))

    summaries = summarize_by_subject(marks)

    assert [s.subject_id for s in summaries] == ["art", "math"]
    math = summaries[1]
    assert math.grade_distribution == {"A+": 1, "A": 0, "B+": 0, "B": 0, "C": 1, "F": 1}
    assert math.pass_count == 2
    assert math.fail_count == 1
    assert math.highest_percentage == 95.0
    assert math.lowest_percentage == 20.0


def test_summarize_by_subject_empty():
    assert summarize_by_subject([]) == []


def test_grade_distribution_lists_every_grade():
    assert grade_distribution([]) == {"A+": 0, "A": 0, "B+": 0, "B": 0, "C": 0, "F": 0}


# insights


def test_priority_insights_filters_and_sorts():
    insights = priority_insights([summary("a", 80), summary("b", 55), summary("c", 30)], threshold=60)

    assert [(i.student_id, i.average_performance) for i in insights] == [("c", 30), ("b", 55)]
    assert insights[0].urgency == Urgency.HIGH
    assert insights[1].urgency == Urgency.LOW


def test_priority_insights_thresholds_are_strict():
    insights = priority_insights([summary("a", 60), summary("b", 40)], threshold=60, urgent_threshold=40)

    assert [i.student_id for i in insights] == ["b"]
    assert insights[0].urgency == Urgency.LOW


def test_priority_insights_ties_sorted_by_student():
    insights = priority_insights([summary("z", 10), summary("m", 10)])
    assert [i.student_id for i in insights] == ["m", "z"]


def test_priority_insights_empty():
    assert priority_insights([]) == []


# overview


def test_build_overview():
    marks = scored(mark("a", "math", 90), mark("b", "math", 20))
    summaries = summarize_by_student(marks, [ExamRecord(id="exam1")])

    overview = build_overview(marks, summaries, exam_count=1, subject_count=1)

    assert overview.student_count == 2
    assert overview.mark_count == 2
    assert overview.mean == pytest.approx(55.0)
    assert overview.max == 90.0
    assert overview.min == 20.0
    assert overview.grade_distribution["A+"] == 1
    assert overview.grade_distribution["F"] == 1
    assert overview.pass_rate == 50.0


def test_build_overview_empty():
    overview = build_overview([], [], exam_count=0, subject_count=0)
    assert overview.mean is None
    assert overview.pass_rate is None
    assert overview.student_count == 0
