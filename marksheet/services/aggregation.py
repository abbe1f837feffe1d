"""Service for grouping scored marks and computing performance summaries.

Two aggregation conventions are used, each under its own name:

- exam_percentage(): totals-based, sum(marks_obtained) / sum(max_marks) * 100.
  Used for a single exam (certificates) and for class/subject averages.
- trend_average_percentage(): arithmetic mean of per-exam percentages.
  Used for a student's performance across several exams.

Nothing here raises for empty input; invalid marks raise InvalidInputError
from score_marks() unless the SKIP policy is requested.
"""

import logging
from collections import defaultdict
from collections.abc import Sequence
from datetime import date

from marksheet.models import ExamStatus
from marksheet.schemas.scoring import (
    ClassSummary,
    ExamPerformance,
    ExamRecord,
    ExamResult,
    Grade,
    Insight,
    InvalidMarkPolicy,
    MarkRecord,
    PerformanceOverview,
    ScoredMark,
    ScoringBatch,
    SkippedMark,
    StudentRecord,
    StudentSummary,
    SubjectRecord,
    SubjectSummary,
    Trend,
    Urgency,
)
from marksheet.utils.score_utils import (
    InvalidInputError,
    calculate_grade,
    percentage,
    resolve_passing_marks,
    round_for_display,
    score_mark,
)
from marksheet.utils.statistics_utils import calculate_rate, calculate_statistics

logger = logging.getLogger(__name__)


def score_marks(
    marks: Sequence[MarkRecord],
    exams: Sequence[ExamRecord],
    subjects: Sequence[SubjectRecord],
    default_passing_percentage: float,
    policy: InvalidMarkPolicy = InvalidMarkPolicy.REJECT,
) -> ScoringBatch:
    """
    Score a batch of marks, resolving passing marks from subject and exam settings.

    Args:
        marks: Raw marks to score
        exams: Exams referenced by the marks (unknown exams fall back to the default)
        subjects: Subjects referenced by the marks (unknown subjects fall back to the default)
        default_passing_percentage: Passing threshold, as a percentage of max_marks, when
            neither the subject nor the exam configures passing marks
        policy: REJECT raises on the first invalid mark; SKIP drops invalid marks and
            reports them in ScoringBatch.skipped

    Raises:
        InvalidInputError: Under the REJECT policy, for the first invalid mark
    """
    exams_by_id = {exam.id: exam for exam in exams}
    subjects_by_id = {subject.id: subject for subject in subjects}

    batch = ScoringBatch()
    for index, mark in enumerate(marks):
        subject = subjects_by_id.get(mark.subject_id)
        exam = exams_by_id.get(mark.exam_id)
        passing_marks = resolve_passing_marks(
            mark.max_marks,
            default_passing_percentage,
            subject_passing_marks=subject.passing_marks if subject else None,
            exam_passing_marks=exam.passing_marks if exam else None,
            subject_max_marks=subject.max_marks if subject else None,
            exam_total_marks=exam.total_marks if exam else None,
        )
        try:
            batch.scored.append(score_mark(mark, passing_marks))
        except InvalidInputError as e:
            if policy == InvalidMarkPolicy.REJECT:
                raise InvalidInputError(
                    f"Mark #{index} (student {mark.student_id}, exam {mark.exam_id}, subject {mark.subject_id}): {e}"
                ) from e
            logger.warning(f"Skipping invalid mark #{index} for student {mark.student_id}: {e}")
            batch.skipped.append(SkippedMark(index=index, mark=mark, reason=str(e)))

    return batch


def exam_percentage(marks: Sequence[MarkRecord]) -> float:
    """Totals-based percentage of a group of marks; 0.0 when there is nothing to total."""
    total_max = sum(mark.max_marks for mark in marks)
    if total_max <= 0:
        return 0.0
    return percentage(sum(mark.marks_obtained for mark in marks), total_max)


def trend_average_percentage(percentages: Sequence[float]) -> float:
    """Mean of per-exam percentages; 0.0 for no exams."""
    if not percentages:
        return 0.0
    return sum(percentages) / len(percentages)


def build_exam_performance(
    exam_id: str, marks: Sequence[ScoredMark], exam_date: date | None = None
) -> ExamPerformance:
    """
    Totals for one student in one exam.

    The exam counts as passed only when there is at least one mark and every
    subject mark passed.
    """
    pct = exam_percentage(marks)
    return ExamPerformance(
        exam_id=exam_id,
        exam_date=exam_date,
        total_obtained=sum(mark.marks_obtained for mark in marks),
        total_max=sum(mark.max_marks for mark in marks),
        percentage=pct,
        grade=calculate_grade(pct),
        passed=bool(marks) and all(mark.passed for mark in marks),
        subject_count=len({mark.subject_id for mark in marks}),
    )


def build_exam_result(
    student_id: str, exam_id: str, marks: Sequence[ScoredMark], exam_date: date | None = None
) -> ExamResult:
    """Certificate data for one student in one exam."""
    subject_marks = [mark for mark in marks if mark.student_id == student_id and mark.exam_id == exam_id]
    performance = build_exam_performance(exam_id, subject_marks, exam_date)
    return ExamResult(
        **performance.model_dump(),
        student_id=student_id,
        subjects=subject_marks,
        percentage_display=round_for_display(performance.percentage),
    )


def calculate_trend(performances: Sequence[ExamPerformance], threshold: float) -> tuple[Trend, float]:
    """
    Compare the two most recent exams.

    Exams are ordered by date; undated exams go last in their given order.
    Returns (trend, change in percentage points).
    """
    ordered = sorted(performances, key=lambda p: (p.exam_date is None, p.exam_date or date.min))
    if len(ordered) < 2:
        return Trend.STABLE, 0.0

    change = ordered[-1].percentage - ordered[-2].percentage
    if change > threshold:
        return Trend.IMPROVING, change
    if change < -threshold:
        return Trend.DECLINING, change
    return Trend.STABLE, change


def summarize_by_student(
    marks: Sequence[ScoredMark],
    exams: Sequence[ExamRecord],
    students: Sequence[StudentRecord] | None = None,
    trend_threshold: float = 5.0,
) -> list[StudentSummary]:
    """
    Per-student, per-exam performance plus the cross-exam average.

    Students come from `students` when given (including those without marks),
    otherwise from the marks in first-seen order. Every exam produces an entry,
    with percentage 0 when the student has no marks in it; exams restricted to
    another class level are skipped for students whose class is known. Cancelled
    exams, and scheduled exams nobody has marks in yet, are left out. Marks for
    exams not listed in `exams` are ignored.
    """
    marked_exam_ids = {mark.exam_id for mark in marks}
    counted_exams = [
        exam
        for exam in exams
        if exam.status != ExamStatus.CANCELLED
        and not (exam.status == ExamStatus.SCHEDULED and exam.id not in marked_exam_ids)
    ]

    marks_by_student_exam: dict[tuple[str, str], list[ScoredMark]] = defaultdict(list)
    for mark in marks:
        marks_by_student_exam[(mark.student_id, mark.exam_id)].append(mark)

    class_by_student: dict[str, str] = {}
    if students is None:
        student_ids = list(dict.fromkeys(mark.student_id for mark in marks))
    else:
        student_ids = [student.id for student in students]
        class_by_student = {student.id: student.class_level for student in students}

    summaries: list[StudentSummary] = []
    for student_id in student_ids:
        class_level = class_by_student.get(student_id)
        per_exam: list[ExamPerformance] = []
        for exam in counted_exams:
            if class_level and exam.class_level and exam.class_level != class_level:
                continue
            per_exam.append(
                build_exam_performance(exam.id, marks_by_student_exam.get((student_id, exam.id), []), exam.exam_date)
            )

        average = trend_average_percentage([performance.percentage for performance in per_exam])
        trend, trend_value = calculate_trend(per_exam, trend_threshold)
        summaries.append(
            StudentSummary(
                student_id=student_id,
                class_level=class_level,
                per_exam=per_exam,
                average_performance=average,
                grade=calculate_grade(average),
                trend=trend,
                trend_value=trend_value,
            )
        )

    return summaries


def summarize_by_class(marks: Sequence[ScoredMark], students: Sequence[StudentRecord]) -> list[ClassSummary]:
    """
    Class-wide statistics, grouped by each student's class level.

    A mark carries no class, so the class is looked up from `students`; marks
    for students not in that list are ignored. Classes with enrolled students
    but no marks yet report zeros.
    """
    class_by_student = {student.id: student.class_level for student in students}
    enrolled: dict[str, set[str]] = defaultdict(set)
    for student in students:
        enrolled[student.class_level].add(student.id)

    marks_by_class: dict[str, list[ScoredMark]] = defaultdict(list)
    unknown_count = 0
    for mark in marks:
        class_level = class_by_student.get(mark.student_id)
        if class_level is None:
            unknown_count += 1
            continue
        marks_by_class[class_level].append(mark)

    if unknown_count:
        logger.warning(f"Ignored {unknown_count} marks for students without a known class")

    summaries: list[ClassSummary] = []
    for class_level in sorted(enrolled):
        class_marks = marks_by_class.get(class_level, [])
        stats = calculate_statistics([mark.percentage for mark in class_marks])
        pass_count = sum(1 for mark in class_marks if mark.passed)
        summaries.append(
            ClassSummary(
                class_level=class_level,
                average_score=exam_percentage(class_marks),
                student_count=len(enrolled[class_level]),
                mark_count=len(class_marks),
                total_marks_obtained=sum(mark.marks_obtained for mark in class_marks),
                highest_percentage=stats["max"],
                lowest_percentage=stats["min"],
                pass_count=pass_count,
                fail_count=len(class_marks) - pass_count,
            )
        )

    return summaries


def grade_distribution(grades: Sequence[Grade]) -> dict[str, int]:
    """Count grades, listing every band (highest first) even when empty."""
    distribution = {grade.value: 0 for grade in Grade}
    for grade in grades:
        distribution[grade.value] += 1
    return distribution


def summarize_by_subject(marks: Sequence[ScoredMark]) -> list[SubjectSummary]:
    """
    Subject-wide statistics.

    Students are counted once per subject even when they have several rows
    (retests); every row still contributes to the totals and the grade counts.
    """
    marks_by_subject: dict[str, list[ScoredMark]] = defaultdict(list)
    for mark in marks:
        marks_by_subject[mark.subject_id].append(mark)

    summaries: list[SubjectSummary] = []
    for subject_id in sorted(marks_by_subject):
        subject_marks = marks_by_subject[subject_id]
        stats = calculate_statistics([mark.percentage for mark in subject_marks])
        pass_count = sum(1 for mark in subject_marks if mark.passed)
        summaries.append(
            SubjectSummary(
                subject_id=subject_id,
                average_score=exam_percentage(subject_marks),
                distinct_student_count=len({mark.student_id for mark in subject_marks}),
                mark_count=len(subject_marks),
                highest_percentage=stats["max"],
                lowest_percentage=stats["min"],
                pass_count=pass_count,
                fail_count=len(subject_marks) - pass_count,
                grade_distribution=grade_distribution([mark.grade for mark in subject_marks]),
            )
        )

    return summaries


def priority_insights(
    summaries: Sequence[StudentSummary], threshold: float = 60.0, urgent_threshold: float = 40.0
) -> list[Insight]:
    """
    Flag students whose average performance is below `threshold`, worst first.

    Averages below `urgent_threshold` need immediate intervention (HIGH); the
    rest need additional support (LOW).
    """
    flagged = sorted(
        (summary for summary in summaries if summary.average_performance < threshold),
        key=lambda summary: (summary.average_performance, summary.student_id),
    )
    return [
        Insight(
            student_id=summary.student_id,
            average_performance=summary.average_performance,
            urgency=Urgency.HIGH if summary.average_performance < urgent_threshold else Urgency.LOW,
        )
        for summary in flagged
    ]


def build_overview(
    marks: Sequence[ScoredMark],
    summaries: Sequence[StudentSummary],
    exam_count: int,
    subject_count: int,
) -> PerformanceOverview:
    """Organization-wide counts and statistics over student averages."""
    stats = calculate_statistics([summary.average_performance for summary in summaries])
    return PerformanceOverview(
        student_count=len(summaries),
        exam_count=exam_count,
        subject_count=subject_count,
        mark_count=len(marks),
        **stats,
        grade_distribution=grade_distribution([summary.grade for summary in summaries]),
        pass_rate=calculate_rate(sum(1 for mark in marks if mark.passed), len(marks)),
    )
