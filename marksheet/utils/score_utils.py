"""Utility functions for mark validation, percentages and grading."""

import math

from marksheet.schemas.scoring import Grade, MarkRecord, ScoredMark

# Inclusive lower bounds, evaluated from the highest band down
GRADE_BANDS: tuple[tuple[float, Grade], ...] = (
    (90.0, Grade.A_PLUS),
    (80.0, Grade.A),
    (70.0, Grade.B_PLUS),
    (60.0, Grade.B),
    (50.0, Grade.C),
)


class InvalidInputError(ValueError):
    """Raised when a mark cannot be scored (negative, above max_marks, or max_marks <= 0)."""

    pass


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def validate_mark(marks_obtained: float, max_marks: float) -> None:
    """
    Validate a single mark against its maximum.

    Marks are never clamped: anything outside 0..max_marks is rejected so the
    caller can decide whether to drop the record or the whole batch.

    Raises:
        InvalidInputError: If max_marks <= 0, marks_obtained < 0, marks_obtained > max_marks,
            or either value is not a finite number
    """
    if not math.isfinite(max_marks) or not math.isfinite(marks_obtained):
        raise InvalidInputError("Marks must be finite numbers")
    if max_marks <= 0:
        raise InvalidInputError(f"max_marks must be positive, got {_format_number(max_marks)}")
    if marks_obtained < 0:
        raise InvalidInputError(f"Marks cannot be negative, got {_format_number(marks_obtained)}")
    if marks_obtained > max_marks:
        raise InvalidInputError(
            f"Marks {_format_number(marks_obtained)} exceed the maximum of {_format_number(max_marks)}"
        )


def percentage(marks_obtained: float, max_marks: float) -> float:
    """
    Calculate (marks_obtained / max_marks) * 100.

    The result is not rounded; use round_for_display() for presentation only.

    Raises:
        InvalidInputError: If max_marks <= 0
    """
    if max_marks <= 0:
        raise InvalidInputError(f"max_marks must be positive, got {_format_number(max_marks)}")
    return (marks_obtained / max_marks) * 100


def calculate_grade(pct: float) -> Grade:
    """Band a percentage into a letter grade. Ties go to the higher band."""
    for lower_bound, grade in GRADE_BANDS:
        if pct >= lower_bound:
            return grade
    return Grade.F


def is_passed(marks_obtained: float, passing_marks: float) -> bool:
    return marks_obtained >= passing_marks


def resolve_passing_marks(
    max_marks: float,
    default_passing_percentage: float,
    subject_passing_marks: float | None = None,
    exam_passing_marks: float | None = None,
    subject_max_marks: float | None = None,
    exam_total_marks: float | None = None,
) -> float:
    """
    Resolve the passing marks for one mark, on the mark's own max_marks scale.

    Precedence: subject setting, then exam setting, then default_passing_percentage
    of max_marks. The default percentage has no built-in value; callers pass the
    configured one.

    Subject passing marks are out of subject_max_marks and exam passing marks are
    out of exam_total_marks; both are scaled to max_marks. Without a scale they
    are taken as already out of max_marks.
    """
    if subject_passing_marks is not None:
        return scale_marks(subject_passing_marks, subject_max_marks, max_marks)
    if exam_passing_marks is not None:
        return scale_marks(exam_passing_marks, exam_total_marks, max_marks)
    return max_marks * default_passing_percentage / 100


def scale_marks(value: float, from_max: float | None, to_max: float) -> float:
    """Rescale `value` out of `from_max` to the same fraction of `to_max`."""
    if not from_max or from_max == to_max:
        return value
    return value * to_max / from_max


def score_mark(mark: MarkRecord, passing_marks: float) -> ScoredMark:
    """
    Validate a mark and enrich it with percentage, grade and pass/fail.

    Raises:
        InvalidInputError: If the mark is out of range
    """
    validate_mark(mark.marks_obtained, mark.max_marks)
    pct = percentage(mark.marks_obtained, mark.max_marks)
    return ScoredMark(
        **mark.model_dump(),
        percentage=pct,
        grade=calculate_grade(pct),
        passed=is_passed(mark.marks_obtained, passing_marks),
        passing_marks=passing_marks,
    )


def round_for_display(value: float, places: int = 1) -> str:
    """Format a percentage for display (one decimal place by default)."""
    return f"{value:.{places}f}"
