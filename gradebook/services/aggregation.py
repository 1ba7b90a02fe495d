"""Pure gradebook math.

Nothing in this module touches the database: callers load classes, students,
assessments, grades, assignments and submissions and pass them in. Objects are read
by attribute, so ORM rows and plain namespaces both work.

Rounding is round-half-up everywhere (``12.5 -> 13``). Grade percentages default to
``None`` when nothing is graded; homework rates default to ``0``.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable

from gradebook.models import SubmissionStatus


EXCELLENT_FLOOR = 90
COMPLETED_STATUSES = frozenset({SubmissionStatus.SUBMITTED.value, SubmissionStatus.LATE.value})


class GradeBucket(str, Enum):
    EXCELLENT = 'excellent'
    PASSING = 'passing'
    AT_RISK = 'at_risk'
    NO_DATA = 'no_data'


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def percentage(score: float | None, max_score: float | None) -> int | None:
    if score is None or max_score is None or max_score <= 0:
        return None
    return round_half_up(float(score) / float(max_score) * 100)


def _mean(values: list[int]) -> int | None:
    if not values:
        return None
    return round_half_up(sum(values) / len(values))


def _score_index(grades: Iterable) -> dict[tuple[int, int], float | None]:
    return {(int(g.student_id), int(g.assessment_id)): g.score for g in grades}


def _status_index(submissions: Iterable) -> dict[tuple[int, int], str]:
    return {(int(s.student_id), int(s.assignment_id)): s.status for s in submissions}


def term_average(student_id: int, assessments: Iterable, grades: Iterable) -> int | None:
    scores = _score_index(grades)
    percentages = []
    for assessment in assessments:
        pct = percentage(scores.get((int(student_id), int(assessment.id))), assessment.max_score)
        if pct is not None:
            percentages.append(pct)
    return _mean(percentages)


def class_average(assessment, students: Iterable, grades: Iterable) -> int | None:
    scores = _score_index(grades)
    percentages = []
    for student in students:
        pct = percentage(scores.get((int(student.id), int(assessment.id))), assessment.max_score)
        if pct is not None:
            percentages.append(pct)
    return _mean(percentages)


def grade_bucket(pct: int | None, threshold: int) -> GradeBucket:
    # The excellent floor wins when a class threshold is set above it.
    if pct is None:
        return GradeBucket.NO_DATA
    if pct >= EXCELLENT_FLOOR:
        return GradeBucket.EXCELLENT
    if pct >= threshold:
        return GradeBucket.PASSING
    return GradeBucket.AT_RISK


def grade_distribution(averages: Iterable[int | None], threshold: int) -> dict[str, int]:
    counts = {bucket.value: 0 for bucket in GradeBucket}
    for pct in averages:
        counts[grade_bucket(pct, threshold).value] += 1
    return counts


def submission_rate(statuses: Iterable[str], total_count: int) -> int:
    if total_count <= 0:
        return 0
    completed = sum(1 for status in statuses if status in COMPLETED_STATUSES)
    return min(100, round_half_up(completed / total_count * 100))


def student_submission_rate(student_id: int, submissions: Iterable, total_assignments: int) -> int:
    statuses = [s.status for s in submissions if int(s.student_id) == int(student_id)]
    return submission_rate(statuses, total_assignments)


def assignment_submission_rate(assignment_id: int, submissions: Iterable, total_students: int) -> int:
    statuses = [s.status for s in submissions if int(s.assignment_id) == int(assignment_id)]
    return submission_rate(statuses, total_students)


def homework_counts(student_id: int, assignments: Iterable, submissions: Iterable) -> dict[str, int]:
    statuses = _status_index(submissions)
    counts = {status.value: 0 for status in SubmissionStatus}
    for assignment in assignments:
        status = statuses.get((int(student_id), int(assignment.id)), SubmissionStatus.PENDING.value)
        counts[status] = counts.get(status, 0) + 1
    return counts


def student_grade_summary(student, assessments: list, grades: Iterable, threshold: int) -> dict:
    scores = _score_index(grades)
    items = []
    for assessment in assessments:
        score = scores.get((int(student.id), int(assessment.id)))
        items.append(
            {
                'name': assessment.name,
                'type': assessment.type,
                'score': score,
                'max_score': assessment.max_score,
                'percentage': percentage(score, assessment.max_score),
                'date_taken': assessment.date_taken.isoformat() if assessment.date_taken else None,
            }
        )
    average = _mean([item['percentage'] for item in items if item['percentage'] is not None])
    return {
        'summary': items,
        'term_average': average,
        'bucket': grade_bucket(average, threshold).value,
    }


def student_homework_summary(student, assignments: list, submissions: Iterable) -> dict:
    submissions = list(submissions)
    statuses = _status_index(submissions)
    items = [
        {
            'name': assignment.name,
            'week_label': assignment.week_label,
            'due_date': assignment.due_date.isoformat() if assignment.due_date else None,
            'status': statuses.get((int(student.id), int(assignment.id)), SubmissionStatus.PENDING.value),
        }
        for assignment in assignments
    ]
    counts = homework_counts(student.id, assignments, submissions)
    return {
        'summary': items,
        'submission_rate': student_submission_rate(student.id, submissions, len(assignments)),
        'total_assignments': len(assignments),
        'submitted_count': counts[SubmissionStatus.SUBMITTED.value] + counts[SubmissionStatus.LATE.value],
        'late_count': counts[SubmissionStatus.LATE.value],
        'missing_count': counts[SubmissionStatus.MISSING.value],
    }


def class_overview(
    school_class,
    students: list,
    assessments: list,
    grades: list,
    assignments: list,
    submissions: list,
) -> dict:
    threshold = int(school_class.alert_threshold)
    rows = []
    for student in students:
        average = term_average(student.id, assessments, grades)
        rows.append(
            {
                'student_id': student.id,
                'student_code': student.student_code,
                'name': student.name,
                'term_average': average,
                'bucket': grade_bucket(average, threshold).value,
                'submission_rate': student_submission_rate(student.id, submissions, len(assignments)),
            }
        )
    averages = [row['term_average'] for row in rows]
    return {
        'class_id': school_class.id,
        'alert_threshold': threshold,
        'roster_size': len(students),
        'class_average': _mean([avg for avg in averages if avg is not None]),
        'distribution': grade_distribution(averages, threshold),
        'students': rows,
        'at_risk': [row for row in rows if row['bucket'] == GradeBucket.AT_RISK.value],
        'assessments': [
            {
                'assessment_id': assessment.id,
                'name': assessment.name,
                'max_score': assessment.max_score,
                'class_average': class_average(assessment, students, grades),
            }
            for assessment in assessments
        ],
        'assignments': [
            {
                'assignment_id': assignment.id,
                'name': assignment.name,
                'week_label': assignment.week_label,
                'submission_rate': assignment_submission_rate(assignment.id, submissions, len(students)),
            }
            for assignment in assignments
        ],
    }
