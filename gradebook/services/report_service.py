from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.orm import Session

from gradebook.core.errors import NarrativeUnavailableError, NotFoundError
from gradebook.core.tenancy import load_class
from gradebook.models import SchoolClass, Student, User
from gradebook.services import aggregation, narrative_client
from gradebook.services.assessment_service import load_class_assessments
from gradebook.services.assignment_service import load_class_assignments
from gradebook.services.grade_service import load_class_grades
from gradebook.services.student_service import load_roster
from gradebook.services.submission_service import load_class_submissions


logger = logging.getLogger(__name__)

NarrativeGenerator = Callable[[str], str]


def _pct(value: int | None, empty: str) -> str:
    return f'{value}%' if value is not None else empty


def _class_header(school_class: SchoolClass) -> str:
    return (
        f'Class: {school_class.subject_name} ({school_class.grade_level} - {school_class.section})\n'
        f'Term: {school_class.term} {school_class.academic_year}\n'
    )


def build_student_prompt(school_class: SchoolClass, student_name: str, grades: dict, homework: dict) -> str:
    lines = []
    for item in grades['summary']:
        score = 'N/A' if item['score'] is None else f"{item['score']:g}"
        lines.append(
            f"- {item['name']} ({item['type']}): {score}/{item['max_score']} ({_pct(item['percentage'], 'N/A')})"
        )
    return (
        'You are an experienced teacher writing a brief, encouraging progress report for a student.\n\n'
        f'Student: {student_name}\n'
        f'{_class_header(school_class)}'
        f"Term Average: {_pct(grades['term_average'], 'No grades yet')}\n"
        f"Submission Rate: {homework['submission_rate']}%\n"
        f"Homework: {homework['submitted_count']} of {homework['total_assignments']} submitted, "
        f"{homework['late_count']} late, {homework['missing_count']} missing\n"
        'Assessment Results:\n'
        + '\n'.join(lines)
        + '\n\nWrite a 2-3 paragraph narrative progress report. Be specific, constructive, and encouraging. '
        'Mention strengths and areas for improvement. Keep it professional and suitable for sharing with parents.'
    )


def build_class_prompt(school_class: SchoolClass, summary: dict) -> str:
    return (
        'You are an experienced teacher writing a class progress summary report.\n\n'
        f'{_class_header(school_class)}'
        f"Class Average: {_pct(summary['class_average'], 'No grades yet')}\n"
        f"Total Students: {summary['roster_size']}\n"
        f"Students above 90%: {summary['above_90_count']}\n"
        f"Students at risk (<{summary['alert_threshold']}%): {summary['at_risk_count']}\n\n"
        'Write a 2-3 paragraph class progress summary. Highlight overall performance, areas of strength, '
        'and areas needing attention. Be constructive and professional.'
    )


def _attach_narrative(report: dict, prompt: str, generator: NarrativeGenerator, include: bool) -> dict:
    report['narrative'] = ''
    if not include:
        return report
    try:
        report['narrative'] = generator(prompt) or ''
    except NarrativeUnavailableError as exc:
        logger.warning('narrative_failed kind=%s class_id=%s error=%s', report['kind'], report['class_id'], exc.message)
        report['narrative_error'] = exc.message
    return report


def _student_report(school_class: SchoolClass, student: Student, assessments, grades, assignments, submissions) -> dict:
    grade_summary = aggregation.student_grade_summary(
        student, assessments, grades, int(school_class.alert_threshold)
    )
    homework = aggregation.student_homework_summary(student, assignments, submissions)
    return {
        'kind': 'student',
        'class_id': school_class.id,
        'student_name': student.name,
        'student_code': student.student_code,
        'grade_summary': grade_summary['summary'],
        'term_average': grade_summary['term_average'],
        'bucket': grade_summary['bucket'],
        'submission_rate': homework['submission_rate'],
        'homework': homework,
    }


def _class_report(school_class: SchoolClass, roster, assessments, grades, assignments, submissions) -> dict:
    threshold = int(school_class.alert_threshold)
    overview = aggregation.class_overview(school_class, roster, assessments, grades, assignments, submissions)
    averages = [row['term_average'] for row in overview['students'] if row['term_average'] is not None]
    return {
        'kind': 'class',
        'class_id': school_class.id,
        'roster_size': overview['roster_size'],
        'class_average': overview['class_average'],
        'above_90_count': sum(1 for avg in averages if avg >= aggregation.EXCELLENT_FLOOR),
        'at_risk_count': sum(1 for avg in averages if avg < threshold),
        'alert_threshold': threshold,
        'students': [
            {
                'name': row['name'],
                'student_code': row['student_code'],
                'average': row['term_average'],
                'submission_rate': row['submission_rate'],
                'bucket': row['bucket'],
            }
            for row in overview['students']
        ],
    }


def generate_report(
    db: Session,
    actor: User,
    class_id: int,
    student_id: int | None = None,
    *,
    include_narrative: bool = True,
    generator: NarrativeGenerator | None = None,
) -> dict:
    school_class = load_class(db, actor, class_id)
    generator = generator or narrative_client.generate
    roster = load_roster(db, school_class.id)
    assessments = load_class_assessments(db, school_class.id)
    grades = load_class_grades(db, school_class.id)
    assignments = load_class_assignments(db, school_class.id)
    submissions = load_class_submissions(db, school_class.id)

    if student_id is not None:
        student = next((row for row in roster if row.id == int(student_id)), None)
        if student is None:
            raise NotFoundError('Student not found in this class')
        report = _student_report(school_class, student, assessments, grades, assignments, submissions)
        prompt = build_student_prompt(
            school_class,
            student.name,
            {'summary': report['grade_summary'], 'term_average': report['term_average']},
            report['homework'],
        )
    else:
        report = _class_report(school_class, roster, assessments, grades, assignments, submissions)
        prompt = build_class_prompt(school_class, report)

    logger.info('report_generated kind=%s class_id=%s actor_id=%s', report['kind'], school_class.id, actor.id)
    return _attach_narrative(report, prompt, generator, include_narrative)
