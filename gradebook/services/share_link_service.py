"""Parent-facing share links.

A student carries at most one live token. Resolving a token is public and yields a
read-only projection of that student's grades and homework; it never exposes email
addresses, teacher notes, other students or account data.
"""
from __future__ import annotations

import logging
import secrets

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gradebook.config import settings
from gradebook.core.errors import ConflictError, NotFoundError
from gradebook.core.tenancy import load_student
from gradebook.models import SchoolClass, Student, Submission, User
from gradebook.services import aggregation
from gradebook.services.assessment_service import load_class_assessments
from gradebook.services.assignment_service import load_class_assignments
from gradebook.services.grade_service import load_class_grades


logger = logging.getLogger(__name__)

_MAX_ATTEMPTS = 3
_MIN_TOKEN_BYTES = 16
_MAX_TOKEN_BYTES = 48


def new_token() -> str:
    size = min(_MAX_TOKEN_BYTES, max(_MIN_TOKEN_BYTES, int(settings.share_token_bytes)))
    return secrets.token_urlsafe(size)


def generate(db: Session, actor: User, student_id: int) -> dict:
    student = load_student(db, actor, student_id)
    for attempt in range(1, _MAX_ATTEMPTS + 1):
        student.share_token = new_token()
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning('share_link_token_collision student_id=%s attempt=%s', student_id, attempt)
            continue
        db.refresh(student)
        logger.info('share_link_generated student_id=%s actor_id=%s', student.id, actor.id)
        return {'student_id': student.id, 'token': student.share_token}
    raise ConflictError('Could not allocate a share link, please retry')


def revoke(db: Session, actor: User, student_id: int) -> dict:
    student = load_student(db, actor, student_id)
    student.share_token = None
    db.commit()
    logger.info('share_link_revoked student_id=%s actor_id=%s', student.id, actor.id)
    return {'student_id': student.id, 'revoked': True}


def resolve(db: Session, token: str | None) -> dict:
    clean = (token or '').strip()
    student = db.query(Student).filter(Student.share_token == clean).first() if clean else None
    if student is None:
        raise NotFoundError('Invalid or expired link')
    school_class = db.get(SchoolClass, student.class_id)
    if school_class is None:
        raise NotFoundError('Invalid or expired link')

    assessments = load_class_assessments(db, school_class.id)
    grades = [g for g in load_class_grades(db, school_class.id) if g.student_id == student.id]
    assignments = load_class_assignments(db, school_class.id)
    submissions = db.query(Submission).filter(Submission.student_id == student.id).all()

    return {
        'student': {'name': student.name, 'student_code': student.student_code},
        'class': {
            'subject_name': school_class.subject_name,
            'grade_level': school_class.grade_level,
            'section': school_class.section,
            'term': school_class.term,
            'academic_year': school_class.academic_year,
        },
        'grades': aggregation.student_grade_summary(
            student, assessments, grades, int(school_class.alert_threshold)
        ),
        'homework': aggregation.student_homework_summary(student, assignments, submissions),
    }
