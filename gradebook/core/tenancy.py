"""Ownership rule shared by every class-scoped read and write.

A class may be touched by its owning teacher or by any admin (platform ``role`` or
domain ``edu_role``). Students, assessments and assignments are authorized through the
class that owns them.
"""
from __future__ import annotations

import logging
from enum import Enum

from sqlalchemy.orm import Session

from gradebook.core.errors import ForbiddenError, NotFoundError
from gradebook.models import Assessment, Assignment, EduRole, PlatformRole, SchoolClass, Student, User


logger = logging.getLogger(__name__)


class AccessDecision(str, Enum):
    ALLOWED = 'allowed'
    FORBIDDEN = 'forbidden'


def is_admin(actor: User) -> bool:
    return actor.edu_role == EduRole.ADMIN.value or actor.role == PlatformRole.ADMIN.value


def check_class_access(actor: User, school_class: SchoolClass) -> AccessDecision:
    if is_admin(actor):
        return AccessDecision.ALLOWED
    if int(school_class.teacher_id) == int(actor.id):
        return AccessDecision.ALLOWED
    return AccessDecision.FORBIDDEN


def authorize_class(actor: User, school_class: SchoolClass) -> SchoolClass:
    if check_class_access(actor, school_class) is AccessDecision.FORBIDDEN:
        logger.warning('tenancy_denied user_id=%s class_id=%s', actor.id, school_class.id)
        raise ForbiddenError('You do not have access to this class')
    return school_class


def require_admin(actor: User) -> None:
    if not is_admin(actor):
        logger.warning('admin_required_denied user_id=%s', actor.id)
        raise ForbiddenError('Admin access required')


def load_class(db: Session, actor: User, class_id: int) -> SchoolClass:
    school_class = db.get(SchoolClass, int(class_id))
    if school_class is None:
        raise NotFoundError('Class not found')
    return authorize_class(actor, school_class)


def load_student(db: Session, actor: User, student_id: int) -> Student:
    student = db.get(Student, int(student_id))
    if student is None:
        raise NotFoundError('Student not found')
    authorize_class(actor, _owning_class(db, student.class_id))
    return student


def load_assessment(db: Session, actor: User, assessment_id: int) -> Assessment:
    assessment = db.get(Assessment, int(assessment_id))
    if assessment is None:
        raise NotFoundError('Assessment not found')
    authorize_class(actor, _owning_class(db, assessment.class_id))
    return assessment


def load_assignment(db: Session, actor: User, assignment_id: int) -> Assignment:
    assignment = db.get(Assignment, int(assignment_id))
    if assignment is None:
        raise NotFoundError('Assignment not found')
    authorize_class(actor, _owning_class(db, assignment.class_id))
    return assignment


def _owning_class(db: Session, class_id: int) -> SchoolClass:
    school_class = db.get(SchoolClass, int(class_id))
    if school_class is None:
        raise NotFoundError('Class not found')
    return school_class
