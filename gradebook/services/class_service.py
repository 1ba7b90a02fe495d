from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from gradebook.config import settings
from gradebook.core.errors import CapacityError, InputValidationError
from gradebook.core.tenancy import is_admin, load_class
from gradebook.models import SchoolClass, User


logger = logging.getLogger(__name__)

CLASS_TEXT_FIELDS = ('subject_name', 'grade_level', 'section', 'academic_year', 'term')


def serialize_class(row: SchoolClass) -> dict:
    return {
        'id': row.id,
        'teacher_id': row.teacher_id,
        'subject_name': row.subject_name,
        'grade_level': row.grade_level,
        'section': row.section,
        'academic_year': row.academic_year,
        'term': row.term,
        'alert_threshold': row.alert_threshold,
        'created_at': row.created_at.isoformat() if row.created_at else None,
        'updated_at': row.updated_at.isoformat() if row.updated_at else None,
    }


def _clean_fields(payload: dict, *, partial: bool) -> dict:
    data: dict = {}
    for name in CLASS_TEXT_FIELDS:
        if name not in payload or payload[name] is None:
            if not partial:
                raise InputValidationError(f'{name} is required')
            continue
        value = str(payload[name]).strip()
        if not value:
            raise InputValidationError(f'{name} must not be empty')
        data[name] = value
    if payload.get('alert_threshold') is not None:
        threshold = int(payload['alert_threshold'])
        if threshold < 0 or threshold > 100:
            raise InputValidationError('Alert threshold must be between 0 and 100')
        data['alert_threshold'] = threshold
    elif not partial:
        data['alert_threshold'] = settings.default_alert_threshold
    return data


def count_owned_classes(db: Session, teacher_id: int) -> int:
    return db.query(SchoolClass).filter(SchoolClass.teacher_id == teacher_id).count()


def list_classes(db: Session, actor: User) -> list[SchoolClass]:
    query = db.query(SchoolClass)
    if not is_admin(actor):
        query = query.filter(SchoolClass.teacher_id == actor.id)
    return query.order_by(SchoolClass.created_at.asc(), SchoolClass.id.asc()).all()


def get_class(db: Session, actor: User, class_id: int) -> SchoolClass:
    return load_class(db, actor, class_id)


def create_class(db: Session, actor: User, payload: dict) -> SchoolClass:
    data = _clean_fields(payload, partial=False)
    if not is_admin(actor):
        owned = count_owned_classes(db, actor.id)
        if owned >= settings.max_classes_per_teacher:
            logger.info('class_capacity_reached teacher_id=%s owned=%s', actor.id, owned)
            raise CapacityError(f'Teachers can create a maximum of {settings.max_classes_per_teacher} classes.')
    row = SchoolClass(teacher_id=actor.id, **data)
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info('class_created class_id=%s teacher_id=%s', row.id, actor.id)
    return row


def update_class(db: Session, actor: User, class_id: int, payload: dict) -> SchoolClass:
    row = load_class(db, actor, class_id)
    for name, value in _clean_fields(payload, partial=True).items():
        setattr(row, name, value)
    db.commit()
    db.refresh(row)
    return row


def delete_class(db: Session, actor: User, class_id: int) -> None:
    row = load_class(db, actor, class_id)
    # Students, assignments, assessments and the note go with the class; grades and
    # submissions follow their students.
    db.delete(row)
    db.commit()
    logger.info('class_deleted class_id=%s actor_id=%s', class_id, actor.id)
