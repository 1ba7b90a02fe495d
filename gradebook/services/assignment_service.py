from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from gradebook.core.errors import InputValidationError
from gradebook.core.tenancy import load_assignment, load_class
from gradebook.models import Assignment, User


logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ('name', 'due_date', 'week_number', 'week_label', 'points')


def serialize_assignment(row: Assignment) -> dict:
    return {
        'id': row.id,
        'class_id': row.class_id,
        'name': row.name,
        'due_date': row.due_date.isoformat() if row.due_date else None,
        'week_number': row.week_number,
        'week_label': row.week_label,
        'points': row.points,
    }


def _apply(row: Assignment, payload: dict) -> None:
    for name in _EDITABLE_FIELDS:
        if name not in payload:
            continue
        value = payload[name]
        if name == 'name':
            value = (value or '').strip()
            if not value:
                raise InputValidationError('Assignment name is required')
        if name == 'points':
            value = 10 if value is None else int(value)
            if value < 0:
                raise InputValidationError('Points must not be negative')
        if name == 'week_label' and value is not None:
            value = str(value).strip() or None
        setattr(row, name, value)


def list_assignments(db: Session, actor: User, class_id: int) -> list[Assignment]:
    load_class(db, actor, class_id)
    return load_class_assignments(db, class_id)


def load_class_assignments(db: Session, class_id: int) -> list[Assignment]:
    return (
        db.query(Assignment)
        .filter(Assignment.class_id == class_id)
        .order_by(Assignment.week_number.asc(), Assignment.due_date.asc(), Assignment.id.asc())
        .all()
    )


def create_assignment(db: Session, actor: User, class_id: int, payload: dict) -> Assignment:
    load_class(db, actor, class_id)
    row = Assignment(class_id=class_id, points=10)
    _apply(row, {'name': payload.get('name'), **payload})
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info('assignment_created assignment_id=%s class_id=%s', row.id, class_id)
    return row


def update_assignment(db: Session, actor: User, assignment_id: int, payload: dict) -> Assignment:
    row = load_assignment(db, actor, assignment_id)
    _apply(row, payload)
    db.commit()
    db.refresh(row)
    return row


def delete_assignment(db: Session, actor: User, assignment_id: int) -> None:
    row = load_assignment(db, actor, assignment_id)
    db.delete(row)
    db.commit()
    logger.info('assignment_deleted assignment_id=%s actor_id=%s', assignment_id, actor.id)
