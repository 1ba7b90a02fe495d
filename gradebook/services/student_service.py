from __future__ import annotations

import logging
import re

from sqlalchemy.orm import Session

from gradebook.core.errors import ConflictError, InputValidationError
from gradebook.core.tenancy import load_class, load_student
from gradebook.models import Student, User
from gradebook.services import csv_import
from gradebook.services.auth_service import is_valid_email


logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r'\s+')


def generate_student_code(section: str, index: int) -> str:
    prefix = _WHITESPACE_RE.sub('', section or '').upper()[:3]
    return f'{prefix}{index:04d}'


def allocate_student_codes(section: str, roster_size: int, count: int, taken: set[str]) -> list[str]:
    """Hands out ``count`` codes continuing from ``roster_size + 1``.

    The starting point is fixed once for the whole batch. Codes already present in the
    class (left behind after deletions) are stepped over rather than reused.
    """
    taken_upper = {code.upper() for code in taken}
    codes: list[str] = []
    index = roster_size + 1
    while len(codes) < count:
        code = generate_student_code(section, index)
        index += 1
        if code.upper() in taken_upper:
            continue
        taken_upper.add(code.upper())
        codes.append(code)
    return codes


def serialize_student(row: Student) -> dict:
    return {
        'id': row.id,
        'class_id': row.class_id,
        'student_code': row.student_code,
        'name': row.name,
        'email': row.email,
        'has_share_link': bool(row.share_token),
        'share_token': row.share_token,
        'created_at': row.created_at.isoformat() if row.created_at else None,
    }


def _clean_name(name: str | None) -> str:
    clean = (name or '').strip()
    if not clean:
        raise InputValidationError('Student name is required')
    return clean


def _clean_email(email: str | None, *, strict: bool) -> str | None:
    clean = (email or '').strip()
    if not clean:
        return None
    if strict and not is_valid_email(clean):
        raise InputValidationError('Invalid email address')
    return clean


def load_roster(db: Session, class_id: int) -> list[Student]:
    return db.query(Student).filter(Student.class_id == class_id).order_by(Student.id.asc()).all()


def list_students(db: Session, actor: User, class_id: int) -> list[Student]:
    load_class(db, actor, class_id)
    return load_roster(db, class_id)


def create_student(db: Session, actor: User, class_id: int, *, name: str, email: str | None = None) -> Student:
    school_class = load_class(db, actor, class_id)
    clean_name = _clean_name(name)
    clean_email = _clean_email(email, strict=True)
    roster = load_roster(db, class_id)
    [code] = allocate_student_codes(school_class.section, len(roster), 1, {s.student_code for s in roster})
    row = Student(class_id=school_class.id, student_code=code, name=clean_name, email=clean_email)
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info('student_created student_id=%s class_id=%s', row.id, class_id)
    return row


def bulk_import_students(db: Session, actor: User, class_id: int, candidates: list[dict]) -> list[Student]:
    school_class = load_class(db, actor, class_id)
    cleaned = [
        {'name': _clean_name(item.get('name')), 'email': _clean_email(item.get('email'), strict=False)}
        for item in candidates
    ]
    if not cleaned:
        return []
    roster = load_roster(db, class_id)
    codes = allocate_student_codes(
        school_class.section,
        len(roster),
        len(cleaned),
        {s.student_code for s in roster},
    )
    rows = [
        Student(class_id=school_class.id, student_code=code, name=item['name'], email=item['email'])
        for code, item in zip(codes, cleaned)
    ]
    db.add_all(rows)
    db.commit()
    for row in rows:
        db.refresh(row)
    logger.info('students_bulk_imported class_id=%s count=%s', class_id, len(rows))
    return rows


def import_students_csv(
    db: Session,
    actor: User,
    class_id: int,
    file_bytes: bytes,
    *,
    name_column: str | None = None,
    email_column: str | None = None,
) -> list[Student]:
    load_class(db, actor, class_id)
    parsed = csv_import.parse_csv(file_bytes)
    candidates = csv_import.student_candidates(parsed, name_column=name_column, email_column=email_column)
    return bulk_import_students(db, actor, class_id, candidates)


def update_student(db: Session, actor: User, student_id: int, payload: dict) -> Student:
    row = load_student(db, actor, student_id)
    if payload.get('name') is not None:
        row.name = _clean_name(payload['name'])
    if 'email' in payload:
        row.email = _clean_email(payload.get('email'), strict=True)
    if payload.get('student_code') is not None:
        new_code = str(payload['student_code']).strip()
        if not new_code:
            raise InputValidationError('Student code must not be empty')
        clash = (
            db.query(Student)
            .filter(Student.class_id == row.class_id, Student.id != row.id)
            .all()
        )
        if any((other.student_code or '').lower() == new_code.lower() for other in clash):
            raise ConflictError(f'Student code {new_code} is already used in this class')
        row.student_code = new_code
    db.commit()
    db.refresh(row)
    return row


def delete_student(db: Session, actor: User, student_id: int) -> None:
    row = load_student(db, actor, student_id)
    db.delete(row)
    db.commit()
    logger.info('student_deleted student_id=%s actor_id=%s', student_id, actor.id)
