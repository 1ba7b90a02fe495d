from __future__ import annotations

import logging
import re
import secrets

from sqlalchemy import func
from sqlalchemy.orm import Session

from gradebook.config import settings
from gradebook.core.errors import InputValidationError
from gradebook.core.tenancy import load_assessment, load_class
from gradebook.models import Assessment, AssessmentType, Grade, User
from gradebook.services import storage_service


logger = logging.getLogger(__name__)

VALID_TYPES = {item.value for item in AssessmentType}
PDF_MIME = 'application/pdf'
_UNSAFE_NAME_RE = re.compile(r'[^A-Za-z0-9._ -]+')


def serialize_assessment(row: Assessment) -> dict:
    return {
        'id': row.id,
        'class_id': row.class_id,
        'name': row.name,
        'date_taken': row.date_taken.isoformat() if row.date_taken else None,
        'type': row.type,
        'max_score': row.max_score,
        'description': row.description,
        'file_url': row.file_url,
        'file_name': row.file_name,
        'has_file': bool(row.file_path),
    }


def _highest_recorded_score(db: Session, assessment_id: int) -> float | None:
    return (
        db.query(func.max(Grade.score))
        .filter(Grade.assessment_id == assessment_id, Grade.score.isnot(None))
        .scalar()
    )


def _apply(db: Session, row: Assessment, payload: dict) -> None:
    if 'name' in payload:
        name = (payload.get('name') or '').strip()
        if not name:
            raise InputValidationError('Assessment name is required')
        row.name = name
    if 'type' in payload:
        kind = (payload.get('type') or AssessmentType.QUIZ.value).strip().lower()
        if kind not in VALID_TYPES:
            raise InputValidationError('Type must be one of: quiz, exam, project, activity, other')
        row.type = kind
    if 'max_score' in payload:
        max_score = 100 if payload.get('max_score') is None else int(payload['max_score'])
        if max_score < 1:
            raise InputValidationError('Max score must be at least 1')
        if row.id is not None:
            highest = _highest_recorded_score(db, row.id)
            if highest is not None and highest > max_score:
                raise InputValidationError(
                    f'Max score cannot be lower than an existing score of {highest:g}'
                )
        row.max_score = max_score
    if 'date_taken' in payload:
        row.date_taken = payload.get('date_taken')
    if 'description' in payload:
        row.description = (payload.get('description') or '').strip() or None


def list_assessments(db: Session, actor: User, class_id: int) -> list[Assessment]:
    load_class(db, actor, class_id)
    return load_class_assessments(db, class_id)


def load_class_assessments(db: Session, class_id: int) -> list[Assessment]:
    return (
        db.query(Assessment)
        .filter(Assessment.class_id == class_id)
        .order_by(Assessment.date_taken.asc(), Assessment.id.asc())
        .all()
    )


def get_assessment(db: Session, actor: User, assessment_id: int) -> Assessment:
    return load_assessment(db, actor, assessment_id)


def create_assessment(db: Session, actor: User, class_id: int, payload: dict) -> Assessment:
    load_class(db, actor, class_id)
    row = Assessment(class_id=class_id, type=AssessmentType.QUIZ.value, max_score=100)
    _apply(db, row, {'name': payload.get('name'), **payload})
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info('assessment_created assessment_id=%s class_id=%s', row.id, class_id)
    return row


def update_assessment(db: Session, actor: User, assessment_id: int, payload: dict) -> Assessment:
    row = load_assessment(db, actor, assessment_id)
    _apply(db, row, payload)
    db.commit()
    db.refresh(row)
    return row


def delete_assessment(db: Session, actor: User, assessment_id: int) -> None:
    row = load_assessment(db, actor, assessment_id)
    file_path = row.file_path
    db.delete(row)
    db.commit()
    storage_service.delete(file_path)
    logger.info('assessment_deleted assessment_id=%s actor_id=%s', assessment_id, actor.id)


def _safe_file_name(file_name: str | None) -> str:
    base = (file_name or '').replace('\\', '/').rsplit('/', 1)[-1]
    clean = _UNSAFE_NAME_RE.sub('_', base).strip() or 'test-paper.pdf'
    return clean[:120]


def upload_file(
    db: Session,
    actor: User,
    assessment_id: int,
    *,
    file_name: str,
    data: bytes,
    mime_type: str | None,
) -> Assessment:
    """Stores a test paper PDF and points the assessment at it."""
    row = load_assessment(db, actor, assessment_id)
    clean_name = _safe_file_name(file_name)
    if (mime_type or '').lower() != PDF_MIME and not clean_name.lower().endswith('.pdf'):
        raise InputValidationError('Only PDF files are accepted')
    if not data:
        raise InputValidationError('Uploaded file is empty')
    if len(data) > settings.upload_max_bytes:
        raise InputValidationError(
            f'File is too large (max {settings.upload_max_bytes // (1024 * 1024)} MB)'
        )

    key = f'test-papers/{row.id}/{secrets.token_hex(4)}-{clean_name}'
    stored = storage_service.put(key, data, PDF_MIME)
    previous = row.file_path
    row.file_path = stored['key']
    row.file_url = stored['url']
    row.file_name = clean_name
    db.commit()
    db.refresh(row)
    if previous and previous != row.file_path:
        storage_service.delete(previous)
    logger.info('assessment_file_uploaded assessment_id=%s bytes=%s', row.id, len(data))
    return row


def remove_file(db: Session, actor: User, assessment_id: int) -> Assessment:
    row = load_assessment(db, actor, assessment_id)
    previous = row.file_path
    row.file_path = None
    row.file_url = None
    row.file_name = None
    db.commit()
    db.refresh(row)
    storage_service.delete(previous)
    return row
