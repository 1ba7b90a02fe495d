from __future__ import annotations

import logging
import math

from sqlalchemy.orm import Session

from gradebook.core.errors import GradebookError, InputValidationError, NotFoundError
from gradebook.core.tenancy import load_assessment, load_class, load_student
from gradebook.models import Assessment, Grade, Student, User
from gradebook.services import csv_import


logger = logging.getLogger(__name__)


def serialize_grade(row: Grade) -> dict:
    return {
        'id': row.id,
        'student_id': row.student_id,
        'assessment_id': row.assessment_id,
        'score': row.score,
        'updated_at': row.updated_at.isoformat() if row.updated_at else None,
    }


def load_class_grades(db: Session, class_id: int) -> list[Grade]:
    return (
        db.query(Grade)
        .join(Assessment, Assessment.id == Grade.assessment_id)
        .filter(Assessment.class_id == class_id)
        .order_by(Grade.id.asc())
        .all()
    )


def list_grades_for_class(db: Session, actor: User, class_id: int) -> list[Grade]:
    load_class(db, actor, class_id)
    return load_class_grades(db, class_id)


def list_grades_for_student(db: Session, actor: User, student_id: int) -> list[Grade]:
    student = load_student(db, actor, student_id)
    return db.query(Grade).filter(Grade.student_id == student.id).order_by(Grade.id.asc()).all()


def _validate_score(score, max_score: int) -> float | None:
    if score is None:
        return None
    try:
        value = float(score)
    except (TypeError, ValueError) as exc:
        raise InputValidationError(f'Score must be between 0 and {max_score}') from exc
    if math.isnan(value) or math.isinf(value) or value < 0 or value > max_score:
        raise InputValidationError(f'Score must be between 0 and {max_score}')
    return value


def _write(db: Session, student_id: int, assessment_id: int, score: float | None) -> Grade:
    row = (
        db.query(Grade)
        .filter(Grade.student_id == student_id, Grade.assessment_id == assessment_id)
        .first()
    )
    if row is None:
        row = Grade(student_id=student_id, assessment_id=assessment_id)
        db.add(row)
    row.score = score
    return row


def _stage_upsert(db: Session, actor: User, student_id: int, assessment_id: int, score) -> Grade:
    student = load_student(db, actor, student_id)
    assessment = load_assessment(db, actor, assessment_id)
    if student.class_id != assessment.class_id:
        raise InputValidationError('Student and assessment belong to different classes')
    value = _validate_score(score, assessment.max_score)
    return _write(db, student.id, assessment.id, value)


def upsert_grade(db: Session, actor: User, *, student_id: int, assessment_id: int, score) -> Grade:
    row = _stage_upsert(db, actor, student_id, assessment_id, score)
    db.commit()
    db.refresh(row)
    return row


def bulk_upsert_grades(db: Session, actor: User, entries: list[dict]) -> dict:
    updated = 0
    failed: list[dict] = []
    for index, entry in enumerate(entries):
        try:
            _stage_upsert(db, actor, int(entry['student_id']), int(entry['assessment_id']), entry.get('score'))
            db.flush()
            updated += 1
        except GradebookError as exc:
            failed.append({'index': index, 'kind': exc.kind, 'message': exc.message})
    db.commit()
    logger.info('grades_bulk_upserted updated=%s failed=%s', updated, len(failed))
    return {'updated': updated, 'failed': failed}


def import_scores(db: Session, actor: User, class_id: int, assessment_id: int, rows: list[dict]) -> dict:
    """Matches ``{identifier, score_raw}`` rows against the class roster and stores the scores.

    All accepted entries are written in one batch; skipped and unmatched rows never touch
    existing grades.
    """
    school_class = load_class(db, actor, class_id)
    assessment = load_assessment(db, actor, assessment_id)
    if assessment.class_id != school_class.id:
        raise NotFoundError('Assessment not found in this class')

    roster = db.query(Student).filter(Student.class_id == school_class.id).all()
    result = csv_import.match_score_rows(rows, roster, assessment.id, assessment.max_score)
    # A student matched by more than one row keeps the last score.
    for entry in result.entries:
        _write(db, entry['student_id'], entry['assessment_id'], entry['score'])
        db.flush()
    db.commit()
    logger.info(
        'grades_imported class_id=%s assessment_id=%s imported=%s skipped=%s unmatched=%s invalid=%s',
        school_class.id,
        assessment.id,
        result.imported,
        len(result.skipped),
        len(result.unmatched),
        len(result.invalid),
    )
    return result.as_dict()


def import_scores_csv(
    db: Session,
    actor: User,
    class_id: int,
    assessment_id: int,
    file_bytes: bytes,
    *,
    identifier_column: str | None = None,
    score_column: str | None = None,
) -> dict:
    load_class(db, actor, class_id)
    parsed = csv_import.parse_csv(file_bytes)
    rows = csv_import.score_rows(parsed, identifier_column=identifier_column, score_column=score_column)
    return import_scores(db, actor, class_id, assessment_id, rows)
