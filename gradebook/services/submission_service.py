from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from gradebook.core.errors import GradebookError, InputValidationError
from gradebook.core.tenancy import load_assignment, load_class, load_student
from gradebook.core.time_provider import TimeProvider, default_time_provider
from gradebook.models import Assignment, Submission, SubmissionStatus, User
from gradebook.services.aggregation import COMPLETED_STATUSES


logger = logging.getLogger(__name__)

VALID_STATUSES = {status.value for status in SubmissionStatus}


def serialize_submission(row: Submission) -> dict:
    return {
        'id': row.id,
        'student_id': row.student_id,
        'assignment_id': row.assignment_id,
        'status': row.status,
        'submitted_at': row.submitted_at.isoformat() if row.submitted_at else None,
        'updated_at': row.updated_at.isoformat() if row.updated_at else None,
    }


def list_submissions_for_class(db: Session, actor: User, class_id: int) -> list[Submission]:
    load_class(db, actor, class_id)
    return load_class_submissions(db, class_id)


def load_class_submissions(db: Session, class_id: int) -> list[Submission]:
    return (
        db.query(Submission)
        .join(Assignment, Assignment.id == Submission.assignment_id)
        .filter(Assignment.class_id == class_id)
        .order_by(Submission.id.asc())
        .all()
    )


def _stage_upsert(
    db: Session,
    actor: User,
    student_id: int,
    assignment_id: int,
    status: str,
    time_provider: TimeProvider,
) -> Submission:
    clean_status = (status or '').strip().lower()
    if clean_status not in VALID_STATUSES:
        raise InputValidationError('Status must be one of: submitted, late, missing, pending')
    student = load_student(db, actor, student_id)
    assignment = load_assignment(db, actor, assignment_id)
    if student.class_id != assignment.class_id:
        raise InputValidationError('Student and assignment belong to different classes')

    row = (
        db.query(Submission)
        .filter(Submission.student_id == student.id, Submission.assignment_id == assignment.id)
        .first()
    )
    if row is None:
        row = Submission(student_id=student.id, assignment_id=assignment.id)
        db.add(row)
    if clean_status in COMPLETED_STATUSES:
        if row.status not in COMPLETED_STATUSES or row.submitted_at is None:
            row.submitted_at = time_provider.naive_utc_now()
    else:
        row.submitted_at = None
    row.status = clean_status
    return row


def upsert_submission(
    db: Session,
    actor: User,
    *,
    student_id: int,
    assignment_id: int,
    status: str,
    time_provider: TimeProvider = default_time_provider,
) -> Submission:
    row = _stage_upsert(db, actor, student_id, assignment_id, status, time_provider)
    db.commit()
    db.refresh(row)
    return row


def bulk_upsert_submissions(
    db: Session,
    actor: User,
    entries: list[dict],
    *,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    """Applies many status changes; rejected rows are reported, the rest are written."""
    updated = 0
    failed: list[dict] = []
    for index, entry in enumerate(entries):
        try:
            _stage_upsert(
                db,
                actor,
                int(entry['student_id']),
                int(entry['assignment_id']),
                str(entry.get('status') or ''),
                time_provider,
            )
            db.flush()
            updated += 1
        except GradebookError as exc:
            failed.append({'index': index, 'kind': exc.kind, 'message': exc.message})
    db.commit()
    logger.info('submissions_bulk_upserted updated=%s failed=%s', updated, len(failed))
    return {'updated': updated, 'failed': failed}
