from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gradebook.core.errors import GradebookError, http_error
from gradebook.core.router_guard import require_auth_user
from gradebook.db import get_db
from gradebook.models import User
from gradebook.route_logging import EndpointNameRoute
from gradebook.schemas import (
    AssignmentCreateRequest,
    AssignmentUpdateRequest,
    SubmissionBulkRequest,
    SubmissionUpsertRequest,
)
from gradebook.services import assignment_service, submission_service


router = APIRouter(prefix='/api', tags=['Homework'], route_class=EndpointNameRoute)


@router.get('/classes/{class_id}/assignments')
def list_assignments(class_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        rows = assignment_service.list_assignments(db, user, class_id)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return [assignment_service.serialize_assignment(row) for row in rows]


@router.post('/classes/{class_id}/assignments', status_code=201)
def create_assignment(
    class_id: int,
    payload: AssignmentCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    try:
        row = assignment_service.create_assignment(db, user, class_id, payload.model_dump())
    except GradebookError as exc:
        raise http_error(exc) from exc
    return assignment_service.serialize_assignment(row)


@router.patch('/assignments/{assignment_id}')
def update_assignment(
    assignment_id: int,
    payload: AssignmentUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    try:
        row = assignment_service.update_assignment(db, user, assignment_id, payload.model_dump(exclude_unset=True))
    except GradebookError as exc:
        raise http_error(exc) from exc
    return assignment_service.serialize_assignment(row)


@router.delete('/assignments/{assignment_id}')
def delete_assignment(assignment_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        assignment_service.delete_assignment(db, user, assignment_id)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return {'success': True}


@router.get('/classes/{class_id}/submissions')
def list_submissions(class_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        rows = submission_service.list_submissions_for_class(db, user, class_id)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return [submission_service.serialize_submission(row) for row in rows]


@router.put('/submissions')
def upsert_submission(
    payload: SubmissionUpsertRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    try:
        row = submission_service.upsert_submission(
            db,
            user,
            student_id=payload.student_id,
            assignment_id=payload.assignment_id,
            status=payload.status,
        )
    except GradebookError as exc:
        raise http_error(exc) from exc
    return submission_service.serialize_submission(row)


@router.put('/submissions/bulk')
def bulk_upsert_submissions(
    payload: SubmissionBulkRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    return submission_service.bulk_upsert_submissions(db, user, [item.model_dump() for item in payload.entries])
