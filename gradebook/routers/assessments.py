from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from gradebook.core.errors import GradebookError, http_error
from gradebook.core.router_guard import require_auth_user
from gradebook.db import get_db
from gradebook.models import User
from gradebook.route_logging import EndpointNameRoute
from gradebook.schemas import AssessmentCreateRequest, AssessmentUpdateRequest
from gradebook.services import assessment_service


router = APIRouter(prefix='/api', tags=['Assessments'], route_class=EndpointNameRoute)


@router.get('/classes/{class_id}/assessments')
def list_assessments(class_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        rows = assessment_service.list_assessments(db, user, class_id)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return [assessment_service.serialize_assessment(row) for row in rows]


@router.post('/classes/{class_id}/assessments', status_code=201)
def create_assessment(
    class_id: int,
    payload: AssessmentCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    try:
        row = assessment_service.create_assessment(db, user, class_id, payload.model_dump())
    except GradebookError as exc:
        raise http_error(exc) from exc
    return assessment_service.serialize_assessment(row)


@router.get('/assessments/{assessment_id}')
def get_assessment(assessment_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        row = assessment_service.get_assessment(db, user, assessment_id)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return assessment_service.serialize_assessment(row)


@router.patch('/assessments/{assessment_id}')
def update_assessment(
    assessment_id: int,
    payload: AssessmentUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    try:
        row = assessment_service.update_assessment(db, user, assessment_id, payload.model_dump(exclude_unset=True))
    except GradebookError as exc:
        raise http_error(exc) from exc
    return assessment_service.serialize_assessment(row)


@router.delete('/assessments/{assessment_id}')
def delete_assessment(assessment_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        assessment_service.delete_assessment(db, user, assessment_id)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return {'success': True}


@router.post('/assessments/{assessment_id}/file')
async def upload_assessment_file(
    assessment_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    content = await file.read()
    try:
        row = assessment_service.upload_file(
            db,
            user,
            assessment_id,
            file_name=file.filename or '',
            data=content,
            mime_type=file.content_type,
        )
    except GradebookError as exc:
        raise http_error(exc) from exc
    return assessment_service.serialize_assessment(row)


@router.delete('/assessments/{assessment_id}/file')
def remove_assessment_file(assessment_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        row = assessment_service.remove_file(db, user, assessment_id)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return assessment_service.serialize_assessment(row)
