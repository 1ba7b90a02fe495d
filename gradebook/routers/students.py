from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from gradebook.core.errors import GradebookError, http_error
from gradebook.core.router_guard import require_auth_user
from gradebook.db import get_db
from gradebook.models import User
from gradebook.route_logging import EndpointNameRoute
from gradebook.schemas import StudentBulkRequest, StudentCreateRequest, StudentUpdateRequest
from gradebook.services import student_service


router = APIRouter(prefix='/api', tags=['Students'], route_class=EndpointNameRoute)


@router.get('/classes/{class_id}/students')
def list_students(class_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        rows = student_service.list_students(db, user, class_id)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return [student_service.serialize_student(row) for row in rows]


@router.post('/classes/{class_id}/students', status_code=201)
def create_student(
    class_id: int,
    payload: StudentCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    try:
        row = student_service.create_student(db, user, class_id, name=payload.name, email=payload.email)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return student_service.serialize_student(row)


@router.post('/classes/{class_id}/students/bulk', status_code=201)
def bulk_import_students(
    class_id: int,
    payload: StudentBulkRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    try:
        rows = student_service.bulk_import_students(
            db, user, class_id, [item.model_dump() for item in payload.students]
        )
    except GradebookError as exc:
        raise http_error(exc) from exc
    return {'created': len(rows), 'students': [student_service.serialize_student(row) for row in rows]}


@router.post('/classes/{class_id}/students/import-csv', status_code=201)
async def import_students_csv(
    class_id: int,
    file: UploadFile = File(...),
    name_column: str | None = Form(default=None),
    email_column: str | None = Form(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    content = await file.read()
    try:
        rows = student_service.import_students_csv(
            db,
            user,
            class_id,
            content,
            name_column=name_column or None,
            email_column=email_column or None,
        )
    except GradebookError as exc:
        raise http_error(exc) from exc
    return {'created': len(rows), 'students': [student_service.serialize_student(row) for row in rows]}


@router.patch('/students/{student_id}')
def update_student(
    student_id: int,
    payload: StudentUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    try:
        row = student_service.update_student(db, user, student_id, payload.model_dump(exclude_unset=True))
    except GradebookError as exc:
        raise http_error(exc) from exc
    return student_service.serialize_student(row)


@router.delete('/students/{student_id}')
def delete_student(student_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        student_service.delete_student(db, user, student_id)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return {'success': True}
