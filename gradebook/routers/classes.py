from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from gradebook.core.errors import GradebookError, http_error
from gradebook.core.router_guard import require_auth_user
from gradebook.db import get_db
from gradebook.models import User
from gradebook.route_logging import EndpointNameRoute
from gradebook.schemas import ClassCreateRequest, ClassUpdateRequest, TeacherNoteRequest
from gradebook.services import class_service, overview_service, teacher_note_service


router = APIRouter(prefix='/api/classes', tags=['Classes'], route_class=EndpointNameRoute)


@router.get('')
def list_classes(db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    return [class_service.serialize_class(row) for row in class_service.list_classes(db, user)]


@router.post('', status_code=201)
def create_class(payload: ClassCreateRequest, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        row = class_service.create_class(db, user, payload.model_dump())
    except GradebookError as exc:
        raise http_error(exc) from exc
    return class_service.serialize_class(row)


@router.get('/{class_id}')
def get_class(class_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        return class_service.serialize_class(class_service.get_class(db, user, class_id))
    except GradebookError as exc:
        raise http_error(exc) from exc


@router.patch('/{class_id}')
def update_class(
    class_id: int,
    payload: ClassUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    try:
        row = class_service.update_class(db, user, class_id, payload.model_dump(exclude_unset=True))
    except GradebookError as exc:
        raise http_error(exc) from exc
    return class_service.serialize_class(row)


@router.delete('/{class_id}')
def delete_class(class_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        class_service.delete_class(db, user, class_id)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return {'success': True}


@router.get('/{class_id}/overview')
def class_overview(class_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        return overview_service.class_overview(db, user, class_id)
    except GradebookError as exc:
        raise http_error(exc) from exc


def _csv_response(filename: str, content: str) -> Response:
    return Response(
        content=content,
        media_type='text/csv',
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )


@router.get('/{class_id}/grades/export')
def export_grades(class_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        filename, content = overview_service.export_grades(db, user, class_id)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return _csv_response(filename, content)


@router.get('/{class_id}/homework/export')
def export_homework(class_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        filename, content = overview_service.export_homework(db, user, class_id)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return _csv_response(filename, content)


@router.get('/{class_id}/notes')
def get_notes(class_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        row = teacher_note_service.get_note(db, user, class_id)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return teacher_note_service.serialize_note(class_id, row)


@router.put('/{class_id}/notes')
def upsert_notes(
    class_id: int,
    payload: TeacherNoteRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    try:
        row = teacher_note_service.upsert_note(db, user, class_id, payload.notes)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return teacher_note_service.serialize_note(class_id, row)
