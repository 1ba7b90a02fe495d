from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from gradebook.core.errors import GradebookError, http_error
from gradebook.core.router_guard import require_auth_user
from gradebook.db import get_db
from gradebook.models import User
from gradebook.route_logging import EndpointNameRoute
from gradebook.schemas import GradeBulkRequest, GradeUpsertRequest, ScoreImportRequest
from gradebook.services import grade_service


router = APIRouter(prefix='/api', tags=['Grades'], route_class=EndpointNameRoute)


@router.get('/classes/{class_id}/grades')
def list_class_grades(class_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        rows = grade_service.list_grades_for_class(db, user, class_id)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return [grade_service.serialize_grade(row) for row in rows]


@router.get('/students/{student_id}/grades')
def list_student_grades(student_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        rows = grade_service.list_grades_for_student(db, user, student_id)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return [grade_service.serialize_grade(row) for row in rows]


@router.put('/grades')
def upsert_grade(payload: GradeUpsertRequest, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        row = grade_service.upsert_grade(
            db,
            user,
            student_id=payload.student_id,
            assessment_id=payload.assessment_id,
            score=payload.score,
        )
    except GradebookError as exc:
        raise http_error(exc) from exc
    return grade_service.serialize_grade(row)


@router.put('/grades/bulk')
def bulk_upsert_grades(payload: GradeBulkRequest, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    return grade_service.bulk_upsert_grades(db, user, [item.model_dump() for item in payload.entries])


@router.post('/grades/import')
def import_scores(payload: ScoreImportRequest, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        return grade_service.import_scores(
            db,
            user,
            payload.class_id,
            payload.assessment_id,
            [row.model_dump() for row in payload.rows],
        )
    except GradebookError as exc:
        raise http_error(exc) from exc


@router.post('/grades/import-csv')
async def import_scores_csv(
    class_id: int = Form(...),
    assessment_id: int = Form(...),
    file: UploadFile = File(...),
    identifier_column: str | None = Form(default=None),
    score_column: str | None = Form(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    content = await file.read()
    try:
        return grade_service.import_scores_csv(
            db,
            user,
            class_id,
            assessment_id,
            content,
            identifier_column=identifier_column or None,
            score_column=score_column or None,
        )
    except GradebookError as exc:
        raise http_error(exc) from exc
