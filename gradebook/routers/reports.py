from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gradebook.core.errors import GradebookError, http_error
from gradebook.core.router_guard import require_auth_user
from gradebook.db import get_db
from gradebook.models import User
from gradebook.route_logging import EndpointNameRoute
from gradebook.schemas import ReportRequest
from gradebook.services import report_service


router = APIRouter(prefix='/api/reports', tags=['Reports'], route_class=EndpointNameRoute)


@router.post('')
def generate_report(payload: ReportRequest, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        return report_service.generate_report(
            db,
            user,
            payload.class_id,
            payload.student_id,
            include_narrative=payload.include_narrative,
        )
    except GradebookError as exc:
        raise http_error(exc) from exc
