from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gradebook.core.errors import GradebookError, http_error
from gradebook.core.router_guard import require_auth_user
from gradebook.db import get_db
from gradebook.models import User
from gradebook.route_logging import EndpointNameRoute
from gradebook.services import share_link_service


router = APIRouter(prefix='/api', tags=['Share links'], route_class=EndpointNameRoute)


@router.post('/students/{student_id}/share-link')
def generate_share_link(student_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        return share_link_service.generate(db, user, student_id)
    except GradebookError as exc:
        raise http_error(exc) from exc


@router.delete('/students/{student_id}/share-link')
def revoke_share_link(student_id: int, db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        return share_link_service.revoke(db, user, student_id)
    except GradebookError as exc:
        raise http_error(exc) from exc


@router.get('/parent-view/{token}')
def parent_view(token: str, db: Session = Depends(get_db)):
    try:
        return share_link_service.resolve(db, token)
    except GradebookError as exc:
        raise http_error(exc) from exc
