from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gradebook.core.errors import GradebookError, http_error
from gradebook.core.router_guard import require_auth_user
from gradebook.db import get_db
from gradebook.models import User
from gradebook.route_logging import EndpointNameRoute
from gradebook.schemas import UserRoleRequest, UserStatusRequest
from gradebook.services import admin_service
from gradebook.services.auth_service import serialize_user


router = APIRouter(prefix='/api/admin', tags=['Admin'], route_class=EndpointNameRoute)


@router.get('/users')
def list_users(db: Session = Depends(get_db), user: User = Depends(require_auth_user)):
    try:
        rows = admin_service.list_users(db, user)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return [serialize_user(row) for row in rows]


@router.patch('/users/{user_id}/role')
def update_user_role(
    user_id: int,
    payload: UserRoleRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    try:
        row = admin_service.update_user_role(db, user, user_id, payload.edu_role)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return serialize_user(row)


@router.patch('/users/{user_id}/status')
def update_account_status(
    user_id: int,
    payload: UserStatusRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    try:
        row = admin_service.update_account_status(db, user, user_id, payload.account_status)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return serialize_user(row)
