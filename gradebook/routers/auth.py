from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from gradebook.config import settings
from gradebook.core.errors import GradebookError, http_error
from gradebook.core.router_guard import SESSION_COOKIE, optional_auth_user, require_auth_user, resolve_token
from gradebook.db import get_db
from gradebook.models import User
from gradebook.route_logging import EndpointNameRoute
from gradebook.schemas import ChangePasswordRequest, GoogleLoginRequest, LoginRequest, RegisterRequest
from gradebook.services.auth_service import (
    change_password,
    clear_session_token,
    google_login,
    login,
    register,
    serialize_user,
)


router = APIRouter(prefix='/api/auth', tags=['Auth'], route_class=EndpointNameRoute)


def _session_cookie_response(data: dict):
    response = JSONResponse(
        {
            'ok': True,
            'token': data['token'],
            'expires_at': data['expires_at'],
            'user': data['user'],
        }
    )
    response.set_cookie(
        key=SESSION_COOKIE,
        value=data['token'],
        httponly=True,
        samesite='lax',
        secure=settings.app_env not in ('local', 'test'),
        max_age=60 * 60 * settings.auth_session_expiry_hours,
    )
    return response


@router.post('/register')
def auth_register(payload: RegisterRequest, db: Session = Depends(get_db)):
    try:
        return register(db, name=payload.name, email=payload.email, password=payload.password)
    except GradebookError as exc:
        raise http_error(exc) from exc


@router.post('/login')
def auth_login(payload: LoginRequest, db: Session = Depends(get_db)):
    try:
        data = login(db, email=payload.email, password=payload.password)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return _session_cookie_response(data)


@router.post('/google-login')
def auth_google_login(payload: GoogleLoginRequest, db: Session = Depends(get_db)):
    try:
        data = google_login(db, payload.id_token)
    except GradebookError as exc:
        raise http_error(exc) from exc
    return _session_cookie_response(data)


@router.post('/logout')
def auth_logout(request: Request):
    clear_session_token(resolve_token(request))
    response = JSONResponse({'success': True})
    response.delete_cookie(SESSION_COOKIE)
    return response


@router.post('/change-password')
def auth_change_password(
    payload: ChangePasswordRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth_user),
):
    try:
        return change_password(
            db,
            user,
            current_password=payload.current_password,
            new_password=payload.new_password,
        )
    except GradebookError as exc:
        raise http_error(exc) from exc


@router.get('/me')
def auth_me(user: User | None = Depends(optional_auth_user)):
    return serialize_user(user) if user else None
