from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from gradebook.db import get_db
from gradebook.models import User
from gradebook.services.auth_service import resolve_session_user


SESSION_COOKIE = 'auth_session'


def resolve_token(request: Request) -> str | None:
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token
    authorization = request.headers.get('authorization', '')
    if authorization.lower().startswith('bearer '):
        return authorization[7:].strip()
    return None


def optional_auth_user(request: Request, db: Session = Depends(get_db)) -> User | None:
    return resolve_session_user(db, resolve_token(request))


def require_auth_user(request: Request, db: Session = Depends(get_db)) -> User:
    user = resolve_session_user(db, resolve_token(request))
    if user is None:
        raise HTTPException(status_code=401, detail={'kind': 'unauthorized', 'message': 'Unauthorized'})
    return user
