from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from gradebook.core.errors import InputValidationError, NotFoundError
from gradebook.core.tenancy import require_admin
from gradebook.models import AccountStatus, EduRole, User


logger = logging.getLogger(__name__)

VALID_EDU_ROLES = {role.value for role in EduRole}
VALID_STATUSES = {status.value for status in AccountStatus}


def list_users(db: Session, actor: User) -> list[User]:
    require_admin(actor)
    return db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def _target(db: Session, user_id: int) -> User:
    user = db.get(User, int(user_id))
    if user is None:
        raise NotFoundError('User not found')
    return user


def update_user_role(db: Session, actor: User, user_id: int, edu_role: str) -> User:
    require_admin(actor)
    clean_role = (edu_role or '').strip().lower()
    if clean_role not in VALID_EDU_ROLES:
        raise InputValidationError('Role must be one of: teacher, admin')
    user = _target(db, user_id)
    user.edu_role = clean_role
    db.commit()
    db.refresh(user)
    logger.info('admin_role_updated actor_id=%s user_id=%s edu_role=%s', actor.id, user.id, clean_role)
    return user


def update_account_status(db: Session, actor: User, user_id: int, account_status: str) -> User:
    require_admin(actor)
    clean_status = (account_status or '').strip().lower()
    if clean_status not in VALID_STATUSES:
        raise InputValidationError('Status must be one of: pending, approved, rejected')
    user = _target(db, user_id)
    user.account_status = clean_status
    db.commit()
    db.refresh(user)
    logger.info('admin_status_updated actor_id=%s user_id=%s status=%s', actor.id, user.id, clean_status)
    return user
