from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import re
import secrets
import threading
from datetime import timedelta

import httpx
from sqlalchemy import func
from sqlalchemy.orm import Session

from gradebook.config import settings
from gradebook.core.errors import (
    ConflictError,
    InputValidationError,
    NotConfiguredError,
    NotFoundError,
    UnauthorizedError,
)
from gradebook.core.time_provider import TimeProvider, default_time_provider
from gradebook.models import AccountStatus, EduRole, PlatformRole, User


_REVOKED_TOKENS: set[str] = set()
_TOKENS_LOCK = threading.RLock()
_GOOGLE_ISSUERS = ('accounts.google.com', 'https://accounts.google.com')
_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
logger = logging.getLogger(__name__)


def _mask_email(email: str | None) -> str:
    clean = (email or '').strip()
    if '@' not in clean:
        return '***'
    local, domain = clean.split('@', 1)
    return f'{local[:1]}***@{domain}'


def normalize_email(email: str | None) -> str:
    return (email or '').strip().lower()


def is_valid_email(email: str | None) -> bool:
    return bool(_EMAIL_RE.match((email or '').strip()))


def _initials(name: str) -> str:
    parts = [part for part in (name or '').split() if part]
    return ''.join(part[0] for part in parts).upper()[:2]


def _validate_password(password: str) -> None:
    if len(password or '') < settings.auth_password_min_length:
        raise InputValidationError(
            f'Password must be at least {settings.auth_password_min_length} characters'
        )


def hash_password(password: str) -> str:
    _validate_password(password)
    salt = secrets.token_hex(16)
    iterations = int(settings.auth_password_iterations)
    derived = hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt.encode('utf-8'), iterations)
    return f'pbkdf2_sha256${iterations}${salt}${derived.hex()}'


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        algo, iter_raw, salt, digest_hex = password_hash.split('$', 3)
        if algo != 'pbkdf2_sha256':
            return False
        iterations = int(iter_raw)
    except ValueError:
        return False
    derived = hashlib.pbkdf2_hmac('sha256', (password or '').encode('utf-8'), salt.encode('utf-8'), iterations).hex()
    return hmac.compare_digest(derived, digest_hex)


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode('ascii').rstrip('=')


def _b64url_decode(value: str) -> bytes:
    padding = '=' * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode('ascii'))


def _sign(signing_input: bytes) -> bytes:
    return hmac.new(settings.auth_secret.encode('utf-8'), signing_input, hashlib.sha256).digest()


def _encode_jwt(payload: dict) -> str:
    header = {'alg': 'HS256', 'typ': 'JWT'}
    header_part = _b64url_encode(json.dumps(header, separators=(',', ':')).encode('utf-8'))
    payload_part = _b64url_encode(json.dumps(payload, separators=(',', ':')).encode('utf-8'))
    signing_input = f'{header_part}.{payload_part}'.encode('ascii')
    return f'{header_part}.{payload_part}.{_b64url_encode(_sign(signing_input))}'


def _decode_jwt(token: str) -> dict | None:
    try:
        header_part, payload_part, signature_part = token.split('.')
        provided_signature = _b64url_decode(signature_part)
        signing_input = f'{header_part}.{payload_part}'.encode('ascii')
    except (ValueError, UnicodeEncodeError):
        return None

    if not hmac.compare_digest(provided_signature, _sign(signing_input)):
        return None

    try:
        payload = json.loads(_b64url_decode(payload_part).decode('utf-8'))
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def issue_session_token(user: User, *, time_provider: TimeProvider = default_time_provider) -> dict:
    now = time_provider.now()
    expires_at = now + timedelta(hours=settings.auth_session_expiry_hours)
    token = _encode_jwt(
        {
            'sub': int(user.id),
            'iat': int(now.timestamp()),
            'exp': int(expires_at.timestamp()),
        }
    )
    with _TOKENS_LOCK:
        _REVOKED_TOKENS.discard(token)
    return {'token': token, 'user_id': int(user.id), 'expires_at': expires_at.isoformat()}


def validate_session_token(
    token: str | None,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> dict | None:
    if not token:
        return None
    with _TOKENS_LOCK:
        if token in _REVOKED_TOKENS:
            return None

    payload = _decode_jwt(token)
    if not payload:
        return None
    user_id = payload.get('sub')
    expires_at = int(payload.get('exp') or 0)
    if user_id is None or expires_at <= int(time_provider.now().timestamp()):
        return None
    return {'user_id': int(user_id), 'expires_at': expires_at}


def clear_session_token(token: str | None) -> None:
    if not token:
        return
    with _TOKENS_LOCK:
        _REVOKED_TOKENS.add(token)


def resolve_session_user(db: Session, token: str | None) -> User | None:
    """Returns the approved user behind a session token, or None."""
    session = validate_session_token(token)
    if not session:
        return None
    user = db.get(User, session['user_id'])
    if user is None:
        return None
    if user.account_status != AccountStatus.APPROVED.value:
        logger.info('auth_session_rejected user_id=%s status=%s', user.id, user.account_status)
        return None
    return user


def serialize_user(user: User) -> dict:
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'role': user.role,
        'edu_role': user.edu_role,
        'account_status': user.account_status,
        'avatar_initials': user.avatar_initials,
        'login_method': user.login_method,
        'last_signed_in': user.last_signed_in.isoformat() if user.last_signed_in else None,
    }


def find_user_by_email(db: Session, email: str | None) -> User | None:
    clean_email = normalize_email(email)
    if not clean_email:
        return None
    return db.query(User).filter(func.lower(User.email) == clean_email).first()


def register(db: Session, *, name: str, email: str, password: str) -> dict:
    clean_name = (name or '').strip()
    clean_email = normalize_email(email)
    if len(clean_name) < 2:
        raise InputValidationError('Name must be at least 2 characters')
    if not is_valid_email(clean_email):
        raise InputValidationError('Invalid email address')
    password_hash = hash_password(password)
    if find_user_by_email(db, clean_email):
        raise ConflictError('An account with this email already exists.')

    user = User(
        open_id=f'email_{secrets.token_urlsafe(18)}',
        name=clean_name,
        email=clean_email,
        login_method='email',
        password_hash=password_hash,
        role=PlatformRole.USER.value,
        edu_role=EduRole.TEACHER.value,
        account_status=AccountStatus.PENDING.value,
        avatar_initials=_initials(clean_name),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info('auth_registered user_id=%s email=%s', user.id, _mask_email(clean_email))
    return {'success': True, 'message': 'Account created. Awaiting admin approval.', 'user_id': user.id}


def login(
    db: Session,
    *,
    email: str,
    password: str,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    user = find_user_by_email(db, email)
    if not user or not user.password_hash or not verify_password(password, user.password_hash):
        logger.warning('auth_login_failed email=%s', _mask_email(email))
        raise UnauthorizedError('Invalid email or password.')
    if user.account_status == AccountStatus.REJECTED.value:
        logger.warning('auth_login_rejected_account user_id=%s', user.id)
        raise UnauthorizedError('Your account has been rejected. Please contact your administrator.')
    if user.account_status == AccountStatus.PENDING.value:
        logger.info('auth_login_pending_account user_id=%s', user.id)
        raise UnauthorizedError('Your account is awaiting admin approval.')

    user.last_signed_in = time_provider.naive_utc_now()
    db.commit()
    db.refresh(user)
    session = issue_session_token(user, time_provider=time_provider)
    logger.info('auth_login_success user_id=%s', user.id)
    return {**session, 'user': serialize_user(user)}


def change_password(db: Session, user: User, *, current_password: str, new_password: str) -> dict:
    row = db.get(User, user.id)
    if row is None:
        raise NotFoundError('User not found')
    if not row.password_hash:
        raise InputValidationError('This account does not use email/password login')
    if not verify_password(current_password, row.password_hash):
        raise UnauthorizedError('Current password is incorrect')
    row.password_hash = hash_password(new_password)
    db.commit()
    logger.info('auth_password_changed user_id=%s', row.id)
    return {'success': True}


def upsert_external_user(
    db: Session,
    *,
    open_id: str,
    name: str | None = None,
    email: str | None = None,
    login_method: str | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> User:
    """Creates or refreshes an externally-authenticated account.

    External identities never go through the approval queue, so a first login
    produces an approved teacher. The configured owner identity is promoted to admin.
    An email already held by another account is a conflict.
    """
    clean_open_id = (open_id or '').strip()
    if not clean_open_id:
        raise InputValidationError('User open_id is required')

    clean_email = normalize_email(email) if email is not None else None
    if clean_email:
        holder = find_user_by_email(db, clean_email)
        if holder is not None and holder.open_id != clean_open_id:
            logger.warning('auth_external_email_conflict email=%s', _mask_email(clean_email))
            raise ConflictError('An account with this email already exists.')

    now = time_provider.naive_utc_now()
    user = db.query(User).filter(User.open_id == clean_open_id).first()
    if user is None:
        user = User(
            open_id=clean_open_id,
            role=PlatformRole.USER.value,
            edu_role=EduRole.TEACHER.value,
            account_status=AccountStatus.APPROVED.value,
        )
        db.add(user)
    if name is not None:
        user.name = name
        user.avatar_initials = _initials(name)
    if email is not None:
        user.email = clean_email or None
    if login_method is not None:
        user.login_method = login_method
    if settings.auth_owner_open_id and clean_open_id == settings.auth_owner_open_id:
        user.role = PlatformRole.ADMIN.value
    user.last_signed_in = now
    db.commit()
    db.refresh(user)
    return user


def _verify_google_id_token(id_token: str, *, time_provider: TimeProvider) -> dict:
    try:
        response = httpx.get(
            settings.auth_google_tokeninfo_url,
            params={'id_token': id_token},
            timeout=settings.auth_google_timeout_seconds,
        )
    except httpx.HTTPError as exc:
        logger.warning('auth_google_verify_unreachable error=%s', exc.__class__.__name__)
        raise UnauthorizedError('Could not verify Google sign-in, please retry') from exc
    if response.status_code != 200:
        raise UnauthorizedError('Invalid Google ID token')
    try:
        claims = response.json()
    except ValueError as exc:
        raise UnauthorizedError('Invalid Google ID token') from exc
    if not isinstance(claims, dict) or not claims.get('sub'):
        raise UnauthorizedError('Invalid Google ID token')
    if claims.get('aud') != settings.auth_google_client_id:
        raise UnauthorizedError('Google ID token was issued for another application')
    if claims.get('iss') not in _GOOGLE_ISSUERS:
        raise UnauthorizedError('Invalid Google ID token')
    try:
        expires_at = int(claims.get('exp') or 0)
    except (TypeError, ValueError):
        expires_at = 0
    if expires_at <= int(time_provider.now().timestamp()):
        raise UnauthorizedError('Google ID token has expired')
    return claims


def google_login(
    db: Session,
    id_token: str,
    *,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    if not settings.auth_enable_google_login or not settings.auth_google_client_id:
        raise NotConfiguredError('Google login is not configured')
    clean_token = (id_token or '').strip()
    if not clean_token:
        raise InputValidationError('Google ID token is required')

    claims = _verify_google_id_token(clean_token, time_provider=time_provider)
    verified = str(claims.get('email_verified', '')).lower() == 'true'
    user = upsert_external_user(
        db,
        open_id=f"google_{claims['sub']}",
        name=claims.get('name'),
        email=claims.get('email') if verified else None,
        login_method='google',
        time_provider=time_provider,
    )
    if user.account_status != AccountStatus.APPROVED.value:
        logger.warning('auth_google_login_blocked user_id=%s status=%s', user.id, user.account_status)
        raise UnauthorizedError('Your account is not active. Please contact your administrator.')
    session = issue_session_token(user, time_provider=time_provider)
    logger.info('auth_google_login_success user_id=%s', user.id)
    return {**session, 'user': serialize_user(user)}


def ensure_bootstrap_admin(db: Session) -> dict:
    clean_email = normalize_email(settings.auth_admin_email)
    if not clean_email or not settings.auth_admin_password:
        return {'seeded': False, 'reason': 'not_configured'}
    if find_user_by_email(db, clean_email):
        return {'seeded': False, 'reason': 'exists'}

    user = User(
        open_id=f'email_{secrets.token_urlsafe(18)}',
        name=settings.auth_admin_name,
        email=clean_email,
        login_method='email',
        password_hash=hash_password(settings.auth_admin_password),
        role=PlatformRole.ADMIN.value,
        edu_role=EduRole.ADMIN.value,
        account_status=AccountStatus.APPROVED.value,
        avatar_initials=_initials(settings.auth_admin_name),
    )
    db.add(user)
    db.commit()
    logger.warning('bootstrap_admin_created email=%s', _mask_email(clean_email))
    return {'seeded': True}
