import sys
from types import SimpleNamespace

import httpx
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import text

from gradebook.config import settings
from gradebook.db import SessionLocal, engine
from gradebook.models import SchoolClass, Student
from gradebook.services import storage_service
from gradebook.services.auth_service import clear_session_token, issue_session_token, validate_session_token


GREEN = '\033[32m'
RED = '\033[31m'
RESET = '\033[0m'


def run_check(name, fn):
    try:
        message = fn() or ''
        suffix = f' - {message}' if message else ''
        print(f'{GREEN}PASS{RESET} {name}{suffix}')
        return True
    except Exception as exc:
        print(f'{RED}FAIL{RESET} {name} - {exc}')
        return False


def check_db_connectivity_and_write():
    with engine.begin() as conn:
        conn.execute(text('SELECT 1'))
        conn.execute(text('CREATE TABLE IF NOT EXISTS _healthcheck_probe (id INTEGER PRIMARY KEY, note TEXT)'))
        conn.execute(text("INSERT INTO _healthcheck_probe (note) VALUES ('probe')"))
        conn.execute(text("DELETE FROM _healthcheck_probe WHERE note='probe'"))
        conn.execute(text('DROP TABLE IF EXISTS _healthcheck_probe'))
    return 'connect + write ok'


def check_alembic_head():
    cfg = Config()
    cfg.set_main_option('script_location', 'alembic')
    script = ScriptDirectory.from_config(cfg)
    heads = set(script.get_heads())
    if not heads:
        raise RuntimeError('No alembic heads found in repository')

    with engine.connect() as conn:
        current = MigrationContext.configure(conn).get_current_revision()

    if current is None:
        raise RuntimeError('No migration version in DB (run alembic upgrade head)')
    if current not in heads:
        raise RuntimeError(f'DB revision {current} is not at head {sorted(heads)}')
    return f'current={current}'


def check_required_env():
    if settings.app_env != 'local' and settings.auth_secret == 'change-me':
        raise RuntimeError('AUTH_SECRET still has the default value')
    if settings.storage_backend == 'http' and not settings.storage_http_endpoint:
        raise RuntimeError('STORAGE_HTTP_ENDPOINT is empty')
    if settings.narrative_enabled and not settings.narrative_api_key:
        raise RuntimeError('NARRATIVE_API_KEY is empty')
    return f'env={settings.app_env}'


def check_roster_tables_accessible():
    db = SessionLocal()
    try:
        classes = db.query(SchoolClass).count()
        students = db.query(Student).count()
        return f'classes={classes} students={students}'
    finally:
        db.close()


def check_session_token_round_trip():
    probe = SimpleNamespace(id=0)
    data = issue_session_token(probe)
    if not validate_session_token(data['token']):
        raise RuntimeError('Freshly issued token did not validate')
    clear_session_token(data['token'])
    if validate_session_token(data['token']):
        raise RuntimeError('Revoked token still validates')
    return 'issue/validate/revoke ok'


def check_storage_writable():
    stored = storage_service.put('healthcheck/probe.txt', b'probe', 'text/plain')
    storage_service.delete(stored['key'])
    return f'backend={settings.storage_backend}'


def check_narrative_api():
    if not settings.narrative_enabled:
        return 'disabled'
    res = httpx.get(
        f"{settings.narrative_api_base.rstrip('/')}/models",
        headers={'Authorization': f'Bearer {settings.narrative_api_key}'},
        timeout=8,
    )
    if res.status_code != 200:
        raise RuntimeError(f'HTTP {res.status_code} from narrative API')
    return 'models endpoint ok'


def main():
    checks = [
        ('Database connectivity and write access', check_db_connectivity_and_write),
        ('Alembic migration status at head', check_alembic_head),
        ('Required environment variables present', check_required_env),
        ('Roster tables accessible', check_roster_tables_accessible),
        ('Session token issue and revocation', check_session_token_round_trip),
        ('Object storage writable', check_storage_writable),
        ('Narrative API reachable', check_narrative_api),
    ]

    all_ok = True
    for name, fn in checks:
        all_ok = run_check(name, fn) and all_ok

    if not all_ok:
        sys.exit(1)
    sys.exit(0)


if __name__ == '__main__':
    main()
