from contextlib import asynccontextmanager
import logging
import time
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles

from gradebook.config import settings
from gradebook.db import Base, SessionLocal, engine
from gradebook.route_logging import EndpointNameRoute
from gradebook.routers import admin, assessments, assignments, auth, classes, grades, reports, share_links, students
from gradebook.services.auth_service import ensure_bootstrap_admin

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ensure_bootstrap_admin(db)
    finally:
        db.close()
    yield


app = FastAPI(title=settings.app_name, version='0.1.0', lifespan=lifespan)
app.router.route_class = EndpointNameRoute

if settings.storage_backend == 'local':
    _uploads = Path(settings.storage_local_dir)
    _uploads.mkdir(parents=True, exist_ok=True)
    app.mount('/files', StaticFiles(directory=str(_uploads)), name='files')


@app.middleware('http')
async def slow_request_logger(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000.0
    if duration_ms >= settings.metrics_slow_ms:
        logging.getLogger('gradebook.request').info(
            'request_slow endpoint=%s path=%s status_code=%s duration_ms=%.2f',
            getattr(request.state, 'endpoint', request.method),
            request.url.path,
            response.status_code,
            duration_ms,
        )
    return response


app.include_router(auth.router)
app.include_router(classes.router)
app.include_router(students.router)
app.include_router(assignments.router)
app.include_router(assessments.router)
app.include_router(grades.router)
app.include_router(share_links.router)
app.include_router(reports.router)
app.include_router(admin.router)


@app.get('/')
def health():
    return {'app': settings.app_name, 'status': 'ok'}


@app.get('/health')
def healthcheck():
    return {'status': 'ok'}
