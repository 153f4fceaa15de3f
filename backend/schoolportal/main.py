"""
Point d'entrée principal de l'API SchoolPortal.
Démarrage : uvicorn schoolportal.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from schoolportal.config import settings
from schoolportal.database import SessionLocal, init_db
from schoolportal.routers import assignments, attendance, messages, sessions, students, teachers
from schoolportal.scheduler import start_scheduler, stop_scheduler
from schoolportal.services.document_store import DocumentStore
from schoolportal.services.object_store import LocalObjectStore
from schoolportal.services.portal_service import PortalService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Cycle de vie de l'application : crée les tables, ouvre l'abonnement au
    registre, démarre le scheduler ; les arrête dans l'ordre inverse.
    """
    init_db()
    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)

    portal = PortalService(
        store=DocumentStore(SessionLocal),
        objects=LocalObjectStore(settings.UPLOAD_DIR, settings.FILES_BASE_URL),
        admin_username=settings.ADMIN_USERNAME,
        admin_password=settings.ADMIN_PASSWORD,
        max_upload_bytes=settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024,
    )
    await portal.start()
    app.state.portal = portal
    start_scheduler(portal)
    yield
    stop_scheduler()
    await portal.close()


app = FastAPI(
    title="SchoolPortal API",
    description="Portail scolaire : présences, devoirs et messages des élèves",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS : ports localhost autorisés en développement.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "Accept", "X-Session-Id"],
)


app.include_router(sessions.router)
app.include_router(students.router)
app.include_router(attendance.router)
app.include_router(assignments.router)
app.include_router(messages.router)
app.include_router(teachers.router)

# Fichiers rendus par les élèves (URL retournée par LocalObjectStore.upload)
app.mount(
    "/files",
    StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
    name="files",
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour garantir que la réponse 500
    passe bien par CORSMiddleware (qui injecte les headers CORS).
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Une erreur interne est survenue."},
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "SchoolPortal API", "version": "0.1.0"}
