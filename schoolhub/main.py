"""
SchoolHub — School Management Backend
FastAPI entry point.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schoolhub.core.config import settings
from schoolhub.core.errors import install_exception_handlers
from schoolhub.core.logging import setup_logging
from schoolhub.core.middleware import RequestLoggingMiddleware
from schoolhub.routers import (
    academic, auth, classes, grades, leave_applications, notifications, subjects, teacher_assignments, timetable,
    users, violations,
)

VERSION = "1.0.0"

logger = setup_logging()

app = FastAPI(
    title=settings.APP_NAME,
    description="Academic calendar, classes, timetables, grades, conduct and parent communication for one school",
    version=VERSION,
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

install_exception_handlers(app)

# Include routers
app.include_router(auth.router)
app.include_router(academic.router)
app.include_router(users.router)
app.include_router(subjects.router)
app.include_router(classes.router)
app.include_router(teacher_assignments.router)
app.include_router(timetable.router)
app.include_router(grades.router)
app.include_router(violations.router)
app.include_router(leave_applications.router)
app.include_router(notifications.router)

logger.info("%s %s started (auth mode: %s)", settings.APP_NAME, VERSION, settings.AUTH_MODE)


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": VERSION,
        "status": "running",
        "auth_mode": settings.AUTH_MODE,
    }


@app.get("/api/health")
async def health():
    return {"status": "healthy", "auth_mode": settings.AUTH_MODE}
