"""
School Assignments API
Assignments, student progress and pre-aggregated statistics for a language school
"""

from datetime import datetime

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from db import get_db
from routes import activity_logs, admin, assignments, auth, ielts, statistics
from utils.error_handling import register_exception_handlers
from utils.structured_logging import LogCategory, configure_logging, get_logger, log_request_middleware

API_VERSION = "1.0.0"

configure_logging(level=settings.LOG_LEVEL)
logger = get_logger("app")

app = FastAPI(
    title="School Assignments API",
    description="""
    ## School Assignments API

    ### Services:
    - **Assignments**: standard, video, reading and pronunciation assignments
    - **IELTS**: IELTS reading, pronunciation and question-and-answer tasks with speech analysis
    - **Progress**: per-question submissions and progress reports
    - **Statistics**: assignment, student, class, teacher and school rollups
    - **Admin**: scheduled publishing
    - **Activity logs**: audit trail of assignment changes
    """,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Accept", "Origin", "X-Correlation-ID"],
    expose_headers=["X-Correlation-ID", "X-Request-ID"],
)


# Structured logging middleware - adds correlation IDs and logs all requests
@app.middleware("http")
async def structured_logging_middleware(request: Request, call_next):
    return await log_request_middleware(request, call_next)


register_exception_handlers(app)

app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(assignments.router, prefix="/api/assignments", tags=["Assignments"])
app.include_router(ielts.router, prefix="/api/ielts", tags=["IELTS"])
app.include_router(statistics.router, prefix="/api/statistics", tags=["Statistics"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(activity_logs.router, prefix="/api/activity-logs", tags=["Activity Logs"])


@app.get("/", tags=["System"], summary="API Information")
async def root():
    return {
        "name": "School Assignments API",
        "version": API_VERSION,
        "status": "operational",
        "documentation": {"swagger": "/docs", "redoc": "/redoc", "openapi_spec": "/openapi.json"},
        "timestamp": datetime.utcnow().isoformat(),
        "services": {
            "auth": "/api/auth",
            "assignments": "/api/assignments",
            "ielts": "/api/ielts",
            "statistics": "/api/statistics",
            "admin": "/api/admin",
            "activity_logs": "/api/activity-logs",
        },
    }


@app.get("/health", tags=["System"], summary="Health Check")
def health_check(db: Session = Depends(get_db)):
    """Service health including a database round trip"""
    try:
        db.execute(text("SELECT 1"))
        database = "operational"
    except SQLAlchemyError as e:
        logger.error("Health check database probe failed", category=LogCategory.DATABASE, exception=e)
        database = "unavailable"

    return {
        "status": "healthy" if database == "operational" else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "version": API_VERSION,
        "checks": {"database": database},
    }


logger.info("Application started", category=LogCategory.SYSTEM, extra={"environment": settings.NODE_ENV})

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app:app", host="0.0.0.0", port=8000, reload=settings.NODE_ENV == "development")
