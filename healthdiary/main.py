from pathlib import Path
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, FileResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager

from healthdiary.config import get_settings
from healthdiary.db.database import engine, Base
from healthdiary.api import users, health_records, reports, analysis, ai, kp_index
from healthdiary.api.catalog import symptom_router, medication_router
from healthdiary.services import storage
from healthdiary.services.rate_limiter import RateLimiter
from healthdiary.services.scheduler import start_scheduler, shutdown_scheduler

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    storage.ensure_dirs()
    app.state.ai_limiter = RateLimiter(
        min_interval=settings.ai_min_interval_seconds,
        max_concurrent=settings.ai_max_concurrent
    )
    start_scheduler()
    yield
    shutdown_scheduler()


app = FastAPI(
    title="Health Diary API",
    description="Symptom and medication diary with reports, Kp-index data and AI suggestions",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.cors_origin],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "X-Report-Id", "Content-Type"],
    expose_headers=["X-Report-Id"],
)

app.include_router(users.router, prefix="/api/user", tags=["user"])
app.include_router(symptom_router, prefix="/api/symptom", tags=["symptom"])
app.include_router(medication_router, prefix="/api/medication", tags=["medication"])
app.include_router(health_records.router, prefix="/api/healthRecords", tags=["healthRecords"])
app.include_router(reports.router, prefix="/api/reports", tags=["reports"])
app.include_router(analysis.router, prefix="/api/analysis", tags=["analysis"])
app.include_router(ai.router, prefix="/api/ai", tags=["ai"])
app.include_router(kp_index.router, prefix="/api/kp-index", tags=["kp-index"])


# --- Error formatting: every failure is {"message": ...} ---

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"message": message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


# Serve static files
static_path = Path(__file__).resolve().parent.parent / "static"
if static_path.exists():
    app.mount("/static", StaticFiles(directory=static_path), name="static")


@app.get("/")
async def root():
    index_file = static_path / "index.html"
    if index_file.exists():
        return FileResponse(index_file)
    return {"message": "Health Diary API", "docs": "/docs"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("healthdiary.main:app", host="0.0.0.0", port=settings.port)
