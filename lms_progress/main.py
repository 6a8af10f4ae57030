"""
LMS Progress Service - Main Application
Course progress, quiz attempts and enrollment lifecycle
"""

import logging
import os
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient

from lms_progress.config import MONGO_URL, MONGO_DB_NAME, CORS_ORIGINS
from lms_progress.courses.database import create_progress_indexes
from lms_progress.enrollment.enrollment_router import router as enrollment_router
from lms_progress.errors import ProgressError, ValidationError
from lms_progress.logging_config import configure_logging, request_id_ctx
from lms_progress.progress.progress_router import router as progress_router
from lms_progress.progress.quiz_progress_router import router as quiz_progress_router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="LMS Progress Service")

# MongoDB Configuration
client = AsyncIOMotorClient(MONGO_URL)
db = client[MONGO_DB_NAME]


@app.on_event("startup")
async def startup_event():
    await create_progress_indexes(db)
    logger.info("Progress service started")


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    token = request_id_ctx.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_ctx.reset(token)
    response.headers["X-Request-ID"] = request_id
    return response

# ==================== ERROR RESPONSES ====================

def error_response(error: ProgressError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content={"success": False, **error.detail})


@app.exception_handler(ProgressError)
async def progress_error_handler(request: Request, exc: ProgressError):
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in e.get("loc", ())), "message": e.get("msg")}
        for e in exc.errors()
    ]
    return error_response(ValidationError("Invalid request body", errors=errors))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "internal_error", "message": "Internal server error"},
    )

# ==================== ROUTER REGISTRATION ====================
app.include_router(progress_router, prefix="/progress")
app.include_router(quiz_progress_router, prefix="/quiz-progress")
app.include_router(enrollment_router, prefix="/enrollment")


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
