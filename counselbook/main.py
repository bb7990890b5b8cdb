import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, ProgrammingError

from .config import ALLOWED_ORIGINS
from .database import Base, SessionLocal, engine
from .domain.online_status.router import router as online_status_router
from .domain.reminders.router import router as reminders_router
from .domain.scheduling.router import router as schedules_router
from .domain.sessions.router import router as sessions_router
from .errors import (
    BookingConflictError,
    DispatchError,
    EngineError,
    NotFoundError,
    TransientIOError,
    ValidationError,
)
from .realtime import change_feed
from .routes.status_automation import router as status_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_tables():
    """Create the engine tables; a concurrent uvicorn worker may win the race"""
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("✅ Engine tables ready")
    except (ProgrammingError, IntegrityError) as e:
        if "already exists" not in str(e) and "duplicate key" not in str(e):
            raise
        logger.info("Engine tables were created by another worker")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🔄 Counselbook starting up")
    create_tables()
    detach_feed = change_feed.attach(SessionLocal)
    logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

    yield

    detach_feed()
    logger.info("Counselbook shutting down")


app = FastAPI(title="Counselbook API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})


ERROR_STATUS_CODES = (
    (BookingConflictError, 409),
    (ValidationError, 400),
    (NotFoundError, 404),
    (TransientIOError, 503),
    (DispatchError, 502),
)


@app.exception_handler(EngineError)
async def engine_exception_handler(request: Request, exc: EngineError):
    """Map the engine error taxonomy onto HTTP status codes"""
    status_code = next((code for error_type, code in ERROR_STATUS_CODES if isinstance(exc, error_type)), 500)
    if status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} failed: {exc}")
    else:
        logger.warning(f"⚠️ {request.method} {request.url.path} rejected ({status_code}): {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

app.include_router(schedules_router)
app.include_router(sessions_router)
app.include_router(online_status_router)
app.include_router(reminders_router)
app.include_router(status_router)


# Routes
@app.get("/")
def root():
    return {"message": "Counselbook API is running"}


@app.get("/health")
def health():
    return {"status": "healthy", "change_feed_subscribers": change_feed.subscriber_count}
