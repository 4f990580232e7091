"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from prometheus_fastapi_instrumentator import Instrumentator

from learnpath.api.auth import router as auth_router
from learnpath.api.deps import get_gateway, get_question_history
from learnpath.api.learning import router as learning_router
from learnpath.api.prerequisites import router as prerequisites_router
from learnpath.api.quiz_attempts import router as attempts_router
from learnpath.core.config import settings
from learnpath.core.database import close_db, init_db
from learnpath.core.errors import GenerationError, QuotaExceeded

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize Sentry if configured
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    """
    logger.info(f"Starting {settings.APP_NAME}...")
    await init_db()

    store = get_question_history().store
    if hasattr(store, "connect"):
        await store.connect()
        logger.info("Question history connected to Redis")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    if hasattr(store, "disconnect"):
        await store.disconnect()
    await get_gateway().close()
    await close_db()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

if settings.PROMETHEUS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")


# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.detail,
                "type": "http_error",
                "status_code": exc.status_code,
            }
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed input is a client error; nothing has been generated yet."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "message": "Validation error",
                "type": "validation_error",
                "status_code": status.HTTP_400_BAD_REQUEST,
                "details": jsonable_errors(exc),
            }
        },
    )


@app.exception_handler(QuotaExceeded)
async def quota_exceeded_handler(request: Request, exc: QuotaExceeded):
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"canAttempt": False, "attemptsToday": exc.attempts_today, "message": exc.message},
    )


@app.exception_handler(GenerationError)
async def generation_exception_handler(request: Request, exc: GenerationError):
    logger.error(f"Generation failed: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": {"message": "Content generation failed.", "type": "generation_error"}},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    message = "An internal error occurred" if settings.is_production() else str(exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": {"message": message, "type": "internal_error"}},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry the raw exception object, which is not JSON serializable
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]


@app.get("/health", tags=["Health"])
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "version": settings.APP_VERSION, "environment": settings.ENVIRONMENT}


app.include_router(auth_router, prefix=f"{settings.API_PREFIX}/auth", tags=["auth"])
app.include_router(prerequisites_router, prefix=f"{settings.API_PREFIX}/prerequisites", tags=["prerequisites"])
app.include_router(attempts_router, prefix=settings.API_PREFIX, tags=["quiz-attempts"])
app.include_router(learning_router, prefix=settings.API_PREFIX, tags=["learning"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "learnpath.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
        log_level=settings.LOG_LEVEL.lower(),
    )
