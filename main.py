import logging
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from ecredit.core.database import Base, async_engine, close_redis
from ecredit.core.config import settings
from ecredit.core.exceptions import (
    ConstraintViolation,
    InvalidStateTransition,
    NotAuthorized,
    NotFound,
    ProvisioningError,
)
from ecredit.modules.auth.router import router as auth_router
from ecredit.modules.profiles.router import router as profiles_router
from ecredit.modules.loans.router import router as loans_router
from ecredit.modules.payments.router import router as payments_router
from ecredit.modules.activity.router import router as activity_router
from ecredit.modules.admin.router import router as admin_router

logger = logging.getLogger(__name__)

# Seconds a client should wait before retrying a failed profile bootstrap
PROVISIONING_RETRY_AFTER = 1


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    # Startup
    logging.basicConfig(level=settings.LOG_LEVEL)
    async with async_engine.begin() as conn:
        # Create all tables (for development - use Alembic in production)
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} started ({settings.ENVIRONMENT})")
    
    yield
    
    # Shutdown
    await close_redis()
    await async_engine.dispose()


app = FastAPI(
    title="eCredit API",
    description="Loan servicing with row-level access control",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================
# Domain error handlers
# ============================================================

@app.exception_handler(NotAuthorized)
async def not_authorized_handler(request: Request, exc: NotAuthorized):
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"detail": NotAuthorized.message},
    )


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.message})


@app.exception_handler(InvalidStateTransition)
async def invalid_transition_handler(request: Request, exc: InvalidStateTransition):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": exc.message})


@app.exception_handler(ConstraintViolation)
async def constraint_violation_handler(request: Request, exc: ConstraintViolation):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": {"field": exc.field, "message": exc.message}},
    )


@app.exception_handler(ProvisioningError)
async def provisioning_error_handler(request: Request, exc: ProvisioningError):
    headers = {"Retry-After": str(PROVISIONING_RETRY_AFTER)} if exc.retryable else None
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": exc.message},
        headers=headers,
    )


# Include routers
app.include_router(auth_router)
app.include_router(profiles_router)
app.include_router(loans_router)
app.include_router(payments_router)
app.include_router(activity_router)
app.include_router(admin_router)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "ok",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT
    }


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs"
    }
