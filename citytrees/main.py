"""
City Trees Registry

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from citytrees.api.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware
from citytrees.api.v1 import router as api_v1_router
from citytrees.config import get_settings
from citytrees.database import async_session_maker, close_db, init_db
from citytrees.kernel.errors import CityTreesError
from citytrees.kernel.identity.identity_service import IdentityService
from citytrees.kernel.permissions.policy import Role
from citytrees.logging_config import configure_logging, get_logger
from citytrees.schemas.common import ErrorResponse, HealthResponse

settings = get_settings()
logger = get_logger(__name__)


async def seed_admin() -> None:
    """Create the configured administrator account if it does not exist yet."""
    if not (settings.admin_email and settings.admin_password):
        return
    async with async_session_maker() as session:
        identity = IdentityService(session)
        await identity.create_if_not_exists(
            settings.admin_email,
            settings.admin_password,
            roles=(Role.ADMIN,),
        )
        await session.commit()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Runs startup and shutdown tasks.
    """
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    await init_db()
    await seed_admin()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    City Trees Registry

    Citizens submit street trees; moderators approve or reject them.

    ## Access rules

    - Anyone may read trees and their photos
    - The submitter may edit or delete their own trees
    - Moderators may approve or reject submitted trees
    - Administrators may do everything
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Last added is outermost; CORS wraps everything so error responses carry its headers
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(request: Request, status_code: int, content: dict) -> JSONResponse:
    headers = {}
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers[REQUEST_ID_HEADER] = req_id
        content["request_id"] = req_id
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(CityTreesError)
async def citytrees_exception_handler(request: Request, exc: CityTreesError):
    """Typed domain errors: authorization denials, lifecycle and storage conflicts."""
    response = _error_response(
        request,
        exc.status_code,
        ErrorResponse(detail=exc.detail, code=exc.code).model_dump(exclude_none=True),
    )
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    response = _error_response(request, exc.status_code, {"detail": exc.detail})
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
):
    """Handle request validation errors."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })
    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        {"detail": "Validation error", "code": "validation_error", "errors": errors},
    )


@app.exception_handler(Exception)
async def general_exception_handler(
    request: Request,
    exc: Exception,
):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled exception: %s", exc)
    if settings.debug:
        content = {"detail": str(exc), "type": type(exc).__name__}
    else:
        content = {"detail": "Internal server error"}
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, content)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Check application health."""
    return HealthResponse(
        status="ok",
        version=settings.version,
        database="connected",
    )


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.project_name,
        "version": settings.version,
        "docs": "/docs" if settings.debug else "disabled",
        "api": {
            "v1": settings.api_v1_prefix,
        },
    }


app.include_router(
    api_v1_router,
    prefix=settings.api_v1_prefix,
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "citytrees.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
