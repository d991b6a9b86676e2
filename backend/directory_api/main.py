from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from directory_api.core.config import settings
from directory_api.core.errors import AuthzError, Conflict, InvalidRoleChange, NotFound, PermissionDenied
from directory_api.core.hierarchy import build_role_hierarchy
from directory_api.core.logging import configure_logging
from directory_api.db.session import init_models
import directory_api.models  # noqa: F401  # force model registration

from directory_api.api.v1.users import router as users_router
from directory_api.api.v1.sites import router as sites_router
from directory_api.api.v1.places import router as places_router
from directory_api.api.v1.site_memberships import router as site_memberships_router
from directory_api.api.v1.place_memberships import router as place_memberships_router

_ERROR_STATUS = {
    NotFound: status.HTTP_404_NOT_FOUND,
    Conflict: status.HTTP_409_CONFLICT,
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    InvalidRoleChange: status.HTTP_400_BAD_REQUEST,
}


def _error_response(exc: AuthzError) -> JSONResponse:
    return JSONResponse(
        status_code=_ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST),
        content={"detail": {"code": exc.code, "message": exc.message}},
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PermissionDenied)
    async def _permission_denied(request: Request, exc: PermissionDenied):
        # The reason stays server-side; clients get the generic body.
        logger.info("403 {} {}: {} ({})", request.method, request.url.path, exc.reason.value, exc.message)
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"detail": {"code": PermissionDenied.code, "message": PermissionDenied.default_message}},
        )

    @app.exception_handler(AuthzError)
    async def _authz_error(request: Request, exc: AuthzError):
        logger.info("{} {} -> {}: {}", request.method, request.url.path, exc.code, exc.message)
        return _error_response(exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    yield


def create_application() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Directory Admin API", lifespan=lifespan)

    # Immutable after startup; shared by every resolver/guard.
    app.state.role_hierarchy = build_role_hierarchy()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/")
    def root():
        return {"status": "ok", "service": "directory-admin-api"}

    # Routers
    app.include_router(users_router, prefix="/api/v1")
    app.include_router(sites_router, prefix="/api/v1")
    app.include_router(places_router, prefix="/api/v1")
    app.include_router(site_memberships_router, prefix="/api/v1")
    app.include_router(place_memberships_router, prefix="/api/v1")

    logger.info("Directory Admin API ready ({})", settings.ENVIRONMENT)
    return app


app = create_application()
