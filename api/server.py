# api/server.py
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from loguru import logger
from prometheus_client import make_asgi_app
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.requests import Request

from api.auth import JWTVerifier
from api.middleware.auth import TenantContextMiddleware, denial_response
from api.routes.auth import limiter
from api.routes.auth import router as auth_router
from api.routes.classes import router as classes_router
from api.routes.dashboard import router as dashboard_router
from api.routes.guardians import router as guardians_router
from api.routes.schools import router as schools_router
from api.routes.students import router as students_router
from core.errors import AuthorizationError
from core.models import dispose_db_manager, get_db_manager
from core.security import check_secrets_on_startup
from core.session import SessionResolver
from core.settings import Settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.settings
    check_secrets_on_startup(settings, strict=settings.strict_secrets)
    try:
        manager = get_db_manager(settings.database_url)
        logger.info(f"Database ready: {manager.health_check()}")
    except Exception as e:
        logger.warning(f"Could not initialize database: {e}")

    yield

    dispose_db_manager()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    app = FastAPI(title="School Portal API", lifespan=lifespan)
    app.state.settings = settings
    app.state.session_resolver = SessionResolver(
        JWTVerifier(settings),
        verify_timeout=settings.verify_timeout_seconds,
    )

    # --- Rate Limiting (SlowAPI) ---
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    def rate_limit_handler(request, exc):
        return JSONResponse(
            status_code=429,
            content={"detail": "Rate limit exceeded"},
        )

    @app.exception_handler(AuthorizationError)
    def authorization_error_handler(request: Request, exc: AuthorizationError):
        return denial_response(request, exc)

    # SlowAPIMiddleware is outermost: limits apply before credentials are checked.
    app.add_middleware(TenantContextMiddleware)
    app.add_middleware(SlowAPIMiddleware)

    app.mount("/metrics", make_asgi_app())

    @app.get("/")
    def root():
        return {"message": "School Portal API is running"}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.include_router(auth_router)
    app.include_router(dashboard_router)
    app.include_router(schools_router)
    app.include_router(students_router)
    app.include_router(classes_router)
    app.include_router(guardians_router)
    return app


app = create_app()
