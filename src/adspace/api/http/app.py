"""FastAPI application factory and setup."""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from src.adspace.api.http.app_data import (
    ApplicationDependencies,
    build_application_dependencies,
)
from src.adspace.api.http.middleware.limiter import (
    RateLimiter,
    close_rate_limiter,
    enforce_rate_limit,
    init_redis_rate_limiter,
    local_rate_limiter,
)
from src.adspace.api.http.routers import auth, health, users
from src.adspace.api.utils.app_startup import configure_logging
from src.adspace.core.errors import AuthError
from src.adspace.runtime.context import get_config

configure_logging()


# --- Security middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if get_config().app.environment == "production":
            response.headers.setdefault(
                "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
            )
        return response


# --- Error envelope ---
def error_response(
    request: Request,
    status_code: int,
    message: str,
    error: object | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Render ``{"success": false, "message": ...}``; internal detail only outside production."""
    request_id = getattr(request.state, "request_id", None)
    content: dict[str, object] = {"success": False, "message": message, "request_id": request_id}
    if error is not None and get_config().app.expose_error_details:
        content["error"] = error

    headers = dict(headers or {})
    if request_id:
        headers.setdefault("X-Request-ID", request_id)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    return error_response(request, exc.status_code, exc.message, exc.error)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(request, exc.status_code, str(exc.detail), headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return error_response(request, 422, "Validation failed", errors)


# --- Rate limiter setup ---
async def _initialize_rate_limiter(app_deps: ApplicationDependencies) -> None:
    """Connect a Redis-backed limiter, falling back to process memory outside production."""
    config = get_config()
    if not isinstance(app_deps.rate_limiter, RateLimiter) or not config.redis.url:
        return
    try:
        await init_redis_rate_limiter(config.redis.url)
    except Exception:
        logger.exception("Failed to initialize FastAPI limiter with Redis")
        if config.app.environment == "production":
            raise
        logger.warning("Falling back to in-memory rate limiter")
        app_deps.rate_limiter = local_rate_limiter(config.rate_limiter)


# --- FastAPI app setup ---
def create_app(dependencies: ApplicationDependencies | None = None) -> FastAPI:
    """Build the application; ``dependencies`` replaces the config-wired services."""
    config = get_config()
    is_production = config.app.environment == "production"

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_deps = dependencies or build_application_dependencies()
        app_deps.database_service.create_all()
        await _initialize_rate_limiter(app_deps)
        app.state.app_dependencies = app_deps
        logger.info(
            "Starting up application in {} environment; verifiers: {}",
            get_config().app.environment,
            [v.name for v in app_deps.verifiers],
        )
        try:
            yield
        finally:
            logger.info("Shutting down application")
            await close_rate_limiter(app_deps.rate_limiter)
            app_deps.jwks_service.clear()
            app_deps.database_service.dispose()

    app = FastAPI(
        title="AdSpace Marketplace API",
        lifespan=lifespan,
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        dependencies=[Depends(enforce_rate_limit)],
    )

    app.add_middleware(SecurityHeadersMiddleware)

    if is_production and "*" in config.app.cors.origins:
        raise RuntimeError(
            "CORS misconfigured: cannot use '*' with allow_credentials=True in production"
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.app.cors.origins,
        allow_credentials=config.app.cors.allow_credentials,
        allow_methods=config.app.cors.allow_methods,
        allow_headers=config.app.cors.allow_headers,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        xff = request.headers.get("x-forwarded-for")
        client_ip = (
            xff.split(",")[0].strip()
            if xff
            else request.client.host
            if request.client
            else "unknown"
        )
        base_ctx = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": client_ip,
            "user_agent": request.headers.get("user-agent", "unknown"),
        }

        start = time.perf_counter()
        with logger.contextualize(**base_ctx):
            try:
                logger.info("request.start")
                response = await call_next(request)
                duration_ms = (time.perf_counter() - start) * 1000
                logger.bind(
                    status_code=response.status_code,
                    duration_ms=round(duration_ms, 1),
                ).info("request.end")
                response.headers.setdefault("X-Request-ID", request_id)
                return response

            except Exception as exc:
                duration_ms = (time.perf_counter() - start) * 1000
                logger.bind(
                    status_code=500,
                    duration_ms=round(duration_ms, 1),
                    error_type=type(exc).__name__,
                ).exception("request.error")
                return error_response(request, 500, "Internal server error", str(exc))

    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # --- Router registration ---
    app.include_router(health.router)
    app.include_router(auth.router, prefix="/api")
    app.include_router(users.router, prefix="/api")

    return app


app = create_app()

__all__ = ["app", "create_app", "error_response"]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=get_config().app.host,
        port=get_config().app.port,
        access_log=False,
    )
