import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from conduit.cache import cache
from conduit.config import settings
from conduit.database import create_tables
from conduit.errors import (
    AuthError,
    ConduitError,
    ConflictError,
    NotFoundError,
    SlugGenerationExhaustedError,
    UnauthorizedError,
    ValidationError,
)
from conduit.middleware import TimingMiddleware
from conduit.routers import articles, profiles, tags, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        await cache.connect()
    except Exception as exc:
        logger.warning("Cache unavailable, continuing without Redis: %s", exc)
    if settings.CREATE_TABLES_ON_STARTUP:
        await create_tables()
    logger.info("Conduit API started (env=%s)", settings.APP_ENV)
    yield
    # Shutdown
    await cache.disconnect()


app = FastAPI(
    title="Conduit API",
    description="Social blogging backend (RealWorld API)",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(users.router)
app.include_router(profiles.router)
app.include_router(articles.router)
app.include_router(tags.router)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

def _errors(status_code: int, errors: dict[str, list[str]], headers: dict | None = None):
    return JSONResponse({"errors": errors}, status_code=status_code, headers=headers)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _errors(422, exc.errors)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        field = loc[-1] if loc else "body"
        errors.setdefault(field, []).append(error.get("msg", "is invalid"))
    return _errors(422, errors)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return _errors(401, {"credentials": [exc.message]}, headers={"WWW-Authenticate": "Token"})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _errors(404, {exc.entity: ["not found"]})


@app.exception_handler(UnauthorizedError)
async def forbidden_handler(request: Request, exc: UnauthorizedError):
    return _errors(403, {"permission": [exc.message]})


@app.exception_handler(SlugGenerationExhaustedError)
async def slug_exhausted_handler(request: Request, exc: SlugGenerationExhaustedError):
    return _errors(422, {"slug": ["could not generate a unique slug, try another title"]})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    # Services translate conflicts; reaching here means one slipped through.
    logger.warning("Untranslated conflict on %s %s: %s", request.method, request.url.path, exc)
    return _errors(422, {exc.field: ["has already been taken"]})


@app.exception_handler(ConduitError)
async def conduit_error_handler(request: Request, exc: ConduitError):
    logger.error("Unhandled domain error on %s %s: %s", request.method, request.url.path, exc)
    return _errors(500, {"server": ["internal error"]})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return _errors(500, {"server": ["internal error"]})


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0", "cache": cache.stats}
