import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from blogapi.cache import cache
from blogapi.config import settings
from blogapi.credentials import credential_store
from blogapi.exceptions import BlogError, CredentialError
from blogapi.middleware import ErrorEnvelopeMiddleware, TimingMiddleware
from blogapi.routers import admin, articles, categories, comments, users

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await credential_store.connect()
    try:
        await cache.connect()
    except Exception:
        logger.warning("Cache unavailable, serving the feed from the database")
    yield
    # Shutdown
    await cache.disconnect()
    await credential_store.disconnect()


app = FastAPI(
    title="Big Event Blog API",
    description="Blog backend with toggle interactions and token-backed sessions",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(ErrorEnvelopeMiddleware)
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(CredentialError)
async def credential_error_handler(request: Request, exc: CredentialError):
    logger.info("Rejected credential on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": 0, "message": exc.message, "data": None},
    )


@app.exception_handler(BlogError)
async def blog_error_handler(request: Request, exc: BlogError):
    if exc.log_as_error:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": 500, "message": exc.message, "data": None},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(
        status_code=200,
        content={"code": 500, "message": message, "data": None},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # Routing failures (unknown path, wrong method) keep their own status.
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": 500, "message": str(exc.detail), "data": None},
        headers=getattr(exc, "headers", None),
    )


# Routers
app.include_router(users.router)
app.include_router(articles.router)
app.include_router(comments.router)
app.include_router(categories.router)
app.include_router(admin.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
