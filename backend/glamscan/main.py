import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from . import database
from .config import settings
from .exceptions import register_exception_handlers
from .routers import all_routers

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL, format='%(asctime)s - %(levelname)s - %(name)s - %(message)s')
logger = logging.getLogger(__name__)

app = FastAPI(
    title="GlamScan Backend",
    description="API for GlamScan: Hot-or-Not looks, friends and messaging, style combos and AI styling.",
    version="0.1.0"
)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Content-Security-Policy": (
        "default-src 'self'; img-src 'self' data: https:; style-src 'self' 'unsafe-inline'; "
        "script-src 'self'; connect-src 'self'; frame-ancestors 'none'"
    ),
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Retry-After", "X-Affiliate-Warning"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    return response


register_exception_handlers(app)

for router in all_routers:
    app.include_router(router, prefix="/_api")

os.makedirs(settings.MEDIA_DIR, exist_ok=True)
app.mount(settings.MEDIA_BASE_URL, StaticFiles(directory=settings.MEDIA_DIR, check_dir=False), name="media")


# --- Application Lifecycle Events ---
@app.on_event("startup")
async def on_startup():
    """
    Actions to perform when the application starts up.
    Currently, it attempts to create database tables.
    """
    logger.info(f"Application startup ({settings.ENVIRONMENT}): attempting to create DB tables if they don't exist.")
    try:
        database.create_db_tables()
        logger.info("Database tables checked/created successfully on startup.")
    except Exception as e:
        logger.error(f"CRITICAL: Error creating database tables during startup: {e}", exc_info=True)


@app.get("/", summary="Root Endpoint", description="A simple welcome message for the API.")
async def root():
    return {"message": "Welcome to GlamScan Backend!"}


@app.get("/health", summary="Health Check")
async def health():
    database_ok = database.check_db_connection()
    return {"status": "ok" if database_ok else "degraded", "database": "ok" if database_ok else "unavailable"}
