import asyncio
import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv  # load .env variables

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError

import tourney.database as database
from tourney.errors import StoreError, TourneyError
from tourney.sessions import SessionMiddleware

# ----- Load environment variables -----
load_dotenv()

# ----- Logging -----
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)

logger = logging.getLogger("tourney")

# ----- Routers -----
from tourney.routes.auth import router as auth_router
from tourney.routes.colleges import router as college_router
from tourney.routes.teams import router as team_router
from tourney.routes.tournaments import router as tournament_router
from tourney.routes.execution import router as execution_router
from tourney.routes.admin import router as admin_router


def _sqlite_fallback_allowed() -> bool:
    """Decide if we may fall back to the bundled SQLite database."""

    configured = os.getenv("DB_ALLOW_SQLITE_FALLBACK")
    if configured is not None:
        return configured.lower() in {"1", "true", "yes", "on"}
    return database.CURRENT_DATABASE_URL == database.DEFAULT_SQLITE_URL


async def ensure_database() -> None:
    """Create tables, retrying while the database comes up."""

    max_attempts = int(os.getenv("DB_INIT_MAX_ATTEMPTS", "10"))
    base_delay = float(os.getenv("DB_INIT_RETRY_SECONDS", "1.0"))

    attempt = 0
    while True:
        attempt += 1
        try:
            await database.init_models()
        except (OperationalError, DBAPIError, OSError) as exc:  # pragma: no cover - depends on timing
            if attempt >= max_attempts:
                if _sqlite_fallback_allowed() and (
                    database.CURRENT_DATABASE_URL != database.DEFAULT_SQLITE_URL
                ):
                    logger.error(
                        "Database not reachable after %s attempts: %s."
                        " Falling back to local SQLite for development.",
                        attempt,
                        exc,
                    )
                    await database.engine.dispose()
                    database.configure_engine(database.DEFAULT_SQLITE_URL)
                    attempt = 0
                    continue

                logger.exception("Database not reachable after %s attempts", attempt)
                raise

            wait_time = base_delay * min(2 ** (attempt - 1), 8)
            logger.warning(
                "Database not ready (attempt %s/%s): %s. Retrying in %.1f seconds...",
                attempt,
                max_attempts,
                exc,
                wait_time,
            )
            await asyncio.sleep(wait_time)
        else:
            logger.info("Tournament API started and database tables ensured.")
            return


@asynccontextmanager
async def lifespan(app: FastAPI):
    await ensure_database()
    yield
    await database.engine.dispose()


# ----- FastAPI app -----
app = FastAPI(
    title="College Tournament Backend",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# ----- Sessions -----
app.add_middleware(SessionMiddleware)

# ----- CORS (enabled only if ALLOWED_ORIGINS is set) -----
raw_origins = os.getenv("ALLOWED_ORIGINS", "").strip()
if raw_origins:
    allowed_origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Origin", "X-Requested-With"],
        expose_headers=["Content-Disposition"],
        max_age=86400,
    )


# ----- Error bodies: always {"message": ...} -----
@app.exception_handler(TourneyError)
async def tourney_error_handler(request: Request, exc: TourneyError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request."
    if errors:
        message = str(errors[0].get("msg", message)).replace("Value error, ", "", 1)
    return JSONResponse(status_code=400, content={"message": message})


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Unhandled database error on %s", request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"message": StoreError.default_message})


# ----- Include routers -----
base_path = os.getenv("API_BASE_PATH", "").rstrip("/")
for router in (
    auth_router,
    college_router,
    team_router,
    tournament_router,
    execution_router,
    admin_router,
):
    app.include_router(router, prefix=base_path)


# ----- Health check endpoint -----
@app.get("/health", tags=["meta"])
async def health():
    return {"ok": True}


if os.getenv("DATABASE_URL"):
    logger.info("DATABASE_URL loaded.")
