import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load env from streakdsa/.env before settings are read
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from streakdsa.api import health, problems, streaks, users  # noqa: E402
from streakdsa.api.deps import build_services, install_services  # noqa: E402
from streakdsa.core.config import settings, validate_config  # noqa: E402
from streakdsa.core.database import create_all_tables, dispose_engine, get_database_url, init_engine  # noqa: E402
from streakdsa.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from streakdsa.core.logging import configure_logging  # noqa: E402
from streakdsa.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from streakdsa.features.streaks.persistence import SqlStore  # noqa: E402

configure_logging(settings.ENV)
validate_config(strict=settings.CONFIG_STRICT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("streakdsa")
    url = get_database_url()
    if url:
        engine = init_engine(url)
        await create_all_tables(engine)
        install_services(build_services(SqlStore(engine)))
        logger.info("Starting StreakDSA backend (sql store)...")
    else:
        logger.info("Starting StreakDSA backend (in-memory store)...")
    try:
        yield
    finally:
        if url:
            await dispose_engine()
            install_services(None)
        logger.info("Stopping StreakDSA backend...")


app = FastAPI(title="StreakDSA", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(users.router)
app.include_router(streaks.router)
app.include_router(problems.router)
app.include_router(health.root_router)
