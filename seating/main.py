import logging
import time

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from seating.api.routes.routes import router
from seating.application.container import SeatingEngine
from seating.config import settings
from seating.domain.exceptions import (
    InvalidSeatRequestError,
    SeatConflictError,
    SeatingError,
    SeatNotFoundError,
)
from seating.infrastructure.cache.hold_registry import HoldRegistry, create_redis_client
from seating.infrastructure.db.models import Base
from seating.infrastructure.db.session import SessionLocal, engine

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = FastAPI(title="Seating Reservation Engine")

app.include_router(router)
logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[SeatingError], int]] = [
    (SeatNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidSeatRequestError, status.HTTP_400_BAD_REQUEST),
    (SeatConflictError, status.HTTP_409_CONFLICT),
]


def status_code_for(exc: SeatingError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(SeatingError)
async def seating_error_handler(request: Request, exc: SeatingError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("Seating failure on %s: %s", request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed bodies and query params map to InvalidRequest.
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def _wait_for_db() -> None:
    # Handles the common case where API starts before Postgres is ready.
    max_retries = settings.db_connect_max_retries
    retry_delay_seconds = settings.db_connect_retry_delay

    for attempt in range(1, max_retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database is reachable.")
            return
        except OperationalError:
            if attempt == max_retries:
                logger.exception(
                    "Database not reachable after %s attempts. Check DATABASE_URL and Postgres status.",
                    max_retries,
                )
                raise
            logger.warning(
                "Database not ready (attempt %s/%s). Retrying in %.1f seconds...",
                attempt,
                max_retries,
                retry_delay_seconds,
            )
            time.sleep(retry_delay_seconds)


@app.on_event("startup")
def on_startup() -> None:
    _wait_for_db()
    Base.metadata.create_all(bind=engine)

    seating = SeatingEngine(
        SessionLocal,
        HoldRegistry(create_redis_client(settings.redis_url)),
        settings,
    )
    seating.start()
    app.state.seating = seating


@app.on_event("shutdown")
def on_shutdown() -> None:
    seating = getattr(app.state, "seating", None)
    if seating is not None:
        seating.stop()
