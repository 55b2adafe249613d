"""HTTP API - current load and record history"""
import logging
import time
from typing import Callable

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from errors import (
    AmbiguousWindow,
    IncompleteSample,
    MissingRangeBounds,
    NoData,
    P1LoggerError,
    StoreUnavailable,
)
from queries.history import records_between, summarize
from queries.load import load_estimate
from sinks.sqlite_store import RecordStore

logger = logging.getLogger(__name__)

STATUS_CODES = {
    MissingRangeBounds: 400,
    NoData: 404,
    AmbiguousWindow: 422,
    IncompleteSample: 422,
    StoreUnavailable: 500,
}


def create_app(store: RecordStore, clock: Callable[[], float] = time.time) -> FastAPI:
    """Create the API application around a record store"""
    app = FastAPI(title="P1 Meter Logger", version="0.1.0")
    app.state.store = store
    app.state.clock = clock

    _setup_routes(app)
    _setup_exception_handlers(app)

    return app


def _setup_routes(app: FastAPI) -> None:

    @app.get("/load", response_class=PlainTextResponse)
    def get_load(request: Request) -> str:
        """Average load in watts over the last 1, 5 and 15 minutes, comma separated"""
        now = int(request.app.state.clock())
        estimate = load_estimate(now, request.app.state.store)
        return estimate.as_text()

    @app.get("/records")
    def get_records(
        request: Request,
        start: int | None = Query(None, alias="from", description="First timestamp (inclusive)"),
        end: int | None = Query(None, alias="to", description="Last timestamp (inclusive)"),
    ) -> list[dict]:
        """Records captured between two timestamps"""
        records = records_between(request.app.state.store, start, end)
        return [summarize(record) for record in records]


def _setup_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(P1LoggerError)
    async def p1_logger_exception_handler(request: Request, exc: P1LoggerError) -> JSONResponse:
        status_code = STATUS_CODES.get(type(exc), 500)
        if status_code >= 500:
            logger.error(f"API: {request.url.path} failed: {exc}")

        content = {"error": exc.__class__.__name__, "message": str(exc)}
        window = getattr(exc, "window", None)
        if window is not None:
            content["window"] = window

        return JSONResponse(status_code=status_code, content=content)
