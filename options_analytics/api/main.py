"""FastAPI application exposing the analysis service."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Dict, Iterator, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import StreamingResponse

from options_analytics.benchmarks import BackfillInProgressError, BackfillManager
from options_analytics.config import build_service, get_settings
from options_analytics.config.loader import AppSettings
from options_analytics.models import serialize_analysis, serialize_progress, serialize_snapshot
from options_analytics.service.analysis import AnalysisService

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

app = FastAPI(title="Options Analytics API", version="1.0.0")


@lru_cache(maxsize=None)
def get_service() -> AnalysisService:
    return build_service(get_settings())


@lru_cache(maxsize=None)
def get_backfill_manager() -> BackfillManager:
    service = get_service()
    window = get_settings().benchmarks.analysis_window_days

    def backfill(symbol, window_days, progress, cancel_event):
        return service.run_benchmark_backfill(symbol, window_days, progress=progress, cancel_event=cancel_event)

    return BackfillManager(backfill, default_window_days=window)


def get_app_settings() -> AppSettings:
    return get_settings()


@app.on_event("startup")
async def on_startup() -> None:
    logger.info("Starting options analytics API")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    """Cancel running backfills so worker threads stop between trading days."""

    logger.info("Shutting down options analytics API")
    if get_backfill_manager.cache_info().currsize:
        get_backfill_manager().shutdown()


@app.get("/stocks")
def list_stocks(
    watchlist: str = "default",
    service: AnalysisService = Depends(get_service),
    settings: AppSettings = Depends(get_app_settings),
) -> List[Dict[str, Any]]:
    """Return the watchlist with today's quotes."""

    symbols = settings.get_watchlist(watchlist)
    if not symbols:
        raise HTTPException(status_code=404, detail=f"Unknown watchlist '{watchlist}'")
    stocks = []
    for quote in service.get_quotes(symbols):
        payload = quote.model_dump(mode="json")
        payload["name"] = settings.stocks.get(quote.symbol, quote.symbol)
        stocks.append(payload)
    return stocks


@app.get("/options/{symbol}")
def analyze_options(
    symbol: str,
    option_type: str = Query("call", alias="type", pattern="^(call|put)$"),
    max_days: Optional[int] = Query(None, ge=1),
    refresh: bool = False,
    service: AnalysisService = Depends(get_service),
) -> Dict[str, Any]:
    """Score the live chain for ``symbol``."""

    analysis = service.analyze_options(symbol, option_type=option_type, max_days=max_days, refresh=refresh)
    return serialize_analysis(analysis)


@app.get("/benchmarks/{symbol}")
def get_benchmark(symbol: str, service: AnalysisService = Depends(get_service)) -> Dict[str, Any]:
    snapshot = service.load_latest_benchmark(symbol)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"No benchmark stored for {symbol.upper()}")
    return serialize_snapshot(snapshot)


@app.post("/benchmarks/{symbol}/backfill", status_code=202)
def start_backfill(
    symbol: str,
    window_days: Optional[int] = Query(None, ge=1, le=756),
    manager: BackfillManager = Depends(get_backfill_manager),
) -> Dict[str, Any]:
    """Start a background backfill; progress is streamed from the events endpoint."""

    try:
        job = manager.start(symbol, window_days)
    except BackfillInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"symbol": job.symbol, "status": "started", "window_days": job.window_days}


@app.get("/benchmarks/{symbol}/backfill/events")
def stream_backfill_events(
    symbol: str,
    manager: BackfillManager = Depends(get_backfill_manager),
) -> StreamingResponse:
    """Server-sent events for the most recent backfill of ``symbol``."""

    job = manager.get(symbol)
    if job is None:
        raise HTTPException(status_code=404, detail=f"No backfill started for {symbol.upper()}")

    def event_stream() -> Iterator[str]:
        for event in job.events():
            yield f"event: {event.status}\ndata: {json.dumps(serialize_progress(event))}\n\n"

    return StreamingResponse(event_stream(), media_type="text/event-stream")


@app.delete("/benchmarks/{symbol}/backfill")
def cancel_backfill(symbol: str, manager: BackfillManager = Depends(get_backfill_manager)) -> Dict[str, Any]:
    if not manager.cancel(symbol):
        raise HTTPException(status_code=404, detail=f"No running backfill for {symbol.upper()}")
    return {"symbol": symbol.upper(), "status": "cancelling"}


@app.get("/cache/stats")
def cache_stats(service: AnalysisService = Depends(get_service)) -> Dict[str, Any]:
    return {
        namespace: {"date": stats.date.isoformat() if stats.date else None, "is_current": stats.is_current, "count": stats.count}
        for namespace, stats in service.cache_stats().items()
    }


@app.delete("/cache/{namespace}")
def clear_cache(namespace: str, service: AnalysisService = Depends(get_service)) -> Dict[str, Any]:
    try:
        service.clear_cache(namespace)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown cache namespace '{namespace}'") from exc
    return {"namespace": namespace, "cleared": True}


__all__ = ["app", "get_backfill_manager", "get_service"]
