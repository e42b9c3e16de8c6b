import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import tokens_router, alerts_router, events_router, monitor_router
from core import MonitorError, configure_logging, get_settings
from db import get_database
from services import get_broadcaster, get_price_monitor

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)

    monitor = get_price_monitor()
    if settings.monitor_autostart:
        monitor.start()
    yield
    if monitor.is_running:
        monitor.stop()
        await monitor.wait_closed()


app = FastAPI(
    title="Token Price Monitor API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MonitorError)
async def monitor_error_handler(request: Request, exc: MonitorError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    return JSONResponse(status_code=400, content={"error": "Invalid request", "fields": fields})


app.include_router(tokens_router)
app.include_router(alerts_router)
app.include_router(events_router)
app.include_router(monitor_router)


@app.get("/")
async def root():
    return {
        "name": "Token Price Monitor API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    monitor = get_price_monitor()
    broadcaster = get_broadcaster()

    return {
        "status": "ok",
        "storage": get_database().get_stats(),
        "monitor": {
            "is_running": monitor.is_running,
            "symbols": monitor.symbols,
            "monitor_ticks": monitor.stats.monitor_ticks,
            "errors": monitor.stats.errors,
        },
        "events": {
            "subscribers": broadcaster.subscriber_count,
            "published": broadcaster.stats()["published"],
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=get_settings().port, reload=True)
