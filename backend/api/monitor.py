"""
Price Monitor API
Endpoints to control the polling scheduler.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import Dict, List, Optional

from services import PriceMonitor, get_price_monitor


router = APIRouter(prefix="/monitor", tags=["Price Monitor"])


class MonitorResponse(BaseModel):
    """Response for monitor operations"""
    status: str
    symbols: Optional[List[str]] = None
    message: Optional[str] = None
    monitor_ticks: Optional[int] = None
    history_ticks: Optional[int] = None


@router.post("/start", response_model=MonitorResponse)
async def start_monitor(monitor: PriceMonitor = Depends(get_price_monitor)):
    """
    Start price monitoring.

    Backfills 24h of history, then polls prices and evaluates alerts on a
    fixed interval. Calling start twice is a no-op.
    """
    return monitor.start()


@router.post("/stop", response_model=MonitorResponse)
async def stop_monitor(monitor: PriceMonitor = Depends(get_price_monitor)):
    """Stop price monitoring"""
    return monitor.stop()


@router.get("/status")
async def get_monitor_status(monitor: PriceMonitor = Depends(get_price_monitor)):
    """
    Get current status of the price monitor.

    Returns:
        Tick counts, last observed prices, error count, uptime
    """
    return {
        "status": "running" if monitor.is_running else "stopped",
        **monitor.stats.to_dict(),
        "last_prices": monitor.last_prices,
    }


@router.post("/tick", response_model=Dict[str, dict])
async def run_monitor_tick(monitor: PriceMonitor = Depends(get_price_monitor)):
    """Run one live-monitoring pass now, outside the schedule"""
    return await monitor.monitor_prices_tick()
