# server/app.py
import logging
from datetime import date
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from panchang.aggregator import PanchangAggregator, default_aggregator
from panchang.config import get_settings
from panchang.errors import PanchangError
from panchang.export import build_ics, rahu_kalam_windows
from panchang.festivals import regions
from panchang.location import iana_timezone_for

logging.basicConfig(level=get_settings().log_level,
                    format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Panchang API")


@lru_cache
def get_aggregator() -> PanchangAggregator:
    return default_aggregator()


@app.exception_handler(PanchangError)
async def panchang_error_handler(request: Request, exc: PanchangError):
    logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# --------------------- routes ---------------------
@app.get("/", response_class=PlainTextResponse)
def root():
    return "Panchang API is running. Try /docs for the interactive UI."


@app.get("/health")
def health():
    return {"ok": True, "regions": regions()}


@app.get("/panchang/month")
async def month_panchang(
    lat: float = Query(..., description="Latitude"),
    lon: float = Query(..., description="Longitude"),
    year: int = Query(..., description="e.g. 2025"),
    month: int = Query(..., ge=1, le=12),
    tz: Optional[str] = Query(None, description="IANA timezone; resolved from coordinates when omitted"),
    ayanamsha: Optional[str] = None,
    region: Optional[str] = None,
    tradition: Optional[str] = Query(None, pattern="^(smartha|vaishnava)$"),
    agg: PanchangAggregator = Depends(get_aggregator),
):
    tzid = tz or iana_timezone_for(lat, lon)
    result = await agg.get_month_panchang(year, month, lat, lon, tzid, ayanamsha, region, tradition)
    return result.to_dict()


@app.get("/panchang/day")
async def day_detail(
    lat: float = Query(..., description="Latitude"),
    lon: float = Query(..., description="Longitude"),
    day: date = Query(..., description="YYYY-MM-DD"),
    tz: Optional[str] = Query(None, description="IANA timezone; resolved from coordinates when omitted"),
    ayanamsha: Optional[str] = None,
    region: Optional[str] = None,
    tradition: Optional[str] = Query(None, pattern="^(smartha|vaishnava)$"),
    agg: PanchangAggregator = Depends(get_aggregator),
):
    tzid = tz or iana_timezone_for(lat, lon)
    detail = await agg.get_day_detail(day, lat, lon, tzid, ayanamsha, region, tradition)
    return detail.to_dict()


@app.get("/festivals/year")
async def year_festivals(
    lat: float = Query(..., description="Latitude"),
    lon: float = Query(..., description="Longitude"),
    year: int = Query(..., description="e.g. 2025"),
    ayanamsha: Optional[str] = None,
    region: Optional[str] = None,
    tradition: Optional[str] = Query(None, pattern="^(smartha|vaishnava)$"),
    agg: PanchangAggregator = Depends(get_aggregator),
):
    result = await agg.get_year_festivals(year, lat, lon, ayanamsha, region, tradition)
    return result.to_dict()


@app.get("/ics")
async def ics(
    lat: float = Query(..., description="Latitude"),
    lon: float = Query(..., description="Longitude"),
    year: int = Query(..., description="e.g. 2025"),
    tz: Optional[str] = Query(None, description="IANA timezone; resolved from coordinates when omitted"),
    ayanamsha: Optional[str] = None,
    region: Optional[str] = None,
    tradition: Optional[str] = Query(None, pattern="^(smartha|vaishnava)$"),
    include_rahukaal: bool = False,
    agg: PanchangAggregator = Depends(get_aggregator),
):
    tzid = tz or iana_timezone_for(lat, lon)
    months = await agg.get_year_months(year, lat, lon, tzid, ayanamsha, region, tradition)
    festivals = [f for m in months for f in m.festivals]
    windows = rahu_kalam_windows(d for m in months for d in m.days) if include_rahukaal else []

    name = f"panchang-{year}.ics"
    payload = build_ics(festivals, windows, calname="Panchang", tzid=tzid)
    headers = {"Content-Disposition": f'attachment; filename="{name}"'}
    return StreamingResponse(iter([payload]), media_type="text/calendar", headers=headers)
