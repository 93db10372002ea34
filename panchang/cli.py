import argparse
import asyncio
import json
import logging
from datetime import date
from pathlib import Path
from typing import Union

from .aggregator import default_aggregator
from .config import get_settings
from .errors import PanchangError
from .export import build_ics, rahu_kalam_windows
from .location import iana_timezone_for

logger = logging.getLogger(__name__)


def _parse_date(s: str) -> date:
    try:
        return date.fromisoformat(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {s!r}")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="panchang",
        description="Panchang (tithi, nakshatra, yoga, karana), muhurta windows and festivals for any location."
    )
    ap.add_argument("--lat", type=float, required=True, help="Latitude (decimal)")
    ap.add_argument("--lon", type=float, required=True, help="Longitude (decimal)")
    ap.add_argument("--year", type=int, help="Year, e.g. 2025 (festival list unless --month is given)")
    ap.add_argument("--month", type=int, help="Month 1..12: print the month Panchang")
    ap.add_argument("--day", type=_parse_date, help="YYYY-MM-DD: print one day with muhurta windows")
    ap.add_argument("--tz", type=str, help="IANA timezone; resolved from coordinates when omitted")
    ap.add_argument("--ayanamsha", type=str, help="lahiri (default), raman, krishnamurti, fagan_bradley, ...")
    ap.add_argument("--region", type=str,
                    help="Festival rule table: universal, north_indian, south_indian, marathi, bengali, tamil, malayalam")
    ap.add_argument("--tradition", type=str, choices=["smartha", "vaishnava"],
                    help="Ekadashi observance (default smartha)")
    ap.add_argument("--ics", action="store_true", help="Write the year's festivals as .ics instead of JSON")
    ap.add_argument("--rahukaal", action="store_true", help="With --ics: add timed Rahu Kalam events")
    ap.add_argument("--outfile", type=str, default=None, help="Output path (stdout for JSON when omitted)")
    return ap


async def run(args) -> Union[str, bytes]:
    logger.debug("panchang %s", vars(args))
    agg = default_aggregator()
    tzid = args.tz or iana_timezone_for(args.lat, args.lon)

    if args.day:
        detail = await agg.get_day_detail(args.day, args.lat, args.lon, tzid,
                                          args.ayanamsha, args.region, args.tradition)
        return json.dumps(detail.to_dict(), indent=2, ensure_ascii=False)

    if args.month:
        month = await agg.get_month_panchang(args.year, args.month, args.lat, args.lon,
                                             tzid, args.ayanamsha, args.region, args.tradition)
        return json.dumps(month.to_dict(), indent=2, ensure_ascii=False)

    if args.ics:
        months = await agg.get_year_months(args.year, args.lat, args.lon, tzid,
                                           args.ayanamsha, args.region, args.tradition)
        festivals = [f for m in months for f in m.festivals]
        windows = rahu_kalam_windows(d for m in months for d in m.days) if args.rahukaal else []
        return build_ics(festivals, windows, calname="Panchang", tzid=tzid)

    year = await agg.get_year_festivals(args.year, args.lat, args.lon,
                                        args.ayanamsha, args.region, args.tradition)
    return json.dumps(year.to_dict(), indent=2, ensure_ascii=False)


def main(argv=None):
    ap = build_parser()
    args = ap.parse_args(argv)
    if args.day is None and args.year is None:
        ap.error("provide --year (optionally with --month) or --day")
    logging.basicConfig(level=get_settings().log_level,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        payload = asyncio.run(run(args))
    except PanchangError as e:
        raise SystemExit(f"{e.code}: {e.message}")

    if args.outfile or isinstance(payload, bytes):
        out = Path(args.outfile) if args.outfile else Path(f"site/{args.year}-panchang.ics")
        out.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(payload, bytes):
            out.write_bytes(payload)
        else:
            out.write_text(payload, encoding="utf-8")
        print(f"Wrote {out}  (lat={args.lat}, lon={args.lon})")
    else:
        print(payload)


if __name__ == "__main__":
    main()
