from datetime import datetime, time, timezone, timedelta
try:
    from zoneinfo import ZoneInfo
    BRAZIL_TZ = ZoneInfo("America/Sao_Paulo")
except Exception:
    # fallback to a fixed -03:00 offset if the tz database isn't available
    BRAZIL_TZ = timezone(timedelta(hours=-3))


def utcnow() -> datetime:
    """Naive UTC now, matching what the database stores for server-side timestamps."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def make_aware_in_brazil(dt: datetime) -> datetime:
    """Ensure a datetime is timezone-aware in America/Sao_Paulo.

    If dt is naive, attach BRAZIL_TZ. If dt already has tzinfo, convert it
    to BRAZIL_TZ.
    """
    if dt is None:
        return None
    if getattr(dt, 'tzinfo', None) is None:
        return dt.replace(tzinfo=BRAZIL_TZ)
    return dt.astimezone(BRAZIL_TZ)


def today_in_brazil():
    return datetime.now(BRAZIL_TZ).date()


def local_day_range_to_utc(date_str: str):
    """Given a local date string (YYYY-MM-DD or ISO datetime), return
    a tuple (start_utc, end_utc) of naive UTC datetimes covering that
    local day in America/Sao_Paulo.

    Examples:
      '2026-01-11' -> 2026-01-11 03:00:00 .. 2026-01-12 02:59:59.999999
      '2026-01-11T10:00:00' -> start and end are that same instant
    Returns (None, None) for empty or unparseable input.
    """
    if not date_str:
        return None, None

    try:
        d = datetime.fromisoformat(date_str)
    except ValueError:
        return None, None
    if len(date_str) == 10:
        start_local = datetime.combine(d.date(), time.min)
        end_local = datetime.combine(d.date(), time.max)
    else:
        start_local = d
        end_local = d

    start_utc = make_aware_in_brazil(start_local).astimezone(timezone.utc).replace(tzinfo=None)
    end_utc = make_aware_in_brazil(end_local).astimezone(timezone.utc).replace(tzinfo=None)
    return start_utc, end_utc


def start_of_today_utc() -> datetime:
    start, _ = local_day_range_to_utc(today_in_brazil().isoformat())
    return start


def days_ago_utc(days: int) -> datetime:
    return utcnow() - timedelta(days=days)
