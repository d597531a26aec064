import asyncio
import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import inspect as sa_inspect

logger = logging.getLogger("app.pubsub")


class Subscription:
    """One listener on a table feed, optionally narrowed by an equality filter.

    Events are pushed from any thread (sync routes run in the threadpool) onto
    an asyncio.Queue owned by the subscriber's event loop.
    """

    def __init__(self, table: str, filtro: Optional[Dict[str, str]] = None):
        self.table = table
        self.filtro = filtro or {}
        self.queue: asyncio.Queue = asyncio.Queue()
        self.loop = asyncio.get_running_loop()

    def matches(self, event: dict) -> bool:
        if event.get("type") != self.table:
            return False
        record = event.get("record") or {}
        for col, val in self.filtro.items():
            if str(record.get(col)) != str(val):
                return False
        return True

    def push(self, event: dict) -> None:
        self.loop.call_soon_threadsafe(self.queue.put_nowait, event)


_subscribers: List[Subscription] = []


def parse_filter(raw: Optional[str]) -> Dict[str, str]:
    """Parse 'col=eq.val' (or 'col.eq.val') filters, comma separated."""
    out: Dict[str, str] = {}
    if not raw:
        return out
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        if "=eq." in part:
            col, val = part.split("=eq.", 1)
        elif ".eq." in part:
            col, val = part.split(".eq.", 1)
        else:
            raise ValueError(f"filtro inválido: {part!r}")
        out[col.strip()] = val.strip()
    return out


def subscribe(table: str, filtro: Optional[Dict[str, str]] = None) -> Subscription:
    sub = Subscription(table, filtro)
    _subscribers.append(sub)
    return sub


def unsubscribe(sub: Subscription) -> None:
    try:
        _subscribers.remove(sub)
    except ValueError:
        pass


def _jsonable(value):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def to_record(obj) -> dict:
    """Snapshot an ORM row (or dict) as a JSON-safe dict of its columns."""
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return {k: _jsonable(v) for k, v in obj.items()}
    mapper = sa_inspect(obj).mapper
    return {attr.key: _jsonable(getattr(obj, attr.key)) for attr in mapper.column_attrs}


def publish(table: str, action: str, record: Any) -> None:
    """Notify every matching subscriber that a row of `table` changed.

    `record` may be an ORM row or a dict. Fire-and-forget: a subscriber whose
    loop is gone is dropped.
    """
    if not _subscribers:
        return
    event = {"type": table, "action": action, "record": to_record(record)}
    logger.debug("publish %s %s", table, action)
    for sub in list(_subscribers):
        if not sub.matches(event):
            continue
        try:
            sub.push(event)
        except RuntimeError:
            # loop closed
            unsubscribe(sub)


def get_status() -> dict:
    by_table: Dict[str, int] = {}
    for sub in _subscribers:
        by_table[sub.table] = by_table.get(sub.table, 0) + 1
    return {"subscribers": len(_subscribers), "by_table": by_table}
