from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, declarative_base
from app.core.config import settings
import logging
import threading
import contextvars

DATABASE_URL = settings.DATABASE_URL

# SQLAlchemy connect_args and pool options differ between SQLite and server databases
engine_kwargs = {}
if DATABASE_URL.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    # an in-memory database only lives as long as its single connection
    if DATABASE_URL in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in DATABASE_URL:
        engine_kwargs["poolclass"] = StaticPool
else:
    # pool_pre_ping avoids "server has gone away" errors from stale pooled connections
    engine_kwargs.update(
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )

engine = create_engine(DATABASE_URL, **engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# --- Pool monitoring: log connects and checkouts to help diagnose excess connections ---
_pool_logger = logging.getLogger("app.db.pool")
_pool_logger.setLevel(getattr(logging, settings.LOG_LEVEL, logging.INFO))
_connect_count = 0
_checkout_count = 0
_checkin_count = 0
_pool_lock = threading.Lock()

# --- Per-request DB statement counting ---
# The HTTP middleware sets a one-element list at the start of each request and
# the cursor listener bumps it in place. Sync routes run on a copied context in
# the threadpool, so the counter must be mutated rather than re-set.
request_db_query_count = contextvars.ContextVar("request_db_query_count", default=None)
_global_db_query_count = 0


@event.listens_for(engine, "connect")
def _on_connect(dbapi_connection, connection_record):
    global _connect_count
    with _pool_lock:
        _connect_count += 1
        cnt = _connect_count
    if cnt % settings.DB_LOG_EVERY_N == 0:
        _pool_logger.info("SQLAlchemy Pool CONNECT events: total opened=%s", cnt)


if DATABASE_URL.startswith("sqlite"):
    # SQLite ignores ondelete rules unless each connection turns them on
    @event.listens_for(engine, "connect")
    def _sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@event.listens_for(engine, "checkout")
def _on_checkout(dbapi_connection, connection_record, connection_proxy):
    global _checkout_count
    with _pool_lock:
        _checkout_count += 1
        cnt = _checkout_count
    if cnt % settings.DB_LOG_EVERY_N == 0:
        _pool_logger.info("SQLAlchemy Pool CHECKOUT events: total checkouts=%s", cnt)


@event.listens_for(engine, "checkin")
def _on_checkin(dbapi_connection, connection_record):
    global _checkin_count
    with _pool_lock:
        _checkin_count += 1
        cnt = _checkin_count
    if cnt % settings.DB_LOG_EVERY_N == 0:
        _pool_logger.info("SQLAlchemy Pool CHECKIN events: total checkins=%s", cnt)


@event.listens_for(engine, "before_cursor_execute")
def _on_before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    current = request_db_query_count.get()
    if current is not None:
        current[0] += 1
    global _global_db_query_count
    with _pool_lock:
        _global_db_query_count += 1


def get_global_db_queries_total() -> int:
    """Return the total number of DB roundtrips since process start."""
    return int(_global_db_query_count)


def get_db():
    """FastAPI dependency that provides a scoped SQLAlchemy Session.

    The connection always goes back to the pool after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_db(bind=None):
    # Import models here so they are registered on the metadata
    import app.models.user  # noqa: F401
    import app.models.session  # noqa: F401
    import app.models.categoria  # noqa: F401
    import app.models.product  # noqa: F401
    import app.models.client  # noqa: F401
    import app.models.pedido  # noqa: F401
    import app.models.pedido_item  # noqa: F401
    import app.models.caixa  # noqa: F401
    import app.models.fornecedor  # noqa: F401
    import app.models.financeiro  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
