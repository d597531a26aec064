from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from app.routes import health
from app.routes import auth as auth_routes
from app.routes import users as users_routes
from app.routes import categorias as categorias_routes
from app.routes import products as products_routes
from app.routes import clients as clients_routes
from app.routes import fornecedores as fornecedores_routes
from app.routes import orders as orders_routes
from app.routes import rpc as rpc_routes
from app.routes import caixa as caixa_routes
from app.routes import financeiro as financeiro_routes
from app.routes import stats as stats_routes
from app.routes import realtime as realtime_routes
from app.db import session as db_session
from app.core.config import settings
import logging
import threading
from collections import defaultdict
import time

app = FastAPI(
    title="PDV Esfiharia - API",
    version="1.0.0",
    description="Backend do PDV: catálogo, pedidos, caixa, clientes, fornecedores e financeiro",
    # Avoid automatic 307 redirects between /path and /path/
    # We register both variants on root endpoints to accept either form.
    redirect_slashes=False,
)

# Configure logging level from env
logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))
# Use a dedicated app logger to avoid uvicorn.access formatter expectations
_req_logger = logging.getLogger("app.request")
_req_logger.setLevel(getattr(logging, settings.LOG_LEVEL, logging.INFO))

# In-memory request counters per route (method + path), guarded by a lock
_request_counts = defaultdict(int)
_req_lock = threading.Lock()
_global_request_count = 0


@app.middleware("http")
async def request_count_middleware(request: Request, call_next):
    route = request.scope.get("route")
    key_path = getattr(route, "path", None) or request.url.path
    key = f"{request.method} {key_path}"

    with _req_lock:
        _request_counts[key] += 1
        count_val = _request_counts[key]
        global _global_request_count
        _global_request_count += 1
        global_count_val = _global_request_count

    # Log every N hits to avoid spam
    if count_val % settings.REQUEST_LOG_EVERY_N == 0:
        _req_logger.info("Request count threshold reached: %s -> %s (global=%s)", key, count_val, global_count_val)

    # SQLAlchemy listener increments this during the request
    db_count_token = db_session.request_db_query_count.set([0])
    start = time.perf_counter()
    try:
        response = await call_next(request)
    finally:
        per_req_db_count = db_session.request_db_query_count.get()[0]
        db_session.request_db_query_count.reset(db_count_token)
    duration_ms = int((time.perf_counter() - start) * 1000)

    if settings.REQUEST_LOG_VERBOSE:
        prefixes = [p.strip() for p in (settings.REQUEST_LOG_INCLUDE_PREFIXES or "").split(",") if p.strip()]
        path_full = request.url.path
        if not prefixes or any(path_full.startswith(pref) for pref in prefixes):
            qs = request.url.query
            path_qs = f"{path_full}?{qs}" if qs else path_full
            _req_logger.info(
                "%s %s -> %s in %sms | route_count=%s global_count=%s",
                request.method, path_qs, response.status_code, duration_ms, count_val, global_count_val,
            )
            if isinstance(per_req_db_count, int):
                _req_logger.info("Foram %s requisições ao banco nesta requisição.", per_req_db_count)
            _req_logger.info(
                "Total global de requisições ao banco desde o início: %s.",
                db_session.get_global_db_queries_total(),
            )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(health.router)
app.include_router(auth_routes.router)
app.include_router(users_routes.router)
app.include_router(categorias_routes.router)
app.include_router(products_routes.router)
app.include_router(clients_routes.router)
app.include_router(fornecedores_routes.router)
app.include_router(orders_routes.router)
app.include_router(rpc_routes.router)
app.include_router(caixa_routes.router)
app.include_router(financeiro_routes.router)
app.include_router(stats_routes.router)
app.include_router(realtime_routes.router)


@app.on_event("startup")
def on_startup():
    # create database tables if they don't exist
    db_session.create_db()


@app.get("/")
def root():
    return {"status": "API rodando com sucesso 🚀"}
