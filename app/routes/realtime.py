import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool
from starlette.responses import StreamingResponse

from app.db.session import SessionLocal
from app.services import auth as auth_service
from app.utils.pubsub import subscribe, unsubscribe, parse_filter, get_status

router = APIRouter(prefix="/realtime", tags=["Realtime"])
logger = logging.getLogger(__name__)

FEEDS = {
    "auth",
    "categorias",
    "produtos",
    "clientes",
    "pedidos",
    "pedido_items",
    "caixas",
    "caixa_movimentacoes",
    "fornecedores",
    "despesas_fornecedor",
    "custos_fixos",
    "custos_variaveis",
    "lancamentos_financeiros",
    "metas_orcamento",
    "balanco_manual",
}

KEEPALIVE_SECONDS = 15


def _authorize(token: Optional[str]):
    if not token:
        return None
    db = SessionLocal()
    try:
        user = auth_service.user_from_token(token, db)
        if user is None:
            return None
        return {"email": user.email, "papel": auth_service.role_value(user)}
    finally:
        db.close()


def _resolve_feed(table: str, raw_filter: Optional[str], user: dict) -> dict:
    if table not in FEEDS:
        raise HTTPException(status_code=404, detail=f"Feed desconhecido: {table}")
    try:
        filtro = parse_filter(raw_filter)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if table == "auth" and user["papel"] != "admin":
        # session events are private to their owner
        filtro["user_email"] = user["email"]
    return filtro


async def _stop_task(task: asyncio.Task):
    """Cancel `task` and collect its outcome, including an earlier failure."""
    task.cancel()
    (outcome,) = await asyncio.gather(task, return_exceptions=True)
    if isinstance(outcome, Exception):
        logger.warning("Envio ao websocket falhou: %s", outcome)
    return outcome


async def event_generator(request: Request, sub):
    try:
        while True:
            if await request.is_disconnected():
                break
            try:
                event = await asyncio.wait_for(sub.queue.get(), timeout=KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            except asyncio.CancelledError:
                break
            yield f"event: {event['action']}\ndata: {json.dumps(event)}\n\n"
    finally:
        unsubscribe(sub)


@router.get("/status")
def status():
    return get_status()


@router.get("/{table}/stream")
async def stream(table: str, request: Request, filter: Optional[str] = None, token: Optional[str] = None,
                 bearer: Optional[str] = Depends(auth_service.optional_oauth2_scheme)):
    """Server-sent events for one table. EventSource cannot send headers, so `?token=` is accepted too."""
    user = await run_in_threadpool(_authorize, token or bearer)
    if user is None:
        raise HTTPException(status_code=401, detail="Could not validate credentials")
    filtro = _resolve_feed(table, filter, user)
    sub = subscribe(table, filtro)
    logger.info("SSE inscrito em %s %s", table, filtro)
    return StreamingResponse(event_generator(request, sub), media_type="text/event-stream")


@router.websocket("/{table}/ws")
async def websocket_endpoint(websocket: WebSocket, table: str):
    params = websocket.query_params
    user = await run_in_threadpool(_authorize, params.get("token"))
    if user is None:
        await websocket.close(code=1008)
        return
    try:
        filtro = _resolve_feed(table, params.get("filter"), user)
    except HTTPException as e:
        await websocket.close(code=1008, reason=str(e.detail))
        return

    sub = subscribe(table, filtro)
    await websocket.accept()
    await websocket.send_json({"type": "system", "action": "SUBSCRIBED", "record": {"table": table, "filter": filtro}})

    async def forward():
        while True:
            event = await sub.queue.get()
            await websocket.send_json(event)

    sender = asyncio.create_task(forward())
    try:
        # inbound messages are ignored; this only waits for the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe(sub)
        await _stop_task(sender)
