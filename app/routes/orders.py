import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional

from app.db.session import get_db
from app.schemas.pedido import (
    PedidoCreate,
    PedidoUpdate,
    PedidoRead,
    PedidoStatusUpdate,
    PagamentoIn,
    PagamentoResult,
)
from app.services import pedidos as pedidos_service
from app.services.auth import get_current_user
from app.utils.pubsub import publish

router = APIRouter(prefix="/orders", tags=["Orders"])
logger = logging.getLogger(__name__)


def publish_order(action: str, pedido, items_action: Optional[str] = None):
    publish("pedidos", action, pedido)
    if items_action:
        # replaced items are new rows
        for it in pedido.items:
            publish("pedido_items", items_action, it)


def delete_order_and_notify(db: Session, order_id: int) -> dict:
    """Run the atomic delete and announce the removed rows."""
    try:
        removed = pedidos_service.excluir(db, order_id)
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Failed to delete order: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    for mov in removed["movimentacoes"]:
        publish("caixa_movimentacoes", "UPDATE", mov)
    if removed["cliente_id"] is not None:
        publish("clientes", "UPDATE", {"id": removed["cliente_id"]})
    for it in removed["items"]:
        publish("pedido_items", "DELETE", it)
    publish("pedidos", "DELETE", removed["pedido"])
    return removed


@router.post("", response_model=PedidoRead)
@router.post("/", response_model=PedidoRead)
def create_order(payload: PedidoCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        pedido = pedidos_service.criar(db, payload, usuario_id=current_user.id)
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Failed to create order: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    publish_order("INSERT", pedido, items_action="INSERT")
    return pedidos_service.obter(db, pedido.id)


@router.get("", response_model=List[PedidoRead])
@router.get("/", response_model=List[PedidoRead])
def list_orders(status: Optional[str] = None, search: Optional[str] = None, cliente_id: Optional[int] = None,
                limit: int = 200, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """Newest first. `status` accepts a comma separated list."""
    try:
        return pedidos_service.listar(db, status=status, search=search, cliente_id=cliente_id, limit=limit)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{order_id}", response_model=PedidoRead)
def get_order(order_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return pedidos_service.obter(db, order_id)


@router.put("/{order_id}", response_model=PedidoRead)
def update_order(order_id: int, payload: PedidoUpdate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        result = pedidos_service.atualizar(db, order_id, payload)
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    pedido = result["pedido"]
    for it in result["items_removidos"]:
        publish("pedido_items", "DELETE", it)
    publish_order("UPDATE", pedido, items_action="INSERT" if payload.items is not None else None)
    return pedidos_service.obter(db, pedido.id)


@router.patch("/{order_id}/status", response_model=PedidoRead)
def update_order_status(order_id: int, payload: PedidoStatusUpdate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        pedido = pedidos_service.atualizar_status(db, order_id, payload.status)
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish_order("UPDATE", pedido)
    return pedidos_service.obter(db, pedido.id)


@router.post("/{order_id}/pagar", response_model=PagamentoResult)
def pay_order(order_id: int, payload: PagamentoIn, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """Finalize payment. Paying an already paid order is a no-op that reports already_paid."""
    try:
        result = pedidos_service.finalizar_pagamento(
            db, order_id, payload.forma_pagamento,
            valor_recebido=payload.valor_recebido,
            usuario_id=current_user.id,
        )
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.exception("Failed to pay order: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    pedido = result["pedido"]
    mov = result["movimentacao"]
    if not result["already_paid"]:
        publish_order("UPDATE", pedido)
        if mov is not None:
            publish("caixa_movimentacoes", "INSERT", mov)
        elif pedido.cliente_id is not None:
            publish("clientes", "UPDATE", {"id": pedido.cliente_id})
    return {
        "pedido": pedidos_service.obter(db, pedido.id),
        "already_paid": result["already_paid"],
        "troco": float(result["troco"]),
        "movimentacao_id": mov.id if mov is not None else None,
    }


@router.delete("/{order_id}")
def delete_order(order_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    delete_order_and_notify(db, order_id)
    return {"detail": "Pedido removido com sucesso"}
