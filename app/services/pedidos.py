import logging
from decimal import Decimal, InvalidOperation
from typing import Optional, List

from fastapi import HTTPException
from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from app.core.timezone_utils import utcnow
from app.models.caixa import MovimentacaoCaixa
from app.models.client import Cliente
from app.models.pedido import Pedido, STATUS_PEDIDO, TIPOS_PEDIDO, FORMAS_PAGAMENTO
from app.models.pedido_item import PedidoItem
from app.models.product import Produto
from app.services import caixa as caixa_service
from app.services.caixa import CENTAVOS, to_money
from app.utils.pubsub import to_record

logger = logging.getLogger(__name__)

QUANTIDADE = Decimal("0.001")


def _to_qty(value) -> Decimal:
    try:
        q = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise HTTPException(status_code=400, detail="quantidade inválida")
    if not q.is_finite() or q <= 0:
        raise HTTPException(status_code=400, detail="quantidade deve ser maior que zero")
    return q.quantize(QUANTIDADE)


def _check_tipo(tipo: Optional[str]) -> str:
    t = (tipo or "balcao").strip().lower()
    if t not in TIPOS_PEDIDO:
        raise HTTPException(status_code=400, detail=f"Tipo de pedido inválido: {tipo}")
    return t


def _check_forma(forma: Optional[str], required: bool = False) -> Optional[str]:
    if not forma:
        if required:
            raise HTTPException(status_code=400, detail="Forma de pagamento obrigatória")
        return None
    f = forma.strip().lower()
    if f not in FORMAS_PAGAMENTO:
        raise HTTPException(status_code=400, detail=f"Forma de pagamento inválida: {forma}")
    return f


def get_pedido(db: Session, pedido_id: int) -> Pedido:
    pedido = db.query(Pedido).filter(Pedido.id == pedido_id).first()
    if not pedido:
        raise HTTPException(status_code=404, detail="Pedido não encontrado")
    return pedido


def _get_cliente(db: Session, cliente_id: int) -> Cliente:
    cliente = db.query(Cliente).filter(Cliente.id == cliente_id).first()
    if not cliente:
        raise HTTPException(status_code=404, detail="Cliente não encontrado")
    return cliente


def build_items(db: Session, items) -> List[PedidoItem]:
    """Turn request items into PedidoItem rows with server-side totals."""
    if not items:
        raise HTTPException(status_code=400, detail="O pedido deve ter pelo menos um item")
    rows = []
    for it in items:
        produto = None
        if it.produto_id is not None:
            produto = db.query(Produto).filter(Produto.id == it.produto_id).first()
            if not produto:
                raise HTTPException(status_code=404, detail=f"Produto {it.produto_id} não encontrado")
        if it.preco_unitario is not None:
            preco = to_money(it.preco_unitario, "preco_unitario")
        elif produto is not None:
            preco = to_money(produto.preco or 0, "preco_unitario")
        else:
            raise HTTPException(status_code=400, detail="Item sem produto precisa de preco_unitario")
        if preco < 0:
            raise HTTPException(status_code=400, detail="preco_unitario não pode ser negativo")
        qtd = _to_qty(it.quantidade)
        rows.append(PedidoItem(
            produto_id=it.produto_id,
            quantidade=qtd,
            preco_unitario=preco,
            total=(qtd * preco).quantize(CENTAVOS),
        ))
    return rows


def compute_total(items) -> Decimal:
    total = Decimal("0")
    for it in items:
        total += (Decimal(str(it.quantidade or 0)) * Decimal(str(it.preco_unitario or 0))).quantize(CENTAVOS)
    return total.quantize(CENTAVOS)


def numeros(db: Session, ids) -> dict:
    """Display numbers (1-based sequence by creation order) for the given order ids."""
    ids = list(ids)
    if not ids:
        return {}
    rn = func.row_number().over(order_by=(Pedido.criado_em.asc(), Pedido.id.asc())).label("numero")
    sub = db.query(Pedido.id.label("id"), rn).subquery()
    rows = db.query(sub.c.id, sub.c.numero).filter(sub.c.id.in_(ids)).all()
    return {r[0]: int(r[1]) for r in rows}


def serialize_item(it: PedidoItem) -> dict:
    return {
        "id": it.id,
        "produto_id": it.produto_id,
        "produto_nome": it.produto.nome if it.produto is not None else None,
        "quantidade": float(it.quantidade or 0),
        "preco_unitario": float(it.preco_unitario or 0),
        "total": float((Decimal(str(it.quantidade or 0)) * Decimal(str(it.preco_unitario or 0))).quantize(CENTAVOS)),
    }


def serialize(pedido: Pedido, numero: Optional[int] = None) -> dict:
    # the read model always recomputes the total from the line items
    total = compute_total(pedido.items) if pedido.items else to_money(pedido.total or 0)
    return {
        "id": pedido.id,
        "numero": numero,
        "cliente_id": pedido.cliente_id,
        "cliente_nome": pedido.cliente_nome or (pedido.cliente.nome if pedido.cliente is not None else None),
        "cliente_telefone": pedido.cliente_telefone,
        "tipo": pedido.tipo,
        "mesa": pedido.mesa,
        "status": pedido.status,
        "forma_pagamento": pedido.forma_pagamento,
        "observacao": pedido.observacao,
        "total": float(total),
        "usuario_id": pedido.usuario_id,
        "items": [serialize_item(it) for it in pedido.items],
        "criado_em": pedido.criado_em,
        "atualizado_em": pedido.atualizado_em,
        "pago_em": pedido.pago_em,
    }


def serialize_many(db: Session, pedidos) -> List[dict]:
    nums = numeros(db, [p.id for p in pedidos])
    return [serialize(p, nums.get(p.id)) for p in pedidos]


def obter(db: Session, pedido_id: int) -> dict:
    pedido = get_pedido(db, pedido_id)
    return serialize(pedido, numeros(db, [pedido.id]).get(pedido.id))


def listar(db: Session, status: Optional[str] = None, search: Optional[str] = None,
           cliente_id: Optional[int] = None, limit: int = 200) -> List[dict]:
    q = db.query(Pedido)
    if status:
        wanted = [s.strip() for s in status.split(",") if s.strip()]
        q = q.filter(Pedido.status.in_(wanted))
    if cliente_id is not None:
        q = q.filter(Pedido.cliente_id == cliente_id)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Pedido.cliente_nome.ilike(like), Pedido.cliente_telefone.ilike(like), Pedido.mesa.ilike(like)))
    rows = q.order_by(Pedido.criado_em.desc(), Pedido.id.desc()).limit(limit).all()
    return serialize_many(db, rows)


def criar(db: Session, payload, usuario_id: Optional[int] = None) -> Pedido:
    tipo = _check_tipo(payload.tipo)
    forma = _check_forma(payload.forma_pagamento)
    items = build_items(db, payload.items)
    cliente_nome = payload.cliente_nome
    cliente_telefone = payload.cliente_telefone
    if payload.cliente_id is not None:
        cliente = _get_cliente(db, payload.cliente_id)
        cliente_nome = cliente_nome or cliente.nome
        cliente_telefone = cliente_telefone or cliente.telefone

    pedido = Pedido(
        cliente_id=payload.cliente_id,
        cliente_nome=cliente_nome,
        cliente_telefone=cliente_telefone,
        tipo=tipo,
        mesa=payload.mesa,
        status="aberto",
        forma_pagamento=forma,
        observacao=payload.observacao,
        usuario_id=usuario_id,
        criado_em=utcnow(),
    )
    pedido.items = items
    pedido.total = compute_total(items)
    db.add(pedido)
    db.commit()
    db.refresh(pedido)
    logger.info("Pedido %s criado com %s itens, total %s", pedido.id, len(items), pedido.total)
    return pedido


def atualizar(db: Session, pedido_id: int, payload) -> dict:
    """Apply a partial update. Returns the order and snapshots of any replaced items."""
    pedido = get_pedido(db, pedido_id)
    if pedido.status == "pago":
        raise HTTPException(status_code=409, detail="Pedido já pago não pode ser alterado")
    data = payload.model_dump(exclude_unset=True)
    if "tipo" in data:
        data["tipo"] = _check_tipo(data["tipo"])
    if "forma_pagamento" in data:
        data["forma_pagamento"] = _check_forma(data["forma_pagamento"])
    if data.get("cliente_id") is not None:
        _get_cliente(db, data["cliente_id"])
    items = None
    removidos = []
    if data.pop("items", None) is not None:
        items = build_items(db, payload.items)
        removidos = [to_record(it) for it in pedido.items]
    for field, value in data.items():
        setattr(pedido, field, value)
    if items is not None:
        # delete-orphan removes the previous rows in the same flush
        pedido.items = items
        pedido.total = compute_total(items)
    pedido.atualizado_em = utcnow()
    db.add(pedido)
    db.commit()
    db.refresh(pedido)
    return {"pedido": pedido, "items_removidos": removidos}


def atualizar_status(db: Session, pedido_id: int, status: str) -> Pedido:
    novo = (status or "").strip().lower()
    if novo not in STATUS_PEDIDO:
        raise HTTPException(status_code=400, detail=f"Status inválido: {status}")
    if novo == "pago":
        raise HTTPException(status_code=400, detail="Use o pagamento do pedido para marcá-lo como pago")
    pedido = get_pedido(db, pedido_id)
    if pedido.status == "pago":
        raise HTTPException(status_code=409, detail="Pedido já pago não pode mudar de status")
    pedido.status = novo
    pedido.atualizado_em = utcnow()
    db.add(pedido)
    db.commit()
    db.refresh(pedido)
    logger.info("Pedido %s agora está %s", pedido.id, novo)
    return pedido


def excluir(db: Session, pedido_id: int) -> dict:
    """Remove an order and its items in one transaction.

    Cash movements that reference the order keep their history with pedido_id
    cleared. A fiado-paid order gives its total back from the customer's
    balance, never below zero. Returns snapshots of the removed and touched
    rows for change notifications.
    """
    pedido = get_pedido(db, pedido_id)
    snapshot = to_record(pedido)
    itens = [to_record(it) for it in pedido.items]
    movimentacoes = [
        to_record(m)
        for m in db.query(MovimentacaoCaixa).filter(MovimentacaoCaixa.pedido_id == pedido_id).all()
    ]
    estorno_cliente = None
    if pedido.status == "pago" and pedido.forma_pagamento == "fiado" and pedido.cliente_id is not None:
        estorno_cliente = pedido.cliente_id
    total = pedido.total or Decimal("0")
    try:
        db.query(MovimentacaoCaixa).filter(MovimentacaoCaixa.pedido_id == pedido_id).update(
            {MovimentacaoCaixa.pedido_id: None}, synchronize_session=False
        )
        if estorno_cliente is not None:
            saldo = func.coalesce(Cliente.saldo_fiado, 0)
            db.query(Cliente).filter(Cliente.id == estorno_cliente).update(
                {Cliente.saldo_fiado: case((saldo > total, saldo - total), else_=0)},
                synchronize_session=False,
            )
        db.query(PedidoItem).filter(PedidoItem.pedido_id == pedido_id).delete(synchronize_session=False)
        db.query(Pedido).filter(Pedido.id == pedido_id).delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    for m in movimentacoes:
        m["pedido_id"] = None
    logger.info("Pedido %s excluído com %s itens", pedido_id, len(itens))
    return {
        "pedido": snapshot,
        "items": itens,
        "movimentacoes": movimentacoes,
        "cliente_id": estorno_cliente,
    }


def finalizar_pagamento(db: Session, pedido_id: int, forma_pagamento: str,
                        valor_recebido=None, usuario_id: Optional[int] = None) -> dict:
    """Mark an order paid and book its revenue, at most once.

    fiado adds the total to the customer's balance; every other method needs an
    open register and records one 'entrada' for the order. The status flip is
    a conditional UPDATE (status != 'pago') committed together with the
    movement, so a retried payment never books revenue twice.
    """
    forma = _check_forma(forma_pagamento, required=True)
    pedido = get_pedido(db, pedido_id)
    if pedido.status == "pago":
        return {"pedido": pedido, "already_paid": True, "troco": Decimal("0"), "movimentacao": None}
    if pedido.status == "cancelado":
        raise HTTPException(status_code=409, detail="Pedido cancelado não pode ser pago")

    total = compute_total(pedido.items)
    troco = Decimal("0")
    caixa = None
    if forma == "fiado":
        if pedido.cliente_id is None:
            raise HTTPException(status_code=400, detail="Pagamento fiado exige um cliente cadastrado")
        _get_cliente(db, pedido.cliente_id)
    else:
        caixa = caixa_service.require_open(db)
        if forma == "dinheiro" and valor_recebido is not None:
            recebido = to_money(valor_recebido, "valor_recebido")
            if recebido < total:
                raise HTTPException(status_code=400, detail="Valor recebido menor que o total do pedido")
            troco = recebido - total

    agora = utcnow()
    updated = (
        db.query(Pedido)
        .filter(Pedido.id == pedido_id, Pedido.status != "pago")
        .update(
            {Pedido.status: "pago", Pedido.forma_pagamento: forma, Pedido.pago_em: agora,
             Pedido.total: total, Pedido.atualizado_em: agora},
            synchronize_session=False,
        )
    )
    if updated == 0:
        # lost the race against a concurrent payment
        db.rollback()
        db.refresh(pedido)
        return {"pedido": pedido, "already_paid": True, "troco": Decimal("0"), "movimentacao": None}

    mov = None
    try:
        if forma == "fiado":
            db.query(Cliente).filter(Cliente.id == pedido.cliente_id).update(
                {Cliente.saldo_fiado: func.coalesce(Cliente.saldo_fiado, 0) + total},
                synchronize_session=False,
            )
        elif total > 0:
            mov = caixa_service.registrar_movimentacao(
                db, "entrada", total,
                observacao=f"Pedido #{pedido_id}",
                categoria="venda",
                caixa_id=caixa.id,
                usuario_id=usuario_id,
                pedido_id=pedido_id,
                commit=False,
            )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(pedido)
    if mov is not None:
        db.refresh(mov)
    logger.info("Pedido %s pago via %s, total %s", pedido_id, forma, total)
    return {"pedido": pedido, "already_paid": False, "troco": troco, "movimentacao": mov}


def listar_fiado(db: Session, cliente_id: int) -> dict:
    cliente = _get_cliente(db, cliente_id)
    rows = (
        db.query(Pedido)
        .filter(Pedido.cliente_id == cliente_id, Pedido.forma_pagamento == "fiado")
        .order_by(Pedido.criado_em.desc(), Pedido.id.desc())
        .all()
    )
    pedidos = serialize_many(db, rows)
    return {
        "cliente_id": cliente.id,
        "saldo_fiado": float(cliente.saldo_fiado or 0),
        "total_pedidos": float(sum(Decimal(str(p["total"])) for p in pedidos)),
        "pedidos": pedidos,
    }


def quitar_fiado(db: Session, cliente_id: int, valor, forma_pagamento: str = "dinheiro",
                 observacao: Optional[str] = None, usuario_id: Optional[int] = None) -> dict:
    """Settle part or all of a customer's fiado balance into the open register."""
    forma = _check_forma(forma_pagamento, required=True)
    if forma == "fiado":
        raise HTTPException(status_code=400, detail="Fiado não pode ser quitado com fiado")
    cliente = _get_cliente(db, cliente_id)
    valor = to_money(valor)
    if valor <= 0:
        raise HTTPException(status_code=400, detail="valor deve ser maior que zero")
    if valor > to_money(cliente.saldo_fiado or 0):
        raise HTTPException(status_code=400, detail="valor maior que o saldo fiado do cliente")
    caixa = caixa_service.require_open(db)

    try:
        mov = caixa_service.registrar_movimentacao(
            db, "entrada", valor,
            observacao=observacao or f"Quitação fiado - {cliente.nome} ({forma})",
            categoria="fiado",
            caixa_id=caixa.id,
            usuario_id=usuario_id,
            commit=False,
        )
        updated = (
            db.query(Cliente)
            .filter(Cliente.id == cliente_id, Cliente.saldo_fiado >= valor)
            .update({Cliente.saldo_fiado: Cliente.saldo_fiado - valor}, synchronize_session=False)
        )
        if updated == 0:
            raise HTTPException(status_code=409, detail="Saldo fiado alterado por outra operação")
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(cliente)
    db.refresh(mov)
    logger.info("Cliente %s quitou %s de fiado", cliente_id, valor)
    return {"cliente": cliente, "movimentacao": mov}
