from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional

from app.db.session import get_db
from app.models.client import Cliente as ClienteModel
from app.models.pedido import Pedido as PedidoModel
from app.schemas.client import ClienteCreate, ClienteRead, FiadoResumo, FiadoQuitar
from app.services import pedidos as pedidos_service
from app.services.auth import get_current_user
from app.utils.pubsub import publish, to_record

router = APIRouter(prefix="/clients", tags=["Clients"])


def _get_or_404(db: Session, client_id: int) -> ClienteModel:
    client = db.query(ClienteModel).filter(ClienteModel.id == client_id).first()
    if not client:
        raise HTTPException(status_code=404, detail="Cliente não encontrado")
    return client


@router.post("", response_model=ClienteRead)
@router.post("/", response_model=ClienteRead)
def create_client(payload: ClienteCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        client = ClienteModel(
            nome=payload.nome,
            telefone=payload.telefone,
            email=payload.email,
            endereco=payload.endereco,
            observacoes=payload.observacoes,
            saldo_fiado=0,
        )
        db.add(client)
        db.commit()
        db.refresh(client)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("clientes", "INSERT", client)
    return client


@router.get("", response_model=List[ClienteRead])
@router.get("/", response_model=List[ClienteRead])
def list_clients(search: Optional[str] = None, limit: int = 200, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        q = db.query(ClienteModel)
        if search:
            like = f"%{search}%"
            q = q.filter(or_(ClienteModel.nome.ilike(like), ClienteModel.telefone.ilike(like), ClienteModel.email.ilike(like)))
        return q.order_by(ClienteModel.criado_em.desc(), ClienteModel.id.desc()).limit(limit).all()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{client_id}", response_model=ClienteRead)
def get_client(client_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return _get_or_404(db, client_id)


@router.put("/{client_id}", response_model=ClienteRead)
def update_client(client_id: int, payload: ClienteCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    client = _get_or_404(db, client_id)
    try:
        client.nome = payload.nome
        client.telefone = payload.telefone
        client.email = payload.email
        client.endereco = payload.endereco
        client.observacoes = payload.observacoes
        db.add(client)
        db.commit()
        db.refresh(client)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("clientes", "UPDATE", client)
    return client


@router.delete("/{client_id}")
def delete_client(client_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    client = _get_or_404(db, client_id)
    record = to_record(client)
    pedidos_ids = [pid for (pid,) in db.query(PedidoModel.id).filter(PedidoModel.cliente_id == client_id).all()]
    try:
        # past orders stay, detached from the customer
        db.query(PedidoModel).filter(PedidoModel.cliente_id == client_id).update(
            {PedidoModel.cliente_id: None}, synchronize_session=False
        )
        db.delete(client)
        db.commit()
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    for pid in pedidos_ids:
        publish("pedidos", "UPDATE", {"id": pid, "cliente_id": None})
    publish("clientes", "DELETE", record)
    return {"detail": "Cliente removido com sucesso"}


@router.get("/{client_id}/fiado", response_model=FiadoResumo)
def get_fiado(client_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        return pedidos_service.listar_fiado(db, client_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{client_id}/fiado/quitar")
def quitar_fiado(client_id: int, payload: FiadoQuitar, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        result = pedidos_service.quitar_fiado(
            db, client_id, payload.valor,
            forma_pagamento=payload.forma_pagamento,
            observacao=payload.observacao,
            usuario_id=current_user.id,
        )
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    cliente = result["cliente"]
    mov = result["movimentacao"]
    publish("caixa_movimentacoes", "INSERT", mov)
    publish("clientes", "UPDATE", cliente)
    return {
        "cliente": ClienteRead.model_validate(cliente),
        "movimentacao_id": mov.id,
        "saldo_fiado": float(cliente.saldo_fiado or 0),
    }
