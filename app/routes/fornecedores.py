from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.timezone_utils import today_in_brazil
from app.db.session import get_db
from app.models.fornecedor import Fornecedor as FornecedorModel, DespesaFornecedor as DespesaModel
from app.schemas.fornecedor import (
    FornecedorCreate,
    FornecedorRead,
    DespesaFornecedorCreate,
    DespesaFornecedorUpdate,
    DespesaFornecedorRead,
)
from app.services.auth import get_current_user
from app.utils.pubsub import publish, to_record

router = APIRouter(prefix="/fornecedores", tags=["Fornecedores"])

STATUS_DESPESA = ("pendente", "pago")


def _get_fornecedor(db: Session, fornecedor_id: int) -> FornecedorModel:
    forn = db.query(FornecedorModel).filter(FornecedorModel.id == fornecedor_id).first()
    if not forn:
        raise HTTPException(status_code=404, detail="Fornecedor não encontrado")
    return forn


def _get_despesa(db: Session, despesa_id: int) -> DespesaModel:
    desp = db.query(DespesaModel).filter(DespesaModel.id == despesa_id).first()
    if not desp:
        raise HTTPException(status_code=404, detail="Despesa não encontrada")
    return desp


def _check_status(status: str) -> str:
    st = (status or "").strip().lower()
    if st not in STATUS_DESPESA:
        raise HTTPException(status_code=400, detail=f"Status inválido: {status}")
    return st


def _despesa_out(desp: DespesaModel) -> dict:
    out = DespesaFornecedorRead.model_validate(desp).model_dump()
    out["fornecedor_nome"] = desp.fornecedor.nome if desp.fornecedor is not None else None
    return out


# --- Despesas de fornecedor (registered before /{fornecedor_id} so the paths don't collide) ---

@router.get("/despesas", response_model=List[DespesaFornecedorRead])
def list_despesas(fornecedor_id: Optional[int] = None, status: Optional[str] = None,
                  db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        q = db.query(DespesaModel)
        if fornecedor_id is not None:
            q = q.filter(DespesaModel.fornecedor_id == fornecedor_id)
        if status:
            q = q.filter(DespesaModel.status == status)
        rows = q.order_by(DespesaModel.data_emissao.desc(), DespesaModel.id.desc()).limit(500).all()
        return [_despesa_out(d) for d in rows]
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/despesas", response_model=DespesaFornecedorRead)
def create_despesa(payload: DespesaFornecedorCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    _get_fornecedor(db, payload.fornecedor_id)
    status = _check_status(payload.status)
    try:
        desp = DespesaModel(
            fornecedor_id=payload.fornecedor_id,
            usuario_id=current_user.id,
            descricao=payload.descricao,
            valor=payload.valor,
            data_emissao=payload.data_emissao,
            data_vencimento=payload.data_vencimento,
            data_pagamento=today_in_brazil() if status == "pago" else None,
            status=status,
        )
        db.add(desp)
        db.commit()
        db.refresh(desp)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("despesas_fornecedor", "INSERT", desp)
    return _despesa_out(desp)


@router.put("/despesas/{despesa_id}", response_model=DespesaFornecedorRead)
def update_despesa(despesa_id: int, payload: DespesaFornecedorUpdate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    desp = _get_despesa(db, despesa_id)
    data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if "status" in data:
        data["status"] = _check_status(data["status"])
        if data["status"] == "pago" and desp.data_pagamento is None:
            data["data_pagamento"] = today_in_brazil()
        elif data["status"] == "pendente":
            data["data_pagamento"] = None
    try:
        for field, value in data.items():
            setattr(desp, field, value)
        db.add(desp)
        db.commit()
        db.refresh(desp)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("despesas_fornecedor", "UPDATE", desp)
    return _despesa_out(desp)


@router.post("/despesas/{despesa_id}/pagar", response_model=DespesaFornecedorRead)
def pagar_despesa(despesa_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    desp = _get_despesa(db, despesa_id)
    if desp.status == "pago":
        return _despesa_out(desp)
    try:
        desp.status = "pago"
        desp.data_pagamento = today_in_brazil()
        db.add(desp)
        db.commit()
        db.refresh(desp)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("despesas_fornecedor", "UPDATE", desp)
    return _despesa_out(desp)


@router.delete("/despesas/{despesa_id}")
def delete_despesa(despesa_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    desp = _get_despesa(db, despesa_id)
    record = to_record(desp)
    try:
        db.delete(desp)
        db.commit()
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("despesas_fornecedor", "DELETE", record)
    return {"detail": "Despesa removida com sucesso"}


# --- Fornecedores ---

@router.get("", response_model=List[FornecedorRead])
@router.get("/", response_model=List[FornecedorRead])
def list_fornecedores(search: Optional[str] = None, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        q = db.query(FornecedorModel)
        if search:
            like = f"%{search}%"
            q = q.filter(or_(
                FornecedorModel.nome.ilike(like),
                FornecedorModel.nome_fantasia.ilike(like),
                FornecedorModel.cnpj.ilike(like),
            ))
        return q.order_by(FornecedorModel.nome.asc()).limit(500).all()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("", response_model=FornecedorRead)
@router.post("/", response_model=FornecedorRead)
def create_fornecedor(payload: FornecedorCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        forn = FornecedorModel(**payload.model_dump(), usuario_id=current_user.id)
        db.add(forn)
        db.commit()
        db.refresh(forn)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("fornecedores", "INSERT", forn)
    return forn


@router.get("/{fornecedor_id}", response_model=FornecedorRead)
def get_fornecedor(fornecedor_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return _get_fornecedor(db, fornecedor_id)


@router.put("/{fornecedor_id}", response_model=FornecedorRead)
def update_fornecedor(fornecedor_id: int, payload: FornecedorCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    forn = _get_fornecedor(db, fornecedor_id)
    try:
        for field, value in payload.model_dump().items():
            setattr(forn, field, value)
        db.add(forn)
        db.commit()
        db.refresh(forn)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("fornecedores", "UPDATE", forn)
    return forn


@router.delete("/{fornecedor_id}")
def delete_fornecedor(fornecedor_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    forn = _get_fornecedor(db, fornecedor_id)
    record = to_record(forn)
    try:
        db.query(DespesaModel).filter(DespesaModel.fornecedor_id == fornecedor_id).delete(synchronize_session=False)
        db.delete(forn)
        db.commit()
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("fornecedores", "DELETE", record)
    return {"detail": "Fornecedor removido com sucesso"}
