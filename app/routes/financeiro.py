from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.timezone_utils import utcnow
from app.db.session import get_db
from app.models.financeiro import CustoFixo, CustoVariavel, LancamentoFinanceiro
from app.models.fornecedor import Fornecedor
from app.schemas.financeiro import (
    CustoFixoCreate,
    CustoFixoRead,
    CustoVariavelCreate,
    CustoVariavelRead,
    LancamentoCreate,
    LancamentoRead,
    MetaOrcamentoUpdate,
    MetaOrcamentoRead,
    BalancoManualUpdate,
    BalancoManualRead,
)
from app.services import financeiro as financeiro_service
from app.services.auth import get_current_user, require_roles
from app.utils.pubsub import publish, to_record

router = APIRouter(prefix="/financeiro", tags=["Financeiro"])

TIPOS_LANCAMENTO = ("pagar", "receber")


def _get_or_404(db: Session, model, row_id: int, detail: str):
    row = db.query(model).filter(model.id == row_id).first()
    if not row:
        raise HTTPException(status_code=404, detail=detail)
    return row


def _save(db: Session, row, table: str, action: str):
    try:
        db.add(row)
        db.commit()
        db.refresh(row)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish(table, action, row)
    return row


def _remove(db: Session, row, table: str):
    record = to_record(row)
    try:
        db.delete(row)
        db.commit()
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish(table, "DELETE", record)


# --- Custos fixos ---

@router.get("/custos-fixos", response_model=List[CustoFixoRead])
def list_custos_fixos(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        return db.query(CustoFixo).order_by(CustoFixo.nome.asc()).all()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/custos-fixos", response_model=CustoFixoRead)
def create_custo_fixo(payload: CustoFixoCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return _save(db, CustoFixo(**payload.model_dump()), "custos_fixos", "INSERT")


@router.put("/custos-fixos/{custo_id}", response_model=CustoFixoRead)
def update_custo_fixo(custo_id: int, payload: CustoFixoCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    row = _get_or_404(db, CustoFixo, custo_id, "Custo fixo não encontrado")
    for field, value in payload.model_dump().items():
        setattr(row, field, value)
    return _save(db, row, "custos_fixos", "UPDATE")


@router.delete("/custos-fixos/{custo_id}")
def delete_custo_fixo(custo_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    _remove(db, _get_or_404(db, CustoFixo, custo_id, "Custo fixo não encontrado"), "custos_fixos")
    return {"detail": "Custo fixo removido com sucesso"}


# --- Custos variáveis ---

@router.get("/custos-variaveis", response_model=List[CustoVariavelRead])
def list_custos_variaveis(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        return db.query(CustoVariavel).order_by(CustoVariavel.data.desc(), CustoVariavel.id.desc()).limit(500).all()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/custos-variaveis", response_model=CustoVariavelRead)
def create_custo_variavel(payload: CustoVariavelCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return _save(db, CustoVariavel(**payload.model_dump()), "custos_variaveis", "INSERT")


@router.put("/custos-variaveis/{custo_id}", response_model=CustoVariavelRead)
def update_custo_variavel(custo_id: int, payload: CustoVariavelCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    row = _get_or_404(db, CustoVariavel, custo_id, "Custo variável não encontrado")
    for field, value in payload.model_dump().items():
        setattr(row, field, value)
    return _save(db, row, "custos_variaveis", "UPDATE")


@router.delete("/custos-variaveis/{custo_id}")
def delete_custo_variavel(custo_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    _remove(db, _get_or_404(db, CustoVariavel, custo_id, "Custo variável não encontrado"), "custos_variaveis")
    return {"detail": "Custo variável removido com sucesso"}


# --- Lançamentos (contas a pagar / receber) ---

def _check_lancamento(db: Session, payload: LancamentoCreate):
    if payload.tipo not in TIPOS_LANCAMENTO:
        raise HTTPException(status_code=400, detail=f"Tipo de lançamento inválido: {payload.tipo}")
    if payload.fornecedor_id is not None:
        _get_or_404(db, Fornecedor, payload.fornecedor_id, "Fornecedor não encontrado")


@router.get("/lancamentos", response_model=List[LancamentoRead])
def list_lancamentos(tipo: Optional[str] = None, pago: Optional[bool] = None,
                     db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        q = db.query(LancamentoFinanceiro)
        if tipo:
            q = q.filter(LancamentoFinanceiro.tipo == tipo)
        if pago is not None:
            q = q.filter(LancamentoFinanceiro.pago.is_(pago))
        return q.order_by(LancamentoFinanceiro.data_vencimento.asc(), LancamentoFinanceiro.id.asc()).limit(500).all()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/lancamentos", response_model=LancamentoRead)
def create_lancamento(payload: LancamentoCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    _check_lancamento(db, payload)
    return _save(db, LancamentoFinanceiro(**payload.model_dump(), pago=False), "lancamentos_financeiros", "INSERT")


@router.put("/lancamentos/{lancamento_id}", response_model=LancamentoRead)
def update_lancamento(lancamento_id: int, payload: LancamentoCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    row = _get_or_404(db, LancamentoFinanceiro, lancamento_id, "Lançamento não encontrado")
    _check_lancamento(db, payload)
    for field, value in payload.model_dump().items():
        setattr(row, field, value)
    return _save(db, row, "lancamentos_financeiros", "UPDATE")


@router.post("/lancamentos/{lancamento_id}/pagar", response_model=LancamentoRead)
def pagar_lancamento(lancamento_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    row = _get_or_404(db, LancamentoFinanceiro, lancamento_id, "Lançamento não encontrado")
    if row.pago:
        return row
    row.pago = True
    row.pago_em = utcnow()
    return _save(db, row, "lancamentos_financeiros", "UPDATE")


@router.delete("/lancamentos/{lancamento_id}")
def delete_lancamento(lancamento_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    _remove(db, _get_or_404(db, LancamentoFinanceiro, lancamento_id, "Lançamento não encontrado"), "lancamentos_financeiros")
    return {"detail": "Lançamento removido com sucesso"}


# --- Metas e balanço manual (linhas únicas) ---

@router.get("/metas", response_model=MetaOrcamentoRead)
def get_metas(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        return financeiro_service.get_metas(db)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/metas", response_model=MetaOrcamentoRead)
def update_metas(payload: MetaOrcamentoUpdate, db: Session = Depends(get_db),
                 current_user=Depends(require_roles("admin", "gerente"))):
    try:
        metas = financeiro_service.update_metas(db, payload.model_dump(exclude_unset=True))
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("metas_orcamento", "UPDATE", metas)
    return metas


@router.get("/balanco-manual", response_model=BalancoManualRead)
def get_balanco_manual(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        return financeiro_service.get_balanco_manual(db)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/balanco-manual", response_model=BalancoManualRead)
def update_balanco_manual(payload: BalancoManualUpdate, db: Session = Depends(get_db),
                          current_user=Depends(require_roles("admin", "gerente"))):
    try:
        row = financeiro_service.update_balanco_manual(db, payload.model_dump(exclude_unset=True))
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("balanco_manual", "UPDATE", row)
    return row


# --- Relatórios ---

@router.get("/analise-diaria")
def analise_diaria(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        return financeiro_service.analise_diaria(db)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/dre")
def dre(dias: int = 30, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    if dias <= 0:
        raise HTTPException(status_code=400, detail="dias deve ser maior que zero")
    try:
        return financeiro_service.dre(db, dias=dias)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/balanco")
def balanco(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        return financeiro_service.balanco(db)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/orcamento")
def orcamento(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        return financeiro_service.orcamento(db)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
