from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.timezone_utils import local_day_range_to_utc
from app.db.session import get_db
from app.models.caixa import MovimentacaoCaixa
from app.schemas.caixa import (
    CaixaAbrir,
    CaixaFechar,
    CaixaRead,
    CaixaDetalhe,
    CaixaResumo,
    MovimentacaoCreate,
    MovimentacaoRead,
)
from app.services import caixa as caixa_service
from app.services.auth import get_current_user
from app.utils.pubsub import publish

router = APIRouter(prefix="/caixa", tags=["Caixa"])


@router.get("/atual", response_model=Optional[CaixaRead])
def caixa_atual(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """The open register, or null."""
    try:
        return caixa_service.get_current(db)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/abrir", response_model=CaixaRead)
def abrir_caixa(payload: CaixaAbrir, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        caixa = caixa_service.abrir(db, payload.valor_inicial, usuario_id=current_user.id)
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("caixas", "INSERT", caixa)
    return caixa


@router.post("/fechar", response_model=CaixaRead)
def fechar_caixa(payload: CaixaFechar, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        caixa = caixa_service.fechar(db, caixa_id=payload.caixa_id, valor_contado=payload.valor_contado)
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("caixas", "UPDATE", caixa)
    return caixa


@router.get("/historico", response_model=List[CaixaRead])
def historico(limit: int = 50, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        return caixa_service.historico(db, limit=limit)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/resumo", response_model=Optional[CaixaResumo])
def resumo_atual(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    caixa = caixa_service.get_current(db)
    if caixa is None:
        return None
    return caixa_service.resumo(db, caixa.id)


@router.get("/movimentacoes", response_model=List[MovimentacaoRead])
def list_movimentacoes(caixa_id: Optional[int] = None, data: Optional[str] = None,
                       db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """Movements of a register (the open one by default), or of a local day when `data` is given."""
    try:
        if data:
            start, end = local_day_range_to_utc(data)
            if start is None:
                raise HTTPException(status_code=400, detail="data inválida, use YYYY-MM-DD")
            # by date only; the owning register is not checked
            return (
                db.query(MovimentacaoCaixa)
                .filter(MovimentacaoCaixa.criado_em >= start, MovimentacaoCaixa.criado_em <= end)
                .order_by(MovimentacaoCaixa.criado_em.desc(), MovimentacaoCaixa.id.desc())
                .all()
            )
        if caixa_id is None:
            atual = caixa_service.get_current(db)
            if atual is None:
                return []
            caixa_id = atual.id
        return caixa_service.listar_movimentacoes(db, caixa_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/movimentacoes", response_model=MovimentacaoRead)
def create_movimentacao(payload: MovimentacaoCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        mov = caixa_service.registrar_movimentacao(
            db,
            payload.tipo,
            payload.valor,
            observacao=payload.observacao,
            categoria=payload.categoria,
            caixa_id=payload.caixa_id,
            usuario_id=current_user.id,
        )
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("caixa_movimentacoes", "INSERT", mov)
    return mov


@router.delete("/movimentacoes/{movimentacao_id}")
def delete_movimentacao(movimentacao_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        record = caixa_service.excluir_movimentacao(db, movimentacao_id)
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("caixa_movimentacoes", "DELETE", record)
    return {"detail": "Movimentação removida com sucesso"}


@router.get("/{caixa_id}/resumo", response_model=CaixaResumo)
def resumo(caixa_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return caixa_service.resumo(db, caixa_id)


@router.get("/{caixa_id}", response_model=CaixaDetalhe)
def get_caixa(caixa_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return caixa_service.get_caixa(db, caixa_id)
