import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.timezone_utils import utcnow
from app.models.caixa import Caixa, MovimentacaoCaixa
from app.utils.pubsub import to_record

logger = logging.getLogger(__name__)

CENTAVOS = Decimal("0.01")
TIPOS_MOVIMENTACAO = ("entrada", "saida")


def to_money(value, campo: str = "valor") -> Decimal:
    """Parse a monetary amount into a 2-place Decimal, 400 on garbage."""
    try:
        dec = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"{campo} inválido")
    if not dec.is_finite():
        raise HTTPException(status_code=400, detail=f"{campo} inválido")
    return dec.quantize(CENTAVOS)


def normalize_tipo(tipo: Optional[str]) -> str:
    t = (tipo or "").strip().lower().replace("í", "i")
    if t not in TIPOS_MOVIMENTACAO:
        raise HTTPException(status_code=400, detail="Tipo de movimentação deve ser 'entrada' ou 'saida'")
    return t


def get_current(db: Session) -> Optional[Caixa]:
    """The open register, or None when every register is closed."""
    return (
        db.query(Caixa)
        .filter(Caixa.fechado_em.is_(None))
        .order_by(Caixa.id.desc())
        .first()
    )


def get_caixa(db: Session, caixa_id: int) -> Caixa:
    caixa = db.query(Caixa).filter(Caixa.id == caixa_id).first()
    if not caixa:
        raise HTTPException(status_code=404, detail="Caixa não encontrado")
    return caixa


def require_open(db: Session, caixa_id: Optional[int] = None) -> Caixa:
    """Resolve the register a movement goes to; 409 unless it is open."""
    if caixa_id is not None:
        caixa = get_caixa(db, caixa_id)
        if caixa.fechado_em is not None:
            raise HTTPException(status_code=409, detail="Caixa já está fechado")
        return caixa
    caixa = get_current(db)
    if caixa is None:
        raise HTTPException(status_code=409, detail="Nenhum caixa aberto")
    return caixa


def abrir(db: Session, valor_inicial, usuario_id: Optional[int] = None) -> Caixa:
    valor = to_money(valor_inicial, "valor_inicial")
    if valor < 0:
        raise HTTPException(status_code=400, detail="valor_inicial não pode ser negativo")
    if get_current(db) is not None:
        raise HTTPException(status_code=409, detail="Já existe um caixa aberto")
    caixa = Caixa(valor_inicial=valor, aberto_por=usuario_id, aberto=True, aberto_em=utcnow())
    db.add(caixa)
    try:
        db.commit()
    except IntegrityError:
        # another request opened a register between the check and the insert
        db.rollback()
        raise HTTPException(status_code=409, detail="Já existe um caixa aberto")
    db.refresh(caixa)
    logger.info("Caixa %s aberto com valor inicial %s", caixa.id, valor)
    return caixa


def registrar_movimentacao(
    db: Session,
    tipo: str,
    valor,
    observacao: Optional[str] = None,
    categoria: Optional[str] = None,
    caixa_id: Optional[int] = None,
    usuario_id: Optional[int] = None,
    pedido_id: Optional[int] = None,
    commit: bool = True,
) -> MovimentacaoCaixa:
    """Insert an entrada/saida on an open register.

    With commit=False the row is only flushed, so callers can bundle it with
    their own writes in a single transaction.
    """
    tipo = normalize_tipo(tipo)
    valor = to_money(valor)
    if valor <= 0:
        raise HTTPException(status_code=400, detail="valor deve ser maior que zero")
    caixa = require_open(db, caixa_id)
    mov = MovimentacaoCaixa(
        caixa_id=caixa.id,
        tipo=tipo,
        valor=valor,
        categoria=categoria,
        observacao=observacao,
        pedido_id=pedido_id,
        usuario_id=usuario_id,
        criado_em=utcnow(),
    )
    db.add(mov)
    if commit:
        db.commit()
        db.refresh(mov)
    else:
        db.flush()
    logger.info("Movimentação %s de %s no caixa %s", tipo, valor, caixa.id)
    return mov


def excluir_movimentacao(db: Session, movimentacao_id: int) -> dict:
    """Delete one movement and return a snapshot of the removed row."""
    mov = db.query(MovimentacaoCaixa).filter(MovimentacaoCaixa.id == movimentacao_id).first()
    if not mov:
        raise HTTPException(status_code=404, detail="Movimentação não encontrada")
    snapshot = to_record(mov)
    db.delete(mov)
    db.commit()
    return snapshot


def listar_movimentacoes(db: Session, caixa_id: int):
    return (
        db.query(MovimentacaoCaixa)
        .filter(MovimentacaoCaixa.caixa_id == caixa_id)
        .order_by(MovimentacaoCaixa.criado_em.desc(), MovimentacaoCaixa.id.desc())
        .all()
    )


def _soma(db: Session, caixa_id: int, tipo: str) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(MovimentacaoCaixa.valor), 0))
        .filter(MovimentacaoCaixa.caixa_id == caixa_id, MovimentacaoCaixa.tipo == tipo)
        .scalar()
    )
    return to_money(total or 0)


def resumo(db: Session, caixa_id: int) -> dict:
    """saldo = inicial + entradas - saidas"""
    caixa = get_caixa(db, caixa_id)
    inicial = to_money(caixa.valor_inicial or 0)
    entradas = _soma(db, caixa.id, "entrada")
    saidas = _soma(db, caixa.id, "saida")
    return {
        "caixa_id": caixa.id,
        "inicial": inicial,
        "entradas": entradas,
        "saidas": saidas,
        "saldo": inicial + entradas - saidas,
    }


def fechar(db: Session, caixa_id: Optional[int] = None, valor_contado=None) -> Caixa:
    if caixa_id is None:
        caixa = get_current(db)
        if caixa is None:
            raise HTTPException(status_code=409, detail="Nenhum caixa aberto")
    else:
        caixa = get_caixa(db, caixa_id)
    if caixa.fechado_em is not None:
        raise HTTPException(status_code=409, detail="Caixa já está fechado")

    contado = None
    if valor_contado is not None:
        contado = to_money(valor_contado, "valor_contado")
        if contado < 0:
            raise HTTPException(status_code=400, detail="valor_contado não pode ser negativo")

    saldo = resumo(db, caixa.id)["saldo"]
    caixa.valor_fechamento = saldo
    if contado is not None:
        caixa.valor_contado = contado
        caixa.diferenca = contado - saldo
    caixa.fechado_em = utcnow()
    caixa.aberto = None
    db.add(caixa)
    db.commit()
    db.refresh(caixa)
    logger.info("Caixa %s fechado com saldo %s", caixa.id, saldo)
    return caixa


def historico(db: Session, limit: int = 50):
    return db.query(Caixa).order_by(Caixa.id.desc()).limit(limit).all()
