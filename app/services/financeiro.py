import logging
from decimal import Decimal
from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.timezone_utils import (
    local_day_range_to_utc,
    start_of_today_utc,
    today_in_brazil,
    days_ago_utc,
)
from app.models.caixa import MovimentacaoCaixa
from app.models.financeiro import CustoFixo, CustoVariavel, LancamentoFinanceiro, MetaOrcamento, BalancoManual
from app.models.pedido import Pedido
from app.models.product import Produto
from app.services import caixa as caixa_service
from app.services.caixa import to_money

logger = logging.getLogger(__name__)

# orders that count as realized revenue
STATUS_RECEITA = ("pago",)


def _f(value) -> float:
    return float(to_money(value or 0))


def _sum(query) -> Decimal:
    return to_money(query.scalar() or 0)


def get_metas(db: Session) -> MetaOrcamento:
    """Singleton budget goals, created with the configured defaults on first read."""
    metas = db.query(MetaOrcamento).order_by(MetaOrcamento.id.asc()).first()
    if metas is None:
        metas = MetaOrcamento(
            faturamento_mensal=settings.DEFAULT_BUDGET_MONTHLY_REVENUE,
            despesas_mensais=settings.DEFAULT_BUDGET_MONTHLY_EXPENSES,
            margem_lucro=settings.DEFAULT_BUDGET_PROFIT_MARGIN,
        )
        db.add(metas)
        db.commit()
        db.refresh(metas)
    return metas


def update_metas(db: Session, data: dict) -> MetaOrcamento:
    metas = get_metas(db)
    for field, value in data.items():
        if value is not None:
            setattr(metas, field, value)
    db.add(metas)
    db.commit()
    db.refresh(metas)
    logger.info("Metas de orçamento atualizadas: %s", data)
    return metas


def get_balanco_manual(db: Session) -> BalancoManual:
    row = db.query(BalancoManual).order_by(BalancoManual.id.asc()).first()
    if row is None:
        row = BalancoManual(
            equipamentos=settings.DEFAULT_BALANCE_EQUIPMENT,
            emprestimos=settings.DEFAULT_BALANCE_LOANS,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
    return row


def update_balanco_manual(db: Session, data: dict) -> BalancoManual:
    row = get_balanco_manual(db)
    for field, value in data.items():
        if value is not None:
            setattr(row, field, value)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _saldo_caixa_aberto(db: Session) -> Decimal:
    caixa = caixa_service.get_current(db)
    return to_money(caixa.valor_inicial) if caixa is not None else Decimal("0.00")


def _movimentos_desde(db: Session, desde, tipo: str) -> Decimal:
    return _sum(
        db.query(func.coalesce(func.sum(MovimentacaoCaixa.valor), 0))
        .filter(MovimentacaoCaixa.criado_em >= desde, MovimentacaoCaixa.tipo == tipo)
    )


def _receita_desde(db: Session, desde) -> Decimal:
    return _sum(
        db.query(func.coalesce(func.sum(Pedido.total), 0))
        .filter(Pedido.status.in_(STATUS_RECEITA), Pedido.criado_em >= desde)
    )


def analise_diaria(db: Session) -> dict:
    """Today's cash flow in local time, from every register's movements."""
    desde = start_of_today_utc()
    receita = _movimentos_desde(db, desde, "entrada")
    despesas = _movimentos_desde(db, desde, "saida")
    quantidade = (
        db.query(func.count(MovimentacaoCaixa.id))
        .filter(MovimentacaoCaixa.criado_em >= desde)
        .scalar()
    ) or 0
    return {
        "data": today_in_brazil().isoformat(),
        "receita": _f(receita),
        "despesas": _f(despesas),
        "lucro": _f(receita - despesas),
        "saldo": _f(_saldo_caixa_aberto(db)),
        "movimentacoes": int(quantidade),
    }


def dre(db: Session, dias: int = 30) -> dict:
    """Income statement over the last `dias` days.

    Revenue comes from paid orders, cost of goods from variable costs dated in
    the window and operating expenses from every fixed cost on file.
    """
    desde = days_ago_utc(dias)
    desde_data = today_in_brazil() - timedelta(days=dias)
    receitas = _receita_desde(db, desde)
    custo_mercadorias = _sum(
        db.query(func.coalesce(func.sum(CustoVariavel.valor), 0)).filter(CustoVariavel.data >= desde_data)
    )
    despesas_operacionais = _sum(db.query(func.coalesce(func.sum(CustoFixo.valor), 0)))
    lucro_bruto = receitas - custo_mercadorias
    lucro_liquido = lucro_bruto - despesas_operacionais
    margem = (lucro_liquido / receitas) if receitas > 0 else Decimal("0")
    return {
        "periodo_dias": dias,
        "receitas": _f(receitas),
        "custo_mercadorias": _f(custo_mercadorias),
        "lucro_bruto": _f(lucro_bruto),
        "despesas_operacionais": _f(despesas_operacionais),
        "lucro_liquido": _f(lucro_liquido),
        "margem_liquida": float(round(margem, 4)),
    }


def balanco(db: Session) -> dict:
    manual = get_balanco_manual(db)
    caixa = _saldo_caixa_aberto(db)
    estoque = _sum(
        db.query(func.coalesce(func.sum(Produto.estoque * Produto.preco_custo), 0))
        .filter(Produto.preco_custo.isnot(None))
    )
    equipamentos = to_money(manual.equipamentos)
    fornecedores = _sum(
        db.query(func.coalesce(func.sum(LancamentoFinanceiro.valor), 0))
        .filter(LancamentoFinanceiro.pago.is_(False), LancamentoFinanceiro.tipo == "pagar")
    )
    emprestimos = to_money(manual.emprestimos)
    total_ativos = caixa + estoque + equipamentos
    total_passivos = fornecedores + emprestimos
    return {
        "ativos": {
            "caixa": _f(caixa),
            "estoque": _f(estoque),
            "equipamentos": _f(equipamentos),
            "total": _f(total_ativos),
        },
        "passivos": {
            "fornecedores": _f(fornecedores),
            "emprestimos": _f(emprestimos),
            "total": _f(total_passivos),
        },
        "patrimonio_liquido": _f(total_ativos - total_passivos),
    }


def orcamento(db: Session) -> dict:
    """Budget goals next to the month-to-date actuals."""
    metas = get_metas(db)
    inicio_mes, _ = local_day_range_to_utc(today_in_brazil().replace(day=1).isoformat())
    faturamento = _receita_desde(db, inicio_mes)
    despesas = _movimentos_desde(db, inicio_mes, "saida") + _sum(
        db.query(func.coalesce(func.sum(CustoVariavel.valor), 0))
        .filter(CustoVariavel.data >= today_in_brazil().replace(day=1))
    )
    meta_fat = to_money(metas.faturamento_mensal)
    meta_desp = to_money(metas.despesas_mensais)
    margem = Decimal(str(metas.margem_lucro or 0))
    return {
        "metas": {
            "faturamento_mensal": _f(meta_fat),
            "despesas_mensais": _f(meta_desp),
            "margem_lucro": float(margem),
        },
        "lucro_projetado": _f(meta_fat * margem),
        "realizado": {
            "faturamento": _f(faturamento),
            "despesas": _f(despesas),
            "lucro": _f(faturamento - despesas),
        },
        "atingimento_faturamento": float(round(faturamento / meta_fat, 4)) if meta_fat > 0 else 0.0,
    }
