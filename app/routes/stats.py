from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional

from app.db.session import get_db
from app.models.pedido import Pedido as PedidoModel
from app.models.product import Produto as ProdutoModel
from app.core.timezone_utils import local_day_range_to_utc, start_of_today_utc, days_ago_utc, today_in_brazil
from app.services import pedidos as pedidos_service
from app.services.auth import get_current_user

router = APIRouter(prefix="/stats", tags=["Stats"])

STATUS_ATIVOS = ("aberto", "preparando")


def _sum_totals_since(db: Session, since) -> float:
    total = (
        db.query(func.coalesce(func.sum(PedidoModel.total), 0))
        .filter(PedidoModel.criado_em >= since)
        .scalar()
    )
    return float(total or 0)


@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """
    Home screen figures for the local (America/Sao_Paulo) day.

    Returns: { pedidosHoje, faturamentoHoje, pedidosAtivos, produtosAtivos, pedidosRecentes[] }
    """
    try:
        since = start_of_today_utc()
        pedidos_hoje = (
            db.query(func.count(PedidoModel.id)).filter(PedidoModel.criado_em >= since).scalar()
        ) or 0
        ativos = (
            db.query(func.count(PedidoModel.id))
            .filter(PedidoModel.criado_em >= since, PedidoModel.status.in_(STATUS_ATIVOS))
            .scalar()
        ) or 0
        produtos_ativos = (
            db.query(func.count(ProdutoModel.id)).filter(ProdutoModel.ativo.is_(True)).scalar()
        ) or 0
        recentes = (
            db.query(PedidoModel)
            .order_by(PedidoModel.criado_em.desc(), PedidoModel.id.desc())
            .limit(5)
            .all()
        )
        return {
            "pedidosHoje": int(pedidos_hoje),
            "faturamentoHoje": _sum_totals_since(db, since),
            "pedidosAtivos": int(ativos),
            "produtosAtivos": int(produtos_ativos),
            "pedidosRecentes": pedidos_service.serialize_many(db, recentes),
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/daily_revenue")
def daily_revenue(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """
    Daily revenue (faturamento diário): sum of `pedidos.total` created during
    today's local day, independent of payment status.
    Returns: { "dailyRevenue": float }
    """
    try:
        return {"dailyRevenue": _sum_totals_since(db, start_of_today_utc())}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/weekly_revenue")
def weekly_revenue(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """
    Weekly revenue as the total value of orders created in the last 7 days.
    Returns: { "weeklyRevenue": float }
    """
    try:
        return {"weeklyRevenue": _sum_totals_since(db, days_ago_utc(7))}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/monthly_revenue")
def monthly_revenue(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """
    Monthly revenue as the total value of orders created in the last 30 days.
    Returns: { "monthlyRevenue": float }
    """
    try:
        return {"monthlyRevenue": _sum_totals_since(db, days_ago_utc(30))}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/average_ticket")
def average_ticket(startDate: Optional[str] = None, endDate: Optional[str] = None, allDates: bool = False,
                   db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """
    Average Ticket (Ticket Médio): average of `pedidos.total` over a period.

    Period selection:
    - startDate/endDate (YYYY-MM-DD) are inclusive local days.
    - allDates=true with no explicit dates covers every order.
    - Otherwise (default) today's local day.

    Cancelled orders are left out. Returns: { "averageTicket": float, "count": int }
    """
    q = db.query(
        func.coalesce(func.avg(PedidoModel.total), 0),
        func.count(PedidoModel.id),
    ).filter(PedidoModel.status != "cancelado")

    if startDate or endDate:
        if startDate:
            sd, _ = local_day_range_to_utc(startDate)
            if sd is None:
                raise HTTPException(status_code=400, detail="startDate inválida")
            q = q.filter(PedidoModel.criado_em >= sd)
        if endDate:
            _, ed = local_day_range_to_utc(endDate)
            if ed is None:
                raise HTTPException(status_code=400, detail="endDate inválida")
            q = q.filter(PedidoModel.criado_em <= ed)
    elif not allDates:
        sd, ed = local_day_range_to_utc(today_in_brazil().isoformat())
        q = q.filter(PedidoModel.criado_em >= sd, PedidoModel.criado_em <= ed)

    try:
        avg, count = q.one()
        return {"averageTicket": float(avg or 0), "count": int(count or 0)}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
