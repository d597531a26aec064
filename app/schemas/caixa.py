from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime


class CaixaAbrir(BaseModel):
    valor_inicial: float = 0


class CaixaFechar(BaseModel):
    caixa_id: Optional[int] = None
    # physically counted amount, when the operator informs it
    valor_contado: Optional[float] = None


class MovimentacaoCreate(BaseModel):
    tipo: str
    valor: float
    categoria: Optional[str] = None
    observacao: Optional[str] = None
    caixa_id: Optional[int] = None


class MovimentacaoRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    caixa_id: Optional[int] = None
    tipo: str
    valor: float
    categoria: Optional[str] = None
    observacao: Optional[str] = None
    pedido_id: Optional[int] = None
    usuario_id: Optional[int] = None
    criado_em: Optional[datetime] = None


class CaixaRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    aberto_em: Optional[datetime] = None
    fechado_em: Optional[datetime] = None
    valor_inicial: float
    valor_fechamento: Optional[float] = None
    valor_contado: Optional[float] = None
    diferenca: Optional[float] = None
    aberto_por: Optional[int] = None


class CaixaDetalhe(CaixaRead):
    movimentacoes: List[MovimentacaoRead] = []


class CaixaResumo(BaseModel):
    caixa_id: int
    inicial: float
    entradas: float
    saidas: float
    saldo: float
