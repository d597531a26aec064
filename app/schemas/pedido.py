from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime


class PedidoItemIn(BaseModel):
    produto_id: Optional[int] = None
    quantidade: float = Field(gt=0)
    # defaults to the product's current price when omitted
    preco_unitario: Optional[float] = Field(default=None, ge=0)


class PedidoItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    produto_id: Optional[int] = None
    produto_nome: Optional[str] = None
    quantidade: float
    preco_unitario: float
    total: float


class PedidoBase(BaseModel):
    cliente_id: Optional[int] = None
    cliente_nome: Optional[str] = None
    cliente_telefone: Optional[str] = None
    tipo: str = "balcao"
    mesa: Optional[str] = None
    observacao: Optional[str] = None
    forma_pagamento: Optional[str] = None


class PedidoCreate(PedidoBase):
    items: List[PedidoItemIn] = []


class PedidoUpdate(BaseModel):
    cliente_id: Optional[int] = None
    cliente_nome: Optional[str] = None
    cliente_telefone: Optional[str] = None
    tipo: Optional[str] = None
    mesa: Optional[str] = None
    observacao: Optional[str] = None
    forma_pagamento: Optional[str] = None
    # when present the item list is replaced as a whole
    items: Optional[List[PedidoItemIn]] = None


class PedidoStatusUpdate(BaseModel):
    status: str


class PedidoRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    # display sequence by creation order
    numero: Optional[int] = None
    cliente_id: Optional[int] = None
    cliente_nome: Optional[str] = None
    cliente_telefone: Optional[str] = None
    tipo: str
    mesa: Optional[str] = None
    status: str
    forma_pagamento: Optional[str] = None
    observacao: Optional[str] = None
    total: float
    usuario_id: Optional[int] = None
    items: List[PedidoItemRead] = []
    criado_em: Optional[datetime] = None
    atualizado_em: Optional[datetime] = None
    pago_em: Optional[datetime] = None


class PagamentoIn(BaseModel):
    forma_pagamento: str
    # cash handed over by the customer, used to compute change
    valor_recebido: Optional[float] = None


class PagamentoResult(BaseModel):
    pedido: PedidoRead
    already_paid: bool = False
    troco: float = 0
    movimentacao_id: Optional[int] = None


class DeleteOrderIn(BaseModel):
    order_id_to_delete: int
