from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional, List
from datetime import datetime

from app.schemas.pedido import PedidoRead


class ClienteCreate(BaseModel):
    nome: str = Field(min_length=1)
    telefone: Optional[str] = None
    email: Optional[EmailStr] = None
    endereco: Optional[str] = None
    observacoes: Optional[str] = None


class ClienteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    nome: str
    telefone: Optional[str] = None
    email: Optional[str] = None
    endereco: Optional[str] = None
    observacoes: Optional[str] = None
    saldo_fiado: float = 0
    criado_em: Optional[datetime] = None
    atualizado_em: Optional[datetime] = None


class FiadoResumo(BaseModel):
    cliente_id: int
    saldo_fiado: float
    # sum of the recomputed totals of every fiado order, settled or not
    total_pedidos: float
    pedidos: List[PedidoRead] = []


class FiadoQuitar(BaseModel):
    valor: float
    forma_pagamento: str = "dinheiro"
    observacao: Optional[str] = None
