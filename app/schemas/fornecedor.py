from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import date, datetime


class FornecedorCreate(BaseModel):
    nome: str = Field(min_length=1)
    nome_fantasia: Optional[str] = None
    cnpj: Optional[str] = None
    email: Optional[str] = None
    telefone: Optional[str] = None
    endereco: Optional[str] = None
    contato: Optional[str] = None
    condicoes_pagamento: Optional[str] = None


class FornecedorRead(FornecedorCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    usuario_id: Optional[int] = None
    criado_em: Optional[datetime] = None


class DespesaFornecedorCreate(BaseModel):
    fornecedor_id: int
    descricao: str = Field(min_length=1)
    valor: float = Field(gt=0)
    data_emissao: date
    data_vencimento: Optional[date] = None
    status: str = "pendente"


class DespesaFornecedorUpdate(BaseModel):
    descricao: Optional[str] = None
    valor: Optional[float] = Field(default=None, gt=0)
    data_emissao: Optional[date] = None
    data_vencimento: Optional[date] = None
    status: Optional[str] = None


class DespesaFornecedorRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    fornecedor_id: int
    fornecedor_nome: Optional[str] = None
    usuario_id: Optional[int] = None
    descricao: str
    valor: float
    data_emissao: date
    data_vencimento: Optional[date] = None
    data_pagamento: Optional[date] = None
    status: str
    criado_em: Optional[datetime] = None
