from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import date, datetime


class CustoFixoCreate(BaseModel):
    nome: str = Field(min_length=1)
    valor: float = Field(ge=0)
    frequencia: str = "Mensal"


class CustoFixoRead(CustoFixoCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    criado_em: Optional[datetime] = None


class CustoVariavelCreate(BaseModel):
    nome: str = Field(min_length=1)
    valor: float = Field(ge=0)
    data: date


class CustoVariavelRead(CustoVariavelCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    criado_em: Optional[datetime] = None


class LancamentoCreate(BaseModel):
    tipo: str = "pagar"
    descricao: Optional[str] = None
    valor: float = Field(gt=0)
    data_vencimento: Optional[date] = None
    fornecedor_id: Optional[int] = None


class LancamentoRead(LancamentoCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    pago: bool = False
    pago_em: Optional[datetime] = None
    criado_em: Optional[datetime] = None


class MetaOrcamentoUpdate(BaseModel):
    faturamento_mensal: Optional[float] = Field(default=None, ge=0)
    despesas_mensais: Optional[float] = Field(default=None, ge=0)
    # fraction, 0.30 means 30%
    margem_lucro: Optional[float] = Field(default=None, ge=0, le=1)


class MetaOrcamentoRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    faturamento_mensal: float
    despesas_mensais: float
    margem_lucro: float
    atualizado_em: Optional[datetime] = None


class BalancoManualUpdate(BaseModel):
    equipamentos: Optional[float] = Field(default=None, ge=0)
    emprestimos: Optional[float] = Field(default=None, ge=0)


class BalancoManualRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    equipamentos: float
    emprestimos: float
    atualizado_em: Optional[datetime] = None
