from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

from app.schemas.categoria import CategoriaRead


class ProdutoCreate(BaseModel):
    nome: str = Field(min_length=1)
    preco: float = Field(ge=0)
    preco_custo: Optional[float] = Field(default=None, ge=0)
    sku: Optional[str] = None
    estoque: float = Field(default=0, ge=0)
    ativo: bool = True
    categoria_id: Optional[int] = None


class ProdutoUpdate(BaseModel):
    nome: Optional[str] = Field(default=None, min_length=1)
    preco: Optional[float] = Field(default=None, ge=0)
    preco_custo: Optional[float] = Field(default=None, ge=0)
    sku: Optional[str] = None
    estoque: Optional[float] = Field(default=None, ge=0)
    ativo: Optional[bool] = None
    categoria_id: Optional[int] = None


class ProdutoRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    nome: str
    preco: float
    preco_custo: Optional[float] = None
    sku: Optional[str] = None
    estoque: float = 0
    ativo: bool = True
    categoria_id: Optional[int] = None
    categoria: Optional[CategoriaRead] = None
    criado_em: Optional[datetime] = None
