from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.db.session import Base
import app.models.categoria  # noqa: F401  registers Categoria for the relationship


class Produto(Base):
    __tablename__ = "produtos"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(255), nullable=False)
    preco = Column(Numeric(10, 2), nullable=False, default=0)
    preco_custo = Column(Numeric(10, 2), nullable=True)
    sku = Column(String(64), nullable=True, index=True)
    # quantity on hand; sales do not decrement it
    estoque = Column(Numeric(10, 3), nullable=False, default=0)
    ativo = Column(Boolean, nullable=False, default=True)
    categoria_id = Column(Integer, ForeignKey("categorias.id", ondelete="SET NULL"), nullable=True)
    criado_em = Column(DateTime(timezone=True), server_default=func.now())

    categoria = relationship("Categoria", lazy="joined")
