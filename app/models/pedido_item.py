from sqlalchemy import Column, Integer, ForeignKey, Numeric
from sqlalchemy.orm import relationship
from app.db.session import Base
import app.models.product  # noqa: F401


class PedidoItem(Base):
    __tablename__ = 'pedido_items'

    id = Column(Integer, primary_key=True, index=True)
    pedido_id = Column(Integer, ForeignKey('pedidos.id', ondelete='CASCADE'), nullable=False, index=True)
    produto_id = Column(Integer, ForeignKey('produtos.id', ondelete='SET NULL'), nullable=True)
    quantidade = Column(Numeric(10, 3), nullable=False, default=1)
    # price snapshot taken when the item is written
    preco_unitario = Column(Numeric(12, 2), nullable=False, default=0)
    # quantidade * preco_unitario, always set server-side
    total = Column(Numeric(12, 2), nullable=False, default=0)

    pedido = relationship('Pedido', back_populates='items')
    produto = relationship('Produto', lazy='joined', viewonly=True)
