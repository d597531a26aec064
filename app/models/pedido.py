from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.db.session import Base
import app.models.client  # noqa: F401
import app.models.pedido_item  # noqa: F401


STATUS_PEDIDO = ("aberto", "preparando", "pronto", "entregue", "pago", "cancelado")
TIPOS_PEDIDO = ("balcao", "delivery", "mesa")
FORMAS_PAGAMENTO = ("dinheiro", "cartao_credito", "cartao_debito", "pix", "fiado")


class Pedido(Base):
    __tablename__ = 'pedidos'

    id = Column(Integer, primary_key=True, index=True)
    cliente_id = Column(Integer, ForeignKey('clientes.id', ondelete='SET NULL'), nullable=True)
    # free-text customer identification for walk-in orders
    cliente_nome = Column(String(255), nullable=True)
    cliente_telefone = Column(String(50), nullable=True)
    tipo = Column(String(20), nullable=False, default='balcao')
    mesa = Column(String(20), nullable=True)
    status = Column(String(20), nullable=False, default='aberto', index=True)
    forma_pagamento = Column(String(30), nullable=True)
    observacao = Column(Text, nullable=True)
    # kept equal to the sum of item totals by every write that touches items
    total = Column(Numeric(12, 2), nullable=False, default=0)
    usuario_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    criado_em = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    atualizado_em = Column(DateTime(timezone=True), onupdate=func.now())
    pago_em = Column(DateTime, nullable=True)

    items = relationship('PedidoItem', back_populates='pedido', cascade='all, delete-orphan',
                         lazy='selectin', order_by='PedidoItem.id')
    cliente = relationship('Cliente', lazy='joined', viewonly=True)
