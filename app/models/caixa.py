from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, Boolean, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.db.session import Base


class Caixa(Base):
    """A cash-register session bounded by an open and a close event."""

    __tablename__ = 'caixas'

    id = Column(Integer, primary_key=True, index=True)
    aberto_em = Column(DateTime(timezone=True), server_default=func.now())
    fechado_em = Column(DateTime, nullable=True, index=True)
    valor_inicial = Column(Numeric(12, 2), nullable=False, default=0)
    # reconciled balance computed at close
    valor_fechamento = Column(Numeric(12, 2), nullable=True)
    # amount physically counted by the operator, when informed
    valor_contado = Column(Numeric(12, 2), nullable=True)
    diferenca = Column(Numeric(12, 2), nullable=True)
    aberto_por = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    # True while open, NULL once closed: the unique constraint allows a single open register
    aberto = Column(Boolean, nullable=True, unique=True, default=True)

    movimentacoes = relationship('MovimentacaoCaixa', back_populates='caixa', lazy='selectin',
                                 order_by='desc(MovimentacaoCaixa.id)')


class MovimentacaoCaixa(Base):
    __tablename__ = 'caixa_movimentacoes'

    id = Column(Integer, primary_key=True, index=True)
    caixa_id = Column(Integer, ForeignKey('caixas.id', ondelete='CASCADE'), nullable=True, index=True)
    # 'entrada' | 'saida'
    tipo = Column(String(10), nullable=False)
    valor = Column(Numeric(12, 2), nullable=False)
    categoria = Column(String(50), nullable=True)
    observacao = Column(Text, nullable=True)
    pedido_id = Column(Integer, ForeignKey('pedidos.id', ondelete='SET NULL'), nullable=True, index=True)
    usuario_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    criado_em = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    caixa = relationship('Caixa', back_populates='movimentacoes')
