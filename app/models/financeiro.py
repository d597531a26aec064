from sqlalchemy import Column, Integer, String, Text, Numeric, Date, DateTime, Boolean, ForeignKey
from sqlalchemy.sql import func
from app.db.session import Base


class CustoFixo(Base):
    __tablename__ = "custos_fixos"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(255), nullable=False)
    valor = Column(Numeric(12, 2), nullable=False)
    frequencia = Column(String(30), nullable=False, default="Mensal")
    criado_em = Column(DateTime(timezone=True), server_default=func.now())
    atualizado_em = Column(DateTime(timezone=True), onupdate=func.now())


class CustoVariavel(Base):
    __tablename__ = "custos_variaveis"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(255), nullable=False)
    valor = Column(Numeric(12, 2), nullable=False)
    data = Column(Date, nullable=False, index=True)
    criado_em = Column(DateTime(timezone=True), server_default=func.now())
    atualizado_em = Column(DateTime(timezone=True), onupdate=func.now())


class LancamentoFinanceiro(Base):
    """Accounts payable/receivable entry; unpaid 'pagar' rows are supplier debt."""

    __tablename__ = "lancamentos_financeiros"

    id = Column(Integer, primary_key=True, index=True)
    # 'pagar' | 'receber'
    tipo = Column(String(20), nullable=False)
    descricao = Column(Text, nullable=True)
    valor = Column(Numeric(12, 2), nullable=False)
    data_vencimento = Column(Date, nullable=True)
    pago = Column(Boolean, nullable=False, default=False)
    pago_em = Column(DateTime, nullable=True)
    fornecedor_id = Column(Integer, ForeignKey("fornecedores.id", ondelete="SET NULL"), nullable=True)
    criado_em = Column(DateTime(timezone=True), server_default=func.now())


class MetaOrcamento(Base):
    __tablename__ = "metas_orcamento"

    id = Column(Integer, primary_key=True)
    faturamento_mensal = Column(Numeric(12, 2), nullable=False, default=0)
    despesas_mensais = Column(Numeric(12, 2), nullable=False, default=0)
    # fraction, e.g. 0.30 for 30%
    margem_lucro = Column(Numeric(5, 4), nullable=False, default=0)
    atualizado_em = Column(DateTime(timezone=True), onupdate=func.now())


class BalancoManual(Base):
    __tablename__ = "balanco_manual"

    id = Column(Integer, primary_key=True)
    equipamentos = Column(Numeric(12, 2), nullable=False, default=0)
    emprestimos = Column(Numeric(12, 2), nullable=False, default=0)
    atualizado_em = Column(DateTime(timezone=True), onupdate=func.now())
