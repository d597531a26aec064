from sqlalchemy import Column, Integer, String, DateTime, Enum
from sqlalchemy.sql import func
from app.db.session import Base
import enum


class RoleEnum(str, enum.Enum):
    admin = "admin"
    gerente = "gerente"
    atendente = "atendente"


class User(Base):
    """Login account plus the profile fields (name, role) shown in the UI."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    nome = Column(String(150), nullable=False)
    senha_hash = Column(String(255), nullable=False)
    papel = Column(Enum(RoleEnum), nullable=False, default=RoleEnum.atendente, server_default=RoleEnum.atendente.value)
    criado_em = Column(DateTime(timezone=True), server_default=func.now())
