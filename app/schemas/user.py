from pydantic import BaseModel, EmailStr
from pydantic import ConfigDict
from typing import Optional
import datetime

from app.models.user import RoleEnum


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    nome: str


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    nome: Optional[str] = None
    papel: Optional[str] = None


class UserRead(BaseModel):
    # Pydantic v2: use model_config with from_attributes to support ORM objects
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: EmailStr
    nome: str
    papel: RoleEnum
    criado_em: Optional[datetime.datetime] = None


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class SessionInfo(BaseModel):
    user: UserRead
    expires_at: Optional[datetime.datetime] = None
