import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel
from .base import utc_now


class UserLogin(SQLModel):
    email: str
    password: str


class UserCreate(UserLogin):
    full_name: Optional[str] = None


class UserPublic(SQLModel):
    """O que o cliente recebe após login/cadastro (nunca o hash)"""
    id: str
    email: str
    full_name: Optional[str] = None


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)

    # Credenciais
    email: str = Field(index=True, unique=True)
    password_hash: str  # Nunca armazenar senha em texto plano!

    full_name: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
