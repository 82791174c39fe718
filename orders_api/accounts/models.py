# orders_api/accounts/models.py
"""
Modèles SQLModel pour l'entité Account.

- AccountBase : champs communs.
- Account : modèle de table.
- AccountRead : schéma de lecture utilisé par les services.
"""
from datetime import datetime
from typing import Optional

from pydantic import EmailStr
from sqlmodel import Field, SQLModel

from orders_api.core.ids import generate_id
from orders_api.core.utils import utcnow


class AccountBase(SQLModel):
    email: EmailStr = Field(unique=True, index=True, max_length=255, nullable=False)
    name: Optional[str] = Field(default=None, max_length=100)
    is_admin: bool = Field(default=False, nullable=False)


class Account(AccountBase, table=True):
    __tablename__ = "accounts"

    id: str = Field(default_factory=generate_id, primary_key=True, max_length=32)
    created_at: datetime = Field(default_factory=utcnow)


class AccountRead(AccountBase):
    id: str
    created_at: Optional[datetime] = None
