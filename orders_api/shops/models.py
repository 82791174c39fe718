from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from orders_api.core.ids import generate_id
from orders_api.core.utils import utcnow


class ShopBase(SQLModel):
    name: str = Field(max_length=100)
    currency_code: str = Field(default="EUR", max_length=3)


class Shop(ShopBase, table=True):
    __tablename__ = "shops"

    id: str = Field(default_factory=generate_id, primary_key=True, max_length=32)
    created_at: datetime = Field(default_factory=utcnow)


class ShopRead(ShopBase):
    id: str
    created_at: Optional[datetime] = None
