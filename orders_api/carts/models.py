from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlmodel import Field, Relationship, SQLModel

from orders_api.core.ids import generate_id
from orders_api.core.utils import utcnow


class CartItem(SQLModel, table=True):
    """Ligne de panier."""
    __tablename__ = "cart_items"

    id: str = Field(default_factory=generate_id, primary_key=True, max_length=32)
    cart_id: str = Field(foreign_key="carts.id", index=True)
    product_id: str = Field(max_length=32)
    variant_id: str = Field(max_length=32)
    quantity: int = Field(gt=0)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)

    cart: "Cart" = Relationship(back_populates="items")


class CartBase(SQLModel):
    shop_id: str = Field(foreign_key="shops.id", index=True)
    # None pour un panier anonyme
    account_id: Optional[str] = Field(default=None, foreign_key="accounts.id", index=True)


class Cart(CartBase, table=True):
    __tablename__ = "carts"

    id: str = Field(default_factory=generate_id, primary_key=True, max_length=32)
    created_at: datetime = Field(default_factory=utcnow)

    items: List[CartItem] = Relationship(back_populates="cart")


class CartRead(CartBase):
    id: str
    created_at: Optional[datetime] = None
