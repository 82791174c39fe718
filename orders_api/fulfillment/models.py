from decimal import Decimal
from typing import List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from orders_api.core.ids import generate_id

# Types d'exécution reconnus
FULFILLMENT_TYPE_SHIPPING = "shipping"
FULFILLMENT_TYPE_PICKUP = "pickup"
FULFILLMENT_TYPE_DIGITAL = "digital"

FULFILLMENT_TYPES: List[str] = [
    FULFILLMENT_TYPE_SHIPPING,
    FULFILLMENT_TYPE_PICKUP,
    FULFILLMENT_TYPE_DIGITAL,
]


class FulfillmentMethodBase(SQLModel):
    shop_id: str = Field(foreign_key="shops.id", index=True)
    name: str = Field(max_length=100)
    label: str = Field(max_length=100)
    carrier: Optional[str] = Field(default=None, max_length=100)
    group: str = Field(default="Ground", max_length=50)
    fulfillment_types: List[str] = Field(
        default_factory=lambda: [FULFILLMENT_TYPE_SHIPPING],
        sa_column=Column(JSON, nullable=False),
    )
    rate: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    handling: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    enabled: bool = Field(default=True)


class FulfillmentMethod(FulfillmentMethodBase, table=True):
    __tablename__ = "fulfillment_methods"

    id: str = Field(default_factory=generate_id, primary_key=True, max_length=32)


class FulfillmentMethodRead(FulfillmentMethodBase):
    id: str
