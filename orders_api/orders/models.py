from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import EmailStr, field_validator
from sqlalchemy import JSON, Column
from sqlmodel import Field, Relationship, SQLModel

from orders_api.core.ids import generate_id
from orders_api.core.utils import as_utc, utcnow
from orders_api.orders.config import ORDER_STATUS_NEW

# --- Modèles de table ---


class OrderItem(SQLModel, table=True):
    """Ligne de commande : instantané du catalogue au moment de la commande."""
    __tablename__ = "order_items"

    id: str = Field(default_factory=generate_id, primary_key=True, max_length=32)
    fulfillment_group_id: str = Field(foreign_key="order_fulfillment_groups.id", index=True)
    shop_id: str = Field(index=True, max_length=32)
    product_id: str = Field(max_length=32)
    variant_id: str = Field(max_length=32)
    title: str = Field(max_length=255)
    variant_title: Optional[str] = Field(default=None, max_length=255)
    option_title: Optional[str] = Field(default=None, max_length=255)
    product_slug: Optional[str] = Field(default=None, max_length=255)
    product_type: Optional[str] = Field(default=None, max_length=50)
    product_vendor: Optional[str] = Field(default=None, max_length=100)
    product_tag_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    image_urls: Dict[str, str] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    is_taxable: bool = Field(default=True)
    # Prix figé au moment de la commande
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    quantity: int = Field(gt=0)
    subtotal: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    status: str = Field(default=ORDER_STATUS_NEW, max_length=50)
    added_at: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    fulfillment_group: "OrderFulfillmentGroup" = Relationship(back_populates="items")


class OrderFulfillmentGroup(SQLModel, table=True):
    """Sous-ensemble des lignes d'une commande expédiées ensemble."""
    __tablename__ = "order_fulfillment_groups"

    id: str = Field(default_factory=generate_id, primary_key=True, max_length=32)
    order_id: str = Field(foreign_key="orders.id", index=True)
    shop_id: str = Field(index=True, max_length=32)
    type: str = Field(max_length=20)
    status: str = Field(default=ORDER_STATUS_NEW, max_length=50)
    shipping_address: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    # Instantané de la méthode choisie: id, name, label, carrier, group, fulfillment_types
    selected_fulfillment_method: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    fulfillment_price: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    handling_price: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    tracking: Optional[str] = Field(default=None, max_length=255)

    # Résumé calculé côté serveur
    item_total: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    fulfillment_total: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    tax_total: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    taxable_amount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    discount_total: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    total: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    order: "Order" = Relationship(back_populates="fulfillment_groups")
    items: List[OrderItem] = Relationship(
        back_populates="fulfillment_group",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class OrderNote(SQLModel, table=True):
    __tablename__ = "order_notes"

    id: str = Field(default_factory=generate_id, primary_key=True, max_length=32)
    order_id: str = Field(foreign_key="orders.id", index=True)
    account_id: Optional[str] = Field(default=None, foreign_key="accounts.id")
    content: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    order: "Order" = Relationship(back_populates="notes")


class OrderPayment(SQLModel, table=True):
    __tablename__ = "order_payments"

    id: str = Field(default_factory=generate_id, primary_key=True, max_length=32)
    order_id: str = Field(foreign_key="orders.id", index=True)
    shop_id: str = Field(max_length=32)
    method: str = Field(max_length=50)
    processor: str = Field(max_length=50)
    mode: str = Field(max_length=20)
    status: str = Field(max_length=20)
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    currency_code: str = Field(max_length=3)
    transaction_id: str = Field(max_length=100)
    display_name: str = Field(max_length=255)
    billing_address: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utcnow)

    order: "Order" = Relationship(back_populates="payments")


class Order(SQLModel, table=True):
    """Modèle de table pour les commandes."""
    __tablename__ = "orders"

    id: str = Field(default_factory=generate_id, primary_key=True, max_length=32)
    # Référence communiquée au client, distincte de l'ID interne
    reference_id: str = Field(unique=True, index=True, max_length=32)
    shop_id: str = Field(foreign_key="shops.id", index=True)
    # None pour une commande anonyme
    account_id: Optional[str] = Field(default=None, foreign_key="accounts.id", index=True)
    cart_id: Optional[str] = Field(default=None, max_length=32)
    email: str = Field(max_length=255)
    currency_code: str = Field(max_length=3)
    status: str = Field(default=ORDER_STATUS_NEW, max_length=50, index=True)
    ordered_language: Optional[str] = Field(default=None, max_length=10)
    anonymous_access_token_hash: Optional[str] = Field(default=None, max_length=100)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)

    fulfillment_groups: List[OrderFulfillmentGroup] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
    notes: List[OrderNote] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
    payments: List[OrderPayment] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


# --- Schémas de commande (placeOrder) ---
# Les prix et totaux fournis par le client ne sont pas fiables : ils servent
# uniquement à vérifier que le client affiche le même montant que le serveur.


class AddressCreate(SQLModel):
    address1: str = Field(min_length=1)
    address2: Optional[str] = None
    city: str = Field(min_length=1)
    company: Optional[str] = None
    country: str = Field(min_length=1)
    full_name: str = Field(min_length=1)
    is_commercial: bool = False
    phone: str = Field(min_length=1)
    postal: str = Field(min_length=1)
    region: str = Field(min_length=1)


class ProductConfigurationCreate(SQLModel):
    product_id: str
    product_variant_id: str


class OrderItemCreate(SQLModel):
    product_configuration: ProductConfigurationCreate
    quantity: int = Field(gt=0)
    price: Decimal
    added_at: Optional[datetime] = None

    @field_validator("added_at")
    @classmethod
    def normalize_added_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Les colonnes de dates exigent un fuseau horaire
        return as_utc(v) if v is not None else None


class OrderFulfillmentGroupCreate(SQLModel):
    shop_id: str
    type: str
    selected_fulfillment_method_id: str
    shipping_address: Optional[AddressCreate] = None
    items: List[OrderItemCreate] = Field(min_length=1)
    total_price: Optional[Decimal] = None


class PaymentCreate(SQLModel):
    method: str
    # None : ce paiement absorbe le reste du total
    amount: Optional[Decimal] = None
    billing_address: Optional[AddressCreate] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class OrderCreate(SQLModel):
    shop_id: str
    cart_id: Optional[str] = None
    currency_code: str = Field(min_length=3, max_length=3)
    email: EmailStr
    ordered_language: Optional[str] = None
    fulfillment_groups: List[OrderFulfillmentGroupCreate] = Field(min_length=1)


class PlaceOrderCommand(SQLModel):
    order: OrderCreate
    payments: List[PaymentCreate] = Field(default_factory=list)
    client_mutation_id: Optional[str] = None
