"""
Modèles SQLModel du catalogue publié (variantes vendables et tags).

Le service de commande lit ici le prix de référence d'un article : les prix
fournis par le client ne sont jamais utilisés tels quels.
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from orders_api.core.ids import generate_id
from orders_api.core.utils import utcnow


# --- Tags ---

class TagBase(SQLModel):
    shop_id: str = Field(foreign_key="shops.id", index=True)
    name: str = Field(index=True, max_length=50)
    slug: Optional[str] = Field(default=None, max_length=60)
    position: Optional[int] = Field(default=None)


class Tag(TagBase, table=True):
    __tablename__ = "tags"

    id: str = Field(default_factory=generate_id, primary_key=True, max_length=32)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class TagRead(TagBase):
    id: str
    created_at: datetime
    updated_at: datetime


# --- Variantes publiées ---

class CatalogVariantBase(SQLModel):
    product_id: str = Field(index=True, max_length=32)
    shop_id: str = Field(foreign_key="shops.id", index=True)
    title: str = Field(max_length=255)
    variant_title: Optional[str] = Field(default=None, max_length=255)
    option_title: Optional[str] = Field(default=None, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=255)
    vendor: Optional[str] = Field(default=None, max_length=100)
    product_type: Optional[str] = Field(default=None, max_length=50)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    is_taxable: bool = Field(default=True)
    tag_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    # Clés attendues: large, medium, original, small, thumbnail
    image_urls: Dict[str, str] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))


class CatalogVariant(CatalogVariantBase, table=True):
    """Une variante vendable; `id` est l'identifiant de la variante."""
    __tablename__ = "catalog_variants"

    id: str = Field(default_factory=generate_id, primary_key=True, max_length=32)
    created_at: datetime = Field(default_factory=utcnow)


class CatalogVariantRead(CatalogVariantBase):
    id: str
