import logging
from typing import Dict, Iterable, Optional

from fastcrud import FastCRUD
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orders_api.catalog.models import CatalogVariant, CatalogVariantRead, Tag, TagRead

logger = logging.getLogger(__name__)


class SQLAlchemyCatalogRepository:
    """Lecture du catalogue publié (variantes et tags)."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.crud_variant = FastCRUD(CatalogVariant)

    async def get_variant(self, product_id: str, variant_id: str) -> Optional[CatalogVariantRead]:
        logger.debug(f"[CatalogRepository] Getting variant {variant_id} of product {product_id}")
        row = await self.crud_variant.get(db=self.db, id=variant_id, product_id=product_id)
        if not row:
            logger.warning(f"[CatalogRepository] Variant {variant_id} of product {product_id} not found")
            return None
        return CatalogVariantRead.model_validate(row)

    async def get_tags(self, tag_ids: Iterable[str]) -> Dict[str, TagRead]:
        ids = set(tag_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Tag).where(Tag.id.in_(ids)))
        return {tag.id: TagRead.model_validate(tag) for tag in result.scalars().all()}
