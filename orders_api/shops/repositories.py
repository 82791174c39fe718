import logging
from typing import Dict, Iterable, Optional

from fastcrud import FastCRUD
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orders_api.shops.models import Shop, ShopRead

logger = logging.getLogger(__name__)


class SQLAlchemyShopRepository:
    """Lecture des boutiques."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.crud_shop = FastCRUD(Shop)

    async def get_by_id(self, shop_id: str) -> Optional[ShopRead]:
        row = await self.crud_shop.get(db=self.db, id=shop_id)
        if not row:
            logger.warning(f"[ShopRepository] Shop not found by ID: {shop_id}")
            return None
        return ShopRead.model_validate(row)

    async def get_many(self, shop_ids: Iterable[str]) -> Dict[str, ShopRead]:
        ids = set(shop_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Shop).where(Shop.id.in_(ids)))
        return {shop.id: ShopRead.model_validate(shop) for shop in result.scalars().all()}
