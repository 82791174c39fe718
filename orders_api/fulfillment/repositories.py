import logging
from typing import Optional

from fastcrud import FastCRUD
from sqlalchemy.ext.asyncio import AsyncSession

from orders_api.fulfillment.models import FulfillmentMethod, FulfillmentMethodRead

logger = logging.getLogger(__name__)


class SQLAlchemyFulfillmentMethodRepository:

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.crud_method = FastCRUD(FulfillmentMethod)

    async def get_for_shop(self, method_id: str, shop_id: str) -> Optional[FulfillmentMethodRead]:
        row = await self.crud_method.get(db=self.db, id=method_id, shop_id=shop_id)
        if not row:
            logger.warning(f"[FulfillmentMethodRepository] Method {method_id} not found for shop {shop_id}")
            return None
        return FulfillmentMethodRead.model_validate(row)
