import logging
from typing import Optional

from fastcrud import FastCRUD
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from orders_api.carts.models import Cart, CartItem, CartRead

logger = logging.getLogger(__name__)


class SQLAlchemyCartRepository:

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.crud_cart = FastCRUD(Cart)

    async def get_by_id(self, cart_id: str) -> Optional[CartRead]:
        row = await self.crud_cart.get(db=self.db, id=cart_id)
        if not row:
            logger.warning(f"[CartRepository] Cart not found by ID: {cart_id}")
            return None
        return CartRead.model_validate(row)

    async def delete(self, cart_id: str) -> None:
        """Supprime le panier et ses lignes sans valider la transaction."""
        await self.db.execute(delete(CartItem).where(CartItem.cart_id == cart_id))
        await self.crud_cart.delete(db=self.db, id=cart_id, commit=False)
        logger.info(f"[CartRepository] Cart {cart_id} deleted (pending commit)")
