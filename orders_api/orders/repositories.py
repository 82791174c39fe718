# orders_api/orders/repositories.py
import logging
from typing import List, Optional, Sequence

from fastcrud import FastCRUD
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from orders_api.core.pagination import ConnectionArgs, Page, paginate_statement
from orders_api.orders.interfaces.repositories import AbstractOrderRepository
from orders_api.orders.models import Order, OrderFulfillmentGroup

logger = logging.getLogger(__name__)

# Chargement complet d'une commande (pas de lazy-loading en async)
ORDER_LOAD_OPTIONS = (
    selectinload(Order.fulfillment_groups).selectinload(OrderFulfillmentGroup.items),
    selectinload(Order.notes),
    selectinload(Order.payments),
)


class SQLAlchemyOrderRepository(AbstractOrderRepository):
    """Implémentation SQLAlchemy du repository des commandes."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.crud_order = FastCRUD(Order)

    async def _get_one(self, *conditions) -> Optional[Order]:
        stmt = select(Order).where(*conditions).options(*ORDER_LOAD_OPTIONS)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_by_id(self, order_id: str, shop_id: str) -> Optional[Order]:
        logger.debug(f"[OrderRepository] Getting order by ID: {order_id} (shop {shop_id})")
        order = await self._get_one(Order.id == order_id, Order.shop_id == shop_id)
        if not order:
            logger.debug(f"[OrderRepository] Order not found by ID: {order_id} (shop {shop_id})")
        return order

    async def get_by_reference_id(self, reference_id: str, shop_id: str) -> Optional[Order]:
        logger.debug(f"[OrderRepository] Getting order by reference: {reference_id} (shop {shop_id})")
        return await self._get_one(Order.reference_id == reference_id, Order.shop_id == shop_id)

    async def list_by_account(
        self,
        account_id: str,
        statuses: Optional[Sequence[str]],
        shop_ids: Optional[Sequence[str]],
        args: ConnectionArgs,
    ) -> Page[Order]:
        logger.debug(
            f"[OrderRepository] Listing orders for account {account_id}, statuses={statuses}, shops={shop_ids}, "
            f"sort={args.sort_by} {args.sort_order}"
        )
        filters = [Order.account_id == account_id]
        if statuses:
            filters.append(Order.status.in_(list(statuses)))
        if shop_ids:
            filters.append(Order.shop_id.in_(list(shop_ids)))
        return await paginate_statement(self.db, Order, filters, args, options=ORDER_LOAD_OPTIONS)

    async def reference_id_exists(self, reference_id: str) -> bool:
        return await self.crud_order.exists(db=self.db, reference_id=reference_id)

    async def add(self, order: Order) -> Order:
        self.db.add(order)
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"[OrderRepository] Error adding order for account {order.account_id}: {e}", exc_info=True)
            raise
        logger.info(f"[OrderRepository] Order ID {order.id} ({order.reference_id}) added, pending commit.")
        return order

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    async def reload(self, order_ids: List[str]) -> List[Order]:
        stmt = (
            select(Order)
            .where(Order.id.in_(order_ids))
            .options(*ORDER_LOAD_OPTIONS)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        by_id = {order.id: order for order in result.scalars().all()}
        return [by_id[order_id] for order_id in order_ids if order_id in by_id]
