import logging
from typing import Annotated

from fastapi import Depends

from orders_api.auth.dependencies import AccountRepositoryDep, DbSessionDep
from orders_api.carts.repositories import SQLAlchemyCartRepository
from orders_api.catalog.repositories import SQLAlchemyCatalogRepository
from orders_api.fulfillment.repositories import SQLAlchemyFulfillmentMethodRepository
from orders_api.orders.interfaces.repositories import AbstractOrderRepository
from orders_api.orders.repositories import SQLAlchemyOrderRepository
from orders_api.orders.service import OrderService
from orders_api.payments.dependencies import PaymentServiceDep
from orders_api.shops.repositories import SQLAlchemyShopRepository

logger = logging.getLogger(__name__)


def get_order_repository(session: DbSessionDep) -> AbstractOrderRepository:
    """Fournit une instance du repository de commandes."""
    logger.debug("Providing SQLAlchemyOrderRepository")
    return SQLAlchemyOrderRepository(db_session=session)


OrderRepositoryDep = Annotated[AbstractOrderRepository, Depends(get_order_repository)]


def get_order_service(
    session: DbSessionDep,
    order_repository: OrderRepositoryDep,
    account_repository: AccountRepositoryDep,
    payment_service: PaymentServiceDep,
) -> OrderService:
    """Construit l'OrderService; tous les repositories partagent la session de la requête."""
    return OrderService(
        order_repository=order_repository,
        shop_repository=SQLAlchemyShopRepository(db_session=session),
        account_repository=account_repository,
        catalog_repository=SQLAlchemyCatalogRepository(db_session=session),
        fulfillment_method_repository=SQLAlchemyFulfillmentMethodRepository(db_session=session),
        cart_repository=SQLAlchemyCartRepository(db_session=session),
        payment_service=payment_service,
    )


OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
