import logging
from typing import List, Optional

import strawberry
from strawberry.fastapi import GraphQLRouter
from strawberry.types import Info

from orders_api.auth.dependencies import OptionalCurrentAccount
from orders_api.config import settings
from orders_api.core.graphql import to_graphql_error
from orders_api.core.ids import NAMESPACE_ACCOUNT, NAMESPACE_ORDER, NAMESPACE_SHOP, decode_opaque_id
from orders_api.core.types import SortOrder
from orders_api.orders.dependencies import OrderServiceDep
from orders_api.orders.inputs import PlaceOrderInput
from orders_api.orders.service import OrderService
from orders_api.orders.types import (
    Order,
    OrdersByAccountIdConnection,
    OrdersByAccountIdSortByField,
    PlaceOrderPayload,
    connection_args,
)

logger = logging.getLogger(__name__)


async def get_context(service: OrderServiceDep, current_account: OptionalCurrentAccount):
    """Contexte GraphQL construit par FastAPI (les dependency_overrides s'appliquent)."""
    return {"order_service": service, "account": current_account}


def _service(info: Info) -> OrderService:
    return info.context["order_service"]


async def _render(service: OrderService, orders) -> List[Order]:
    refs = await service.load_references(orders)
    return [Order.from_model(order, refs) for order in orders]


@strawberry.type
class Query:

    @strawberry.field(description="Commande par ID interne. `token` permet l'accès à une commande anonyme.")
    async def order_by_id(
        self,
        info: Info,
        id: strawberry.ID,
        shop_id: strawberry.ID,
        token: Optional[str] = None,
    ) -> Optional[Order]:
        service = _service(info)
        account = info.context["account"]
        try:
            order = await service.get_order_by_id(
                order_id=decode_opaque_id(NAMESPACE_ORDER, id),
                shop_id=decode_opaque_id(NAMESPACE_SHOP, shop_id),
                token=token,
                account=account,
            )
            if order is None:
                logger.debug(f"Commande {id} non trouvée.")
                return None
            return (await _render(service, [order]))[0]
        except Exception as e:
            raise to_graphql_error(e)

    @strawberry.field(description="Commande par référence client.")
    async def order_by_reference_id(
        self,
        info: Info,
        id: strawberry.ID,
        shop_id: strawberry.ID,
        token: Optional[str] = None,
    ) -> Optional[Order]:
        service = _service(info)
        try:
            order = await service.get_order_by_reference_id(
                reference_id=id,
                shop_id=decode_opaque_id(NAMESPACE_SHOP, shop_id),
                token=token,
                account=info.context["account"],
            )
            if order is None:
                return None
            return (await _render(service, [order]))[0]
        except Exception as e:
            raise to_graphql_error(e)

    @strawberry.field(description="Commandes d'un compte, par défaut de la plus récente à la plus ancienne.")
    async def orders_by_account_id(
        self,
        info: Info,
        account_id: strawberry.ID,
        order_status: Optional[List[str]] = None,
        shop_ids: Optional[List[strawberry.ID]] = None,
        after: Optional[str] = None,
        before: Optional[str] = None,
        first: Optional[int] = None,
        last: Optional[int] = None,
        sort_order: SortOrder = SortOrder.desc,
        sort_by: OrdersByAccountIdSortByField = OrdersByAccountIdSortByField.createdAt,
    ) -> OrdersByAccountIdConnection:
        service = _service(info)
        try:
            page = await service.list_orders_by_account(
                account_id=decode_opaque_id(NAMESPACE_ACCOUNT, account_id),
                requester=info.context["account"],
                args=connection_args(first, last, after, before, sort_by, sort_order),
                order_status=order_status,
                shop_ids=[decode_opaque_id(NAMESPACE_SHOP, shop_id) for shop_id in shop_ids or []],
            )
            rendered = await _render(service, page.nodes)
        except Exception as e:
            raise to_graphql_error(e)
        page.nodes = rendered
        return OrdersByAccountIdConnection.from_page(page)


@strawberry.type
class Mutation:

    @strawberry.mutation(description="Passe une commande si tous les paiements sont autorisés.")
    async def place_order(self, info: Info, input: PlaceOrderInput) -> PlaceOrderPayload:
        service = _service(info)
        try:
            command = input.to_command()
            placed = await service.place_order(command, account=info.context["account"])
        except Exception as e:
            raise to_graphql_error(e)
        try:
            orders = await _render(service, placed.orders)
        except Exception as e:
            # Les commandes sont déjà enregistrées et les paiements autorisés
            references = ", ".join(order.reference_id for order in placed.orders)
            logger.error(f"placeOrder: commande(s) {references} créée(s) mais rendu impossible: {e}")
            raise to_graphql_error(e)
        logger.info(f"placeOrder: {len(orders)} commande(s) créée(s) (clientMutationId={input.client_mutation_id})")
        return PlaceOrderPayload(
            orders=orders,
            client_mutation_id=input.client_mutation_id,
            token=placed.token,
        )


schema = strawberry.Schema(query=Query, mutation=Mutation)

graphql_router = GraphQLRouter(
    schema,
    context_getter=get_context,
    graphql_ide="graphiql" if settings.GRAPHIQL_ENABLED else None,
)
