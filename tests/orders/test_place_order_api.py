import logging
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orders_api.carts.models import Cart
from orders_api.core.ids import NAMESPACE_ORDER, NAMESPACE_SHOP, decode_opaque_id, encode_opaque_id
from orders_api.main import app
from orders_api.orders.dependencies import get_order_repository
from orders_api.orders.models import Order, OrderItem, OrderPayment
from orders_api.orders.repositories import SQLAlchemyOrderRepository
from orders_api.orders.service import OrderService
from orders_api.payments.dependencies import get_payment_method_registry
from orders_api.payments.exceptions import PaymentDeclinedException
from orders_api.payments.methods import AbstractPaymentMethod, IOUPaymentMethod, PaymentMethodRegistry

from tests.conftest import error_codes, execute_graphql

PLACE_ORDER = """
mutation PlaceOrder($input: PlaceOrderInput!) {
  placeOrder(input: $input) {
    clientMutationId
    token
    orders {
      _id
      referenceId
      email
      status
      displayStatus(language: "fr")
      totalItemQuantity
      cartId
      account { _id }
      shop { _id name }
      summary {
        itemTotal { amount displayAmount }
        fulfillmentTotal { amount }
        taxTotal { amount }
        discountTotal { amount }
        total { amount currency { code symbol } }
      }
      payments { amount { amount } displayName method status }
      fulfillmentGroups {
        type
        selectedFulfillmentOption {
          fulfillmentMethod { displayName carrier fulfillmentTypes }
          price { amount }
          handlingPrice { amount }
        }
        data { ... on ShippingOrderFulfillmentGroupData { shippingAddress { city fullName } } }
        items { totalCount nodes { title quantity price { amount } subtotal { amount } } }
      }
    }
  }
}
"""


async def count_rows(session: AsyncSession, model) -> int:
    return await session.scalar(select(func.count()).select_from(model))


@pytest.mark.asyncio
async def test_place_order_for_account(test_client: AsyncClient, db_session: AsyncSession, auth_headers, test_account,
                                       test_cart, place_order_input):
    result = await execute_graphql(test_client, PLACE_ORDER, {"input": place_order_input(cart=test_cart)}, auth_headers)
    assert "errors" not in result, result

    payload = result["data"]["placeOrder"]
    assert payload["clientMutationId"] == "mutation-1"
    # Pas de token pour une commande rattachée à un compte
    assert payload["token"] is None
    assert len(payload["orders"]) == 1

    order = payload["orders"][0]
    internal_id = decode_opaque_id(NAMESPACE_ORDER, order["_id"])
    assert order["referenceId"] != internal_id
    assert order["status"] == "new"
    assert order["displayStatus"] == "Nouvelle"
    assert order["totalItemQuantity"] == 3
    assert order["account"] is not None
    assert order["summary"]["itemTotal"]["amount"] == 24.5
    assert order["summary"]["itemTotal"]["displayAmount"] == "24.50 €"
    assert order["summary"]["fulfillmentTotal"]["amount"] == 6.0
    assert order["summary"]["taxTotal"]["amount"] == 0.0
    assert order["summary"]["discountTotal"]["amount"] == 0.0
    assert order["summary"]["total"]["amount"] == 30.5
    assert order["summary"]["total"]["currency"] == {"code": "EUR", "symbol": "€"}

    assert order["payments"] == [
        {"amount": {"amount": 30.5}, "displayName": "IOU from Jeanne Martin", "method": "iou_example", "status": "created"}
    ]

    group = order["fulfillmentGroups"][0]
    assert group["type"] == "shipping"
    assert group["selectedFulfillmentOption"]["fulfillmentMethod"]["displayName"] == "Colissimo 48h"
    assert group["selectedFulfillmentOption"]["fulfillmentMethod"]["fulfillmentTypes"] == ["shipping"]
    assert group["selectedFulfillmentOption"]["price"]["amount"] == 5.0
    assert group["selectedFulfillmentOption"]["handlingPrice"]["amount"] == 1.0
    assert group["data"]["shippingAddress"] == {"city": "Nantes", "fullName": "Jeanne Martin"}
    assert group["items"]["totalCount"] == 2
    assert {node["title"] for node in group["items"]["nodes"]} == {"Rosier grimpant", "Graines de tomate"}

    # Le panier est supprimé avec la création de la commande
    assert await count_rows(db_session, Cart) == 0
    stored = await db_session.get(Order, internal_id)
    assert stored.account_id == test_account.id
    assert stored.anonymous_access_token_hash is None


@pytest.mark.asyncio
async def test_anonymous_order_returns_token_granting_access(test_client: AsyncClient, db_session: AsyncSession,
                                                             test_shop, place_order_input):
    result = await execute_graphql(test_client, PLACE_ORDER, {"input": place_order_input()})
    assert "errors" not in result, result
    payload = result["data"]["placeOrder"]
    token = payload["token"]
    assert token
    order_id = payload["orders"][0]["_id"]
    assert payload["orders"][0]["account"] is None

    # Seul le hash du token est stocké
    stored = await db_session.get(Order, decode_opaque_id(NAMESPACE_ORDER, order_id))
    assert stored.anonymous_access_token_hash and stored.anonymous_access_token_hash != token

    query = "query($id: ID!, $shopId: ID!, $token: String) { orderById(id: $id, shopId: $shopId, token: $token) { _id } }"
    variables = {"id": order_id, "shopId": encode_opaque_id(NAMESPACE_SHOP, test_shop.id)}

    granted = await execute_graphql(test_client, query, {**variables, "token": token})
    assert granted["data"]["orderById"]["_id"] == order_id

    denied = await execute_graphql(test_client, query, {**variables, "token": "mauvais-token"})
    assert error_codes(denied) == ["access-denied"]


@pytest.mark.asyncio
async def test_client_mutation_id_is_optional(test_client: AsyncClient, place_order_input):
    order_input = place_order_input()
    del order_input["clientMutationId"]
    result = await execute_graphql(test_client, PLACE_ORDER, {"input": order_input})
    assert "errors" not in result, result
    assert result["data"]["placeOrder"]["clientMutationId"] is None


@pytest.mark.asyncio
async def test_price_mismatch_rejects_order(test_client: AsyncClient, db_session: AsyncSession, place_order_input):
    order_input = place_order_input()
    order_input["order"]["fulfillmentGroups"][0]["items"][0]["price"] = 8.00
    result = await execute_graphql(test_client, PLACE_ORDER, {"input": order_input})
    assert error_codes(result) == ["invalid-price"]
    assert result["data"] is None
    assert await count_rows(db_session, Order) == 0


@pytest.mark.asyncio
async def test_total_price_mismatch_rejects_order(test_client: AsyncClient, db_session: AsyncSession, place_order_input):
    order_input = place_order_input()
    order_input["order"]["fulfillmentGroups"][0]["totalPrice"] = 24.50
    result = await execute_graphql(test_client, PLACE_ORDER, {"input": order_input})
    assert error_codes(result) == ["invalid-price"]
    assert await count_rows(db_session, Order) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity", [0, -2])
async def test_quantity_must_be_positive(test_client: AsyncClient, db_session: AsyncSession, place_order_input, quantity):
    order_input = place_order_input()
    order_input["order"]["fulfillmentGroups"][0]["items"][0]["quantity"] = quantity
    result = await execute_graphql(test_client, PLACE_ORDER, {"input": order_input})
    assert error_codes(result) == ["invalid-parameter"]
    assert await count_rows(db_session, Order) == 0


@pytest.mark.asyncio
async def test_shipping_group_requires_address(test_client: AsyncClient, place_order_input):
    order_input = place_order_input()
    del order_input["order"]["fulfillmentGroups"][0]["data"]
    result = await execute_graphql(test_client, PLACE_ORDER, {"input": order_input})
    assert error_codes(result) == ["invalid-parameter"]


@pytest.mark.asyncio
async def test_currency_must_match_shop(test_client: AsyncClient, place_order_input):
    result = await execute_graphql(test_client, PLACE_ORDER, {"input": place_order_input(currencyCode="USD")})
    assert error_codes(result) == ["invalid-parameter"]


@pytest.mark.asyncio
async def test_unknown_shop(test_client: AsyncClient, place_order_input):
    order_input = place_order_input(shopId=encode_opaque_id(NAMESPACE_SHOP, "absente"))
    result = await execute_graphql(test_client, PLACE_ORDER, {"input": order_input})
    assert error_codes(result) == ["not-found"]


@pytest.mark.asyncio
async def test_cart_of_another_account_is_refused(test_client: AsyncClient, db_session: AsyncSession, other_auth_headers,
                                                  test_cart, place_order_input):
    result = await execute_graphql(test_client, PLACE_ORDER, {"input": place_order_input(cart=test_cart)}, other_auth_headers)
    assert error_codes(result) == ["access-denied"]
    assert await count_rows(db_session, Cart) == 1


@pytest.mark.asyncio
async def test_split_payment_with_remainder(test_client: AsyncClient, db_session: AsyncSession, place_order_input):
    payments = [
        {"method": "iou_example", "amount": 10.00, "data": {"fullName": "Jeanne Martin"}},
        {"method": "iou_example", "data": {"fullName": "Paul Martin"}},
    ]
    result = await execute_graphql(test_client, PLACE_ORDER, {"input": place_order_input(payments=payments)})
    assert "errors" not in result, result
    amounts = [payment["amount"]["amount"] for payment in result["data"]["placeOrder"]["orders"][0]["payments"]]
    assert sorted(amounts) == [10.0, 20.5]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payments",
    [
        [{"method": "iou_example", "data": {"fullName": "A"}}, {"method": "iou_example", "data": {"fullName": "B"}}],
        [{"method": "iou_example", "amount": 12.00, "data": {"fullName": "A"}}],
        [{"method": "inconnue", "data": {}}],
    ],
)
async def test_invalid_payments_are_rejected(test_client: AsyncClient, db_session: AsyncSession, place_order_input, payments):
    result = await execute_graphql(test_client, PLACE_ORDER, {"input": place_order_input(payments=payments)})
    assert error_codes(result) == ["invalid-payment"]
    assert await count_rows(db_session, Order) == 0


@pytest.mark.asyncio
async def test_declined_payment_creates_no_order(test_client: AsyncClient, db_session: AsyncSession, test_cart,
                                                 auth_headers, place_order_input):
    payments = [{"method": "iou_example", "data": {}}]
    result = await execute_graphql(
        test_client, PLACE_ORDER, {"input": place_order_input(cart=test_cart, payments=payments)}, auth_headers
    )
    assert error_codes(result) == ["payment-failed"]
    assert await count_rows(db_session, Order) == 0
    assert await count_rows(db_session, OrderPayment) == 0
    # Le panier reste disponible
    assert await count_rows(db_session, Cart) == 1


@pytest.mark.asyncio
async def test_declined_second_payment_voids_first(test_client: AsyncClient, db_session: AsyncSession, place_order_input):
    iou = IOUPaymentMethod()
    iou.void = AsyncMock()
    declining = AsyncMock(spec=AbstractPaymentMethod)
    declining.name = "declining_example"
    declining.authorize.side_effect = PaymentDeclinedException("Refusé par la banque.")
    app.dependency_overrides[get_payment_method_registry] = lambda: PaymentMethodRegistry([iou, declining])

    payments = [
        {"method": "iou_example", "amount": 10.00, "data": {"fullName": "Jeanne Martin"}},
        {"method": "declining_example"},
    ]
    result = await execute_graphql(test_client, PLACE_ORDER, {"input": place_order_input(payments=payments)})

    assert error_codes(result) == ["payment-failed"]
    iou.void.assert_awaited_once()
    voided = iou.void.call_args[0][0]
    assert voided.amount == Decimal("10.00")
    assert await count_rows(db_session, Order) == 0


@pytest.mark.asyncio
async def test_naive_added_at_is_stored_as_utc(test_client: AsyncClient, db_session: AsyncSession, place_order_input):
    order_input = place_order_input()
    order_input["order"]["fulfillmentGroups"][0]["items"][0]["addedAt"] = "2024-05-01T10:00:00"
    result = await execute_graphql(test_client, PLACE_ORDER, {"input": order_input})
    assert "errors" not in result, result

    added_at = await db_session.scalar(select(OrderItem.added_at).where(OrderItem.title == "Rosier grimpant"))
    assert (added_at.year, added_at.month, added_at.day, added_at.hour) == (2024, 5, 1, 10)


class FailingOrderRepository(SQLAlchemyOrderRepository):

    async def add(self, order: Order) -> Order:
        raise SQLAlchemyError("Connexion perdue")


@pytest.mark.asyncio
async def test_persistence_failure_voids_payments(test_client: AsyncClient, db_session: AsyncSession, place_order_input):
    order_input = place_order_input()
    iou = IOUPaymentMethod()
    iou.void = AsyncMock()
    app.dependency_overrides[get_payment_method_registry] = lambda: PaymentMethodRegistry([iou])
    app.dependency_overrides[get_order_repository] = lambda: FailingOrderRepository(db_session=db_session)

    result = await execute_graphql(test_client, PLACE_ORDER, {"input": order_input})

    assert error_codes(result) == ["server-error"]
    iou.void.assert_awaited_once()
    assert iou.void.call_args[0][0].amount == Decimal("30.50")
    assert await count_rows(db_session, Order) == 0


@pytest.mark.asyncio
async def test_render_failure_after_commit_logs_reference(test_client: AsyncClient, db_session: AsyncSession,
                                                         place_order_input, monkeypatch, caplog):
    order_input = place_order_input()
    monkeypatch.setattr(OrderService, "load_references", AsyncMock(side_effect=RuntimeError("Rendu impossible")))

    with caplog.at_level(logging.ERROR, logger="orders_api.orders.router"):
        result = await execute_graphql(test_client, PLACE_ORDER, {"input": order_input})

    assert error_codes(result) == ["server-error"]
    # La commande est bien enregistrée
    assert await count_rows(db_session, Order) == 1
    reference_id = await db_session.scalar(select(Order.reference_id))
    assert any(reference_id in record.getMessage() for record in caplog.records)
