"""Types d'entrée GraphQL de placeOrder et conversion vers PlaceOrderCommand."""
import logging
from datetime import datetime
from typing import List, Optional

import strawberry
from pydantic import ValidationError
from strawberry.scalars import JSON

from orders_api.core.ids import (
    NAMESPACE_CART,
    NAMESPACE_FULFILLMENT_METHOD,
    NAMESPACE_PRODUCT,
    NAMESPACE_SHOP,
    decode_opaque_id,
)
from orders_api.core.types import AddressInput
from orders_api.orders.exceptions import InvalidOrderInputException
from orders_api.orders.models import PlaceOrderCommand
from orders_api.orders.types import FulfillmentType
from orders_api.orders.utils import to_money

logger = logging.getLogger(__name__)


@strawberry.input
class ProductConfigurationInput:
    product_id: strawberry.ID
    product_variant_id: strawberry.ID


@strawberry.input
class OrderFulfillmentGroupItemInput:
    product_configuration: ProductConfigurationInput
    quantity: int
    # Prix affiché au client; vérifié contre le prix catalogue
    price: float
    added_at: Optional[datetime] = None


@strawberry.input
class OrderFulfillmentGroupDataInput:
    shipping_address: Optional[AddressInput] = None


@strawberry.input
class OrderFulfillmentGroupInput:
    items: List[OrderFulfillmentGroupItemInput]
    selected_fulfillment_method_id: strawberry.ID
    shop_id: strawberry.ID
    type: FulfillmentType
    data: Optional[OrderFulfillmentGroupDataInput] = None
    # Total affiché au client; vérifié contre le total calculé
    total_price: Optional[float] = None


@strawberry.input
class OrderInput:
    currency_code: str
    email: str
    fulfillment_groups: List[OrderFulfillmentGroupInput]
    shop_id: strawberry.ID
    cart_id: Optional[strawberry.ID] = None
    orderer_preferred_language: Optional[str] = None


@strawberry.input
class PaymentInput:
    method: str
    # Null : ce paiement règle le reste du total
    amount: Optional[float] = None
    billing_address: Optional[AddressInput] = None
    data: Optional[JSON] = None


@strawberry.input
class PlaceOrderInput:
    order: OrderInput
    payments: Optional[List[PaymentInput]] = None
    client_mutation_id: Optional[str] = None

    def to_command(self) -> PlaceOrderCommand:
        """Décode les identifiants opaques et valide les données de commande."""
        order = self.order
        shop_id = decode_opaque_id(NAMESPACE_SHOP, order.shop_id)
        payload = {
            "order": {
                "shop_id": shop_id,
                "cart_id": decode_opaque_id(NAMESPACE_CART, order.cart_id) if order.cart_id else None,
                "currency_code": order.currency_code,
                "email": order.email,
                "ordered_language": order.orderer_preferred_language,
                "fulfillment_groups": [
                    {
                        "shop_id": decode_opaque_id(NAMESPACE_SHOP, group.shop_id),
                        "type": group.type.value,
                        "selected_fulfillment_method_id": decode_opaque_id(
                            NAMESPACE_FULFILLMENT_METHOD, group.selected_fulfillment_method_id
                        ),
                        "shipping_address": (
                            group.data.shipping_address.to_dict()
                            if group.data and group.data.shipping_address else None
                        ),
                        "total_price": to_money(group.total_price) if group.total_price is not None else None,
                        "items": [
                            {
                                "product_configuration": {
                                    "product_id": decode_opaque_id(NAMESPACE_PRODUCT, item.product_configuration.product_id),
                                    "product_variant_id": decode_opaque_id(
                                        NAMESPACE_PRODUCT, item.product_configuration.product_variant_id
                                    ),
                                },
                                "quantity": item.quantity,
                                "price": to_money(item.price),
                                "added_at": item.added_at,
                            }
                            for item in group.items
                        ],
                    }
                    for group in order.fulfillment_groups
                ],
            },
            "payments": [
                {
                    "method": payment.method,
                    "amount": to_money(payment.amount) if payment.amount is not None else None,
                    "billing_address": payment.billing_address.to_dict() if payment.billing_address else None,
                    "data": payment.data or {},
                }
                for payment in self.payments or []
            ],
            "client_mutation_id": self.client_mutation_id,
        }
        try:
            return PlaceOrderCommand.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Données placeOrder invalides: {e}")
            details = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in e.errors()
            )
            raise InvalidOrderInputException(f"Données de commande invalides: {details}")
