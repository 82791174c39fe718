"""
Types GraphQL (Strawberry) des commandes.

Les objets sont construits à partir des modèles SQLModel déjà chargés et des
références préchargées (OrderReferences) : aucun champ imbriqué n'accède à la
base de données. Les identifiants exposés sont opaques.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Optional

import strawberry
from strawberry.scalars import JSON

from orders_api.accounts.models import AccountRead
from orders_api.catalog.models import TagRead
from orders_api.core.ids import (
    NAMESPACE_ACCOUNT,
    NAMESPACE_CART,
    NAMESPACE_FULFILLMENT_GROUP,
    NAMESPACE_FULFILLMENT_METHOD,
    NAMESPACE_ORDER,
    NAMESPACE_ORDER_ITEM,
    NAMESPACE_PAYMENT,
    NAMESPACE_PRODUCT,
    NAMESPACE_SHOP,
    NAMESPACE_TAG,
    encode_opaque_id,
)
from orders_api.core.graphql import to_graphql_error
from orders_api.core.exceptions import DomainException
from orders_api.core.pagination import ConnectionArgs, Page, paginate_sequence
from orders_api.core.types import Address, PageInfo, SortOrder
from orders_api.fulfillment.models import (
    FULFILLMENT_TYPE_DIGITAL,
    FULFILLMENT_TYPE_PICKUP,
    FULFILLMENT_TYPE_SHIPPING,
)
from orders_api.orders import models
from orders_api.orders.config import CURRENCY_FORMATS
from orders_api.orders.service import OrderReferences, order_summary
from orders_api.orders.utils import Summary, display_status, format_money, summary_of_group, to_money
from orders_api.shops.models import ShopRead


# --- Enums ---

@strawberry.enum
class FulfillmentType(Enum):
    shipping = FULFILLMENT_TYPE_SHIPPING
    pickup = FULFILLMENT_TYPE_PICKUP
    digital = FULFILLMENT_TYPE_DIGITAL


# Les valeurs sont les attributs de tri des objets paginés
@strawberry.enum(description="Champs de tri de `ordersByAccountId`.")
class OrdersByAccountIdSortByField(Enum):
    _id = "id"
    createdAt = "created_at"


@strawberry.enum(description="Champs de tri des articles d'un groupe d'expédition.")
class OrderFulfillmentGroupItemsSortByField(Enum):
    _id = "internal_id"
    addedAt = "added_at"


@strawberry.enum(description="Champs de tri des tags.")
class TagSortByField(Enum):
    _id = "internal_id"
    name = "name"
    position = "position"
    createdAt = "created_at"
    updatedAt = "updated_at"


def connection_args(first, last, after, before, sort_by: Enum, sort_order: SortOrder) -> ConnectionArgs:
    return ConnectionArgs(
        first=first,
        last=last,
        after=after,
        before=before,
        sort_by=sort_by.value,
        sort_order=sort_order.value,
    )


# --- Monnaie ---

@strawberry.type
class Currency:
    code: str
    symbol: str
    format: str

    @classmethod
    def from_code(cls, code: str) -> "Currency":
        currency = CURRENCY_FORMATS.get(code, {"symbol": code, "format": "%v %s"})
        return cls(code=code, symbol=currency["symbol"], format=currency["format"])


@strawberry.type(description="Montant dans une devise donnée.")
class Money:
    amount: float
    currency: Currency
    display_amount: str

    @classmethod
    def of(cls, amount: Decimal, currency_code: str) -> "Money":
        value = to_money(amount)
        return cls(
            amount=float(value),
            currency=Currency.from_code(currency_code),
            display_amount=format_money(value, currency_code),
        )


# --- Références ---

@strawberry.type
class Shop:
    id: strawberry.ID = strawberry.field(name="_id")
    name: str
    currency: Currency

    @classmethod
    def from_read(cls, shop: ShopRead) -> "Shop":
        return cls(
            id=strawberry.ID(encode_opaque_id(NAMESPACE_SHOP, shop.id)),
            name=shop.name,
            currency=Currency.from_code(shop.currency_code),
        )


@strawberry.type
class Account:
    id: strawberry.ID = strawberry.field(name="_id")
    name: Optional[str]
    primary_email_address: str

    @classmethod
    def from_read(cls, account: Optional[AccountRead]) -> Optional["Account"]:
        if account is None:
            return None
        return cls(
            id=strawberry.ID(encode_opaque_id(NAMESPACE_ACCOUNT, account.id)),
            name=account.name,
            primary_email_address=account.email,
        )


@strawberry.type
class Tag:
    id: strawberry.ID = strawberry.field(name="_id")
    name: str
    slug: Optional[str]
    position: Optional[int]
    created_at: datetime
    updated_at: datetime
    internal_id: strawberry.Private[str]

    @classmethod
    def from_read(cls, tag: TagRead) -> "Tag":
        return cls(
            id=strawberry.ID(encode_opaque_id(NAMESPACE_TAG, tag.id)),
            name=tag.name,
            slug=tag.slug,
            position=tag.position,
            created_at=tag.created_at,
            updated_at=tag.updated_at,
            internal_id=tag.id,
        )


@strawberry.type
class TagEdge:
    cursor: str
    node: Optional[Tag]


@strawberry.type(description="Connexion paginée de tags.")
class TagConnection:
    edges: List[TagEdge]
    nodes: List[Tag]
    page_info: PageInfo
    total_count: int

    @classmethod
    def from_page(cls, page: Page) -> "TagConnection":
        return cls(
            edges=[TagEdge(cursor=cursor, node=node) for cursor, node in zip(page.cursors, page.nodes)],
            nodes=page.nodes,
            page_info=PageInfo.from_page(page),
            total_count=page.total_count,
        )


# --- Articles ---

@strawberry.type
class ImageSizes:
    large: Optional[str] = None
    medium: Optional[str] = None
    original: Optional[str] = None
    small: Optional[str] = None
    thumbnail: Optional[str] = None


@strawberry.type
class ProductConfiguration:
    product_id: strawberry.ID
    product_variant_id: strawberry.ID


@strawberry.type(description="Ligne d'une commande.")
class OrderItem:
    id: strawberry.ID = strawberry.field(name="_id")
    added_at: Optional[datetime]
    created_at: datetime
    updated_at: Optional[datetime]
    image_urls: Optional[ImageSizes] = strawberry.field(name="imageURLs")
    is_taxable: bool
    option_title: Optional[str]
    price: Money
    product_configuration: ProductConfiguration
    product_slug: Optional[str]
    product_type: Optional[str]
    product_vendor: Optional[str]
    quantity: int
    shop: Shop
    status: str
    subtotal: Money
    title: str
    variant_title: Optional[str]
    internal_id: strawberry.Private[str]
    tag_nodes: strawberry.Private[List[Tag]]

    @strawberry.field(description="Tags du produit, paginés.")
    def product_tags(
        self,
        after: Optional[str] = None,
        before: Optional[str] = None,
        first: Optional[int] = None,
        last: Optional[int] = None,
        sort_order: SortOrder = SortOrder.asc,
        sort_by: TagSortByField = TagSortByField._id,
    ) -> TagConnection:
        try:
            page = paginate_sequence(
                self.tag_nodes,
                connection_args(first, last, after, before, sort_by, sort_order),
                id_getter=lambda tag: tag.internal_id,
            )
        except DomainException as e:
            raise to_graphql_error(e)
        return TagConnection.from_page(page)

    @classmethod
    def from_model(cls, item: models.OrderItem, currency_code: str, refs: OrderReferences) -> "OrderItem":
        image_urls = item.image_urls or {}
        return cls(
            id=strawberry.ID(encode_opaque_id(NAMESPACE_ORDER_ITEM, item.id)),
            added_at=item.added_at,
            created_at=item.created_at,
            updated_at=item.updated_at,
            image_urls=ImageSizes(
                large=image_urls.get("large"),
                medium=image_urls.get("medium"),
                original=image_urls.get("original"),
                small=image_urls.get("small"),
                thumbnail=image_urls.get("thumbnail"),
            ) if image_urls else None,
            is_taxable=item.is_taxable,
            option_title=item.option_title,
            price=Money.of(item.price, currency_code),
            product_configuration=ProductConfiguration(
                product_id=strawberry.ID(encode_opaque_id(NAMESPACE_PRODUCT, item.product_id)),
                product_variant_id=strawberry.ID(encode_opaque_id(NAMESPACE_PRODUCT, item.variant_id)),
            ),
            product_slug=item.product_slug,
            product_type=item.product_type,
            product_vendor=item.product_vendor,
            quantity=item.quantity,
            shop=Shop.from_read(refs.shops[item.shop_id]),
            status=item.status,
            subtotal=Money.of(item.subtotal, currency_code),
            title=item.title,
            variant_title=item.variant_title,
            internal_id=item.id,
            tag_nodes=[Tag.from_read(refs.tags[tag_id]) for tag_id in item.product_tag_ids or [] if tag_id in refs.tags],
        )


@strawberry.type
class OrderItemEdge:
    cursor: str
    node: Optional[OrderItem]


@strawberry.type(description="Connexion paginée des articles d'un groupe d'expédition.")
class OrderItemConnection:
    edges: List[OrderItemEdge]
    nodes: List[OrderItem]
    page_info: PageInfo
    total_count: int

    @classmethod
    def from_page(cls, page: Page) -> "OrderItemConnection":
        return cls(
            edges=[OrderItemEdge(cursor=cursor, node=node) for cursor, node in zip(page.cursors, page.nodes)],
            nodes=page.nodes,
            page_info=PageInfo.from_page(page),
            total_count=page.total_count,
        )


# --- Expédition ---

@strawberry.type
class FulfillmentMethod:
    id: strawberry.ID = strawberry.field(name="_id")
    name: str
    display_name: str
    carrier: Optional[str]
    group: Optional[str]
    fulfillment_types: List[FulfillmentType]


@strawberry.type(description="Méthode d'expédition choisie et son prix.")
class FulfillmentOption:
    fulfillment_method: Optional[FulfillmentMethod]
    price: Money
    handling_price: Money


@strawberry.type
class ShippingOrderFulfillmentGroupData:
    shipping_address: Address


OrderFulfillmentGroupData = Annotated[
    ShippingOrderFulfillmentGroupData,
    strawberry.union("OrderFulfillmentGroupData", description="Données propres au type d'expédition."),
]


@strawberry.type(description="Montants agrégés d'une commande ou d'un groupe.")
class OrderSummary:
    discount_total: Money
    fulfillment_total: Money
    item_total: Money
    tax_total: Money
    taxable_amount: Money
    total: Money

    @classmethod
    def from_summary(cls, summary: Summary, currency_code: str) -> "OrderSummary":
        return cls(
            discount_total=Money.of(summary.discount_total, currency_code),
            fulfillment_total=Money.of(summary.fulfillment_total, currency_code),
            item_total=Money.of(summary.item_total, currency_code),
            tax_total=Money.of(summary.tax_total, currency_code),
            taxable_amount=Money.of(summary.taxable_amount, currency_code),
            total=Money.of(summary.total, currency_code),
        )


@strawberry.type(description="Articles d'une commande expédiés ensemble.")
class OrderFulfillmentGroup:
    id: strawberry.ID = strawberry.field(name="_id")
    data: Optional[OrderFulfillmentGroupData]
    selected_fulfillment_option: FulfillmentOption
    shop: Shop
    status: str
    summary: OrderSummary
    total_item_quantity: int
    tracking: Optional[str]
    type: FulfillmentType
    item_nodes: strawberry.Private[List[OrderItem]]

    @strawberry.field
    def display_status(self, language: str) -> str:
        return display_status(self.status, language)

    @strawberry.field(description="Articles du groupe, paginés.")
    def items(
        self,
        after: Optional[str] = None,
        before: Optional[str] = None,
        first: Optional[int] = None,
        last: Optional[int] = None,
        sort_order: SortOrder = SortOrder.asc,
        sort_by: OrderFulfillmentGroupItemsSortByField = OrderFulfillmentGroupItemsSortByField.addedAt,
    ) -> OrderItemConnection:
        try:
            page = paginate_sequence(
                self.item_nodes,
                connection_args(first, last, after, before, sort_by, sort_order),
                id_getter=lambda item: item.internal_id,
            )
        except DomainException as e:
            raise to_graphql_error(e)
        return OrderItemConnection.from_page(page)

    @classmethod
    def from_model(
        cls, group: models.OrderFulfillmentGroup, currency_code: str, refs: OrderReferences
    ) -> "OrderFulfillmentGroup":
        method = group.selected_fulfillment_method or {}
        data = None
        if group.type == FULFILLMENT_TYPE_SHIPPING and group.shipping_address:
            data = ShippingOrderFulfillmentGroupData(shipping_address=Address.from_dict(group.shipping_address))
        return cls(
            id=strawberry.ID(encode_opaque_id(NAMESPACE_FULFILLMENT_GROUP, group.id)),
            data=data,
            selected_fulfillment_option=FulfillmentOption(
                fulfillment_method=FulfillmentMethod(
                    id=strawberry.ID(encode_opaque_id(NAMESPACE_FULFILLMENT_METHOD, method["id"])),
                    name=method["name"],
                    display_name=method.get("label") or method["name"],
                    carrier=method.get("carrier"),
                    group=method.get("group"),
                    fulfillment_types=[FulfillmentType(value) for value in method.get("fulfillment_types", [])],
                ) if method else None,
                price=Money.of(group.fulfillment_price, currency_code),
                handling_price=Money.of(group.handling_price, currency_code),
            ),
            shop=Shop.from_read(refs.shops[group.shop_id]),
            status=group.status,
            summary=OrderSummary.from_summary(summary_of_group(group), currency_code),
            total_item_quantity=sum(item.quantity for item in group.items),
            tracking=group.tracking,
            type=FulfillmentType(group.type),
            item_nodes=[OrderItem.from_model(item, currency_code, refs) for item in group.items],
        )


# --- Notes et paiements ---

@strawberry.type
class OrderNote:
    account: Optional[Account]
    content: str
    created_at: datetime
    updated_at: datetime


@strawberry.type
class Payment:
    id: strawberry.ID = strawberry.field(name="_id")
    amount: Money
    billing_address: Optional[Address]
    display_name: str
    method: str
    mode: str
    processor: str
    status: str
    transaction_id: str
    data: Optional[JSON] = None

    @classmethod
    def from_model(cls, payment: models.OrderPayment) -> "Payment":
        return cls(
            id=strawberry.ID(encode_opaque_id(NAMESPACE_PAYMENT, payment.id)),
            amount=Money.of(payment.amount, payment.currency_code),
            billing_address=Address.from_dict(payment.billing_address),
            display_name=payment.display_name,
            method=payment.method,
            mode=payment.mode,
            processor=payment.processor,
            status=payment.status,
            transaction_id=payment.transaction_id,
            data=payment.data or None,
        )


# --- Commande ---

@strawberry.type(description="Commande passée sur une boutique.")
class Order:
    id: strawberry.ID = strawberry.field(name="_id")
    account: Optional[Account]
    cart_id: Optional[strawberry.ID]
    created_at: datetime
    email: Optional[str]
    fulfillment_groups: List[OrderFulfillmentGroup]
    notes: List[OrderNote]
    payments: List[Payment]
    reference_id: str
    shop: Shop
    status: str
    summary: OrderSummary
    total_item_quantity: int
    updated_at: datetime

    @strawberry.field
    def display_status(self, language: str) -> str:
        return display_status(self.status, language)

    @classmethod
    def from_model(cls, order: models.Order, refs: OrderReferences) -> "Order":
        groups = [
            OrderFulfillmentGroup.from_model(group, order.currency_code, refs)
            for group in order.fulfillment_groups
        ]
        return cls(
            id=strawberry.ID(encode_opaque_id(NAMESPACE_ORDER, order.id)),
            account=Account.from_read(refs.accounts.get(order.account_id)) if order.account_id else None,
            cart_id=strawberry.ID(encode_opaque_id(NAMESPACE_CART, order.cart_id)) if order.cart_id else None,
            created_at=order.created_at,
            email=order.email,
            fulfillment_groups=groups,
            notes=[
                OrderNote(
                    account=Account.from_read(refs.accounts.get(note.account_id)) if note.account_id else None,
                    content=note.content,
                    created_at=note.created_at,
                    updated_at=note.updated_at,
                )
                for note in order.notes
            ],
            payments=[Payment.from_model(payment) for payment in order.payments],
            reference_id=order.reference_id,
            shop=Shop.from_read(refs.shops[order.shop_id]),
            status=order.status,
            summary=OrderSummary.from_summary(order_summary(order), order.currency_code),
            total_item_quantity=sum(group.total_item_quantity for group in groups),
            updated_at=order.updated_at,
        )


@strawberry.type
class OrdersByAccountIdEdge:
    cursor: str
    node: Optional[Order]


@strawberry.type(description="Connexion paginée des commandes d'un compte.")
class OrdersByAccountIdConnection:
    edges: List[OrdersByAccountIdEdge]
    nodes: List[Order]
    page_info: PageInfo
    total_count: int

    @classmethod
    def from_page(cls, page: Page) -> "OrdersByAccountIdConnection":
        return cls(
            edges=[OrdersByAccountIdEdge(cursor=cursor, node=node) for cursor, node in zip(page.cursors, page.nodes)],
            nodes=page.nodes,
            page_info=PageInfo.from_page(page),
            total_count=page.total_count,
        )


@strawberry.type(description="Résultat de placeOrder.")
class PlaceOrderPayload:
    orders: List[Order]
    client_mutation_id: Optional[str] = None
    # Token d'accès d'une commande anonyme, renvoyé une seule fois
    token: Optional[str] = None
