import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from orders_api.accounts.models import AccountRead
from orders_api.accounts.repositories import SQLAlchemyAccountRepository
from orders_api.carts.repositories import SQLAlchemyCartRepository
from orders_api.catalog.models import CatalogVariantRead, TagRead
from orders_api.catalog.repositories import SQLAlchemyCatalogRepository
from orders_api.config import settings
from orders_api.core.pagination import ConnectionArgs, Page
from orders_api.core.utils import utcnow
from orders_api.fulfillment.models import FULFILLMENT_TYPE_SHIPPING, FULFILLMENT_TYPES, FulfillmentMethodRead
from orders_api.fulfillment.repositories import SQLAlchemyFulfillmentMethodRepository
from orders_api.orders.config import (
    ALLOWED_ORDER_STATUS,
    MAX_FULFILLMENT_GROUPS,
    MAX_ITEMS_PER_GROUP,
    ORDER_STATUS_NEW,
    REFERENCE_ID_MAX_ATTEMPTS,
)
from orders_api.orders.exceptions import (
    CartNotFoundException,
    FulfillmentMethodNotFoundException,
    InvalidOrderInputException,
    OrderAccessDeniedException,
    OrderCreationFailedException,
    PriceMismatchException,
    ShopNotFoundException,
    VariantNotFoundException,
)
from orders_api.orders.interfaces.repositories import AbstractOrderRepository
from orders_api.orders.models import (
    Order,
    OrderCreate,
    OrderFulfillmentGroup,
    OrderFulfillmentGroupCreate,
    OrderItem,
    OrderPayment,
    PlaceOrderCommand,
)
from orders_api.orders.utils import (
    Summary,
    combine_summaries,
    compute_group_summary,
    generate_access_token,
    generate_reference_id,
    hash_token,
    summary_of_group,
    to_money,
    tokens_match,
)
from orders_api.payments.methods import PaymentAuthorization, PaymentRequest
from orders_api.payments.service import PaymentService
from orders_api.shops.models import ShopRead
from orders_api.shops.repositories import SQLAlchemyShopRepository

logger = logging.getLogger(__name__)


@dataclass
class PlacedOrders:
    """Résultat de placeOrder. `token` n'est renseigné que pour une commande anonyme."""
    orders: List[Order]
    token: Optional[str] = None


@dataclass
class OrderReferences:
    """Données liées préchargées pour le rendu GraphQL des commandes."""
    shops: Dict[str, ShopRead] = field(default_factory=dict)
    accounts: Dict[str, AccountRead] = field(default_factory=dict)
    tags: Dict[str, TagRead] = field(default_factory=dict)


@dataclass
class _PreparedGroup:
    data: OrderFulfillmentGroupCreate
    method: FulfillmentMethodRead
    items: List[OrderItem]
    summary: Summary


class OrderService:
    """Service applicatif pour la lecture et la création des commandes."""

    def __init__(
        self,
        order_repository: AbstractOrderRepository,
        shop_repository: SQLAlchemyShopRepository,
        account_repository: SQLAlchemyAccountRepository,
        catalog_repository: SQLAlchemyCatalogRepository,
        fulfillment_method_repository: SQLAlchemyFulfillmentMethodRepository,
        cart_repository: SQLAlchemyCartRepository,
        payment_service: PaymentService,
    ):
        self.order_repository = order_repository
        self.shop_repository = shop_repository
        self.account_repository = account_repository
        self.catalog_repository = catalog_repository
        self.fulfillment_method_repository = fulfillment_method_repository
        self.cart_repository = cart_repository
        self.payment_service = payment_service

    # --- Lecture ---

    @staticmethod
    def _can_read(order: Order, token: Optional[str], account: Optional[AccountRead]) -> bool:
        if account is not None and (account.is_admin or order.account_id == account.id):
            return True
        return tokens_match(token, order.anonymous_access_token_hash)

    def _check_access(self, order: Order, token: Optional[str], account: Optional[AccountRead]) -> Order:
        if not self._can_read(order, token, account):
            logger.warning(
                f"[OrderService] Accès refusé à la commande {order.id} "
                f"(compte: {account.id if account else 'anonyme'})"
            )
            raise OrderAccessDeniedException()
        return order

    async def get_order_by_id(
        self,
        order_id: str,
        shop_id: str,
        token: Optional[str] = None,
        account: Optional[AccountRead] = None,
    ) -> Optional[Order]:
        """Commande d'une boutique par ID interne; None si elle n'existe pas."""
        logger.debug(f"[OrderService] Récupération commande ID: {order_id} (boutique {shop_id})")
        order = await self.order_repository.get_by_id(order_id, shop_id)
        if order is None:
            return None
        return self._check_access(order, token, account)

    async def get_order_by_reference_id(
        self,
        reference_id: str,
        shop_id: str,
        token: Optional[str] = None,
        account: Optional[AccountRead] = None,
    ) -> Optional[Order]:
        logger.debug(f"[OrderService] Récupération commande référence: {reference_id} (boutique {shop_id})")
        order = await self.order_repository.get_by_reference_id(reference_id, shop_id)
        if order is None:
            return None
        return self._check_access(order, token, account)

    async def list_orders_by_account(
        self,
        account_id: str,
        requester: Optional[AccountRead],
        args: ConnectionArgs,
        order_status: Optional[Sequence[str]] = None,
        shop_ids: Optional[Sequence[str]] = None,
    ) -> Page[Order]:
        """Commandes d'un compte, pour le titulaire du compte ou un administrateur."""
        if requester is None or (requester.id != account_id and not requester.is_admin):
            logger.warning(
                f"[OrderService] Listage refusé des commandes du compte {account_id} "
                f"(demandeur: {requester.id if requester else 'anonyme'})"
            )
            raise OrderAccessDeniedException()

        if order_status:
            unknown = [status for status in order_status if status not in ALLOWED_ORDER_STATUS]
            if unknown:
                raise InvalidOrderInputException(f"Statut(s) de commande inconnu(s): {', '.join(unknown)}.")

        logger.debug(f"[OrderService] Listage commandes compte {account_id}, statuts={order_status}, boutiques={shop_ids}")
        return await self.order_repository.list_by_account(account_id, order_status, shop_ids, args)

    async def load_references(self, orders: Sequence[Order]) -> OrderReferences:
        """Précharge boutiques, comptes et tags nécessaires aux champs imbriqués."""
        shop_ids = set()
        account_ids = set()
        tag_ids = set()
        for order in orders:
            shop_ids.add(order.shop_id)
            if order.account_id:
                account_ids.add(order.account_id)
            for note in order.notes:
                if note.account_id:
                    account_ids.add(note.account_id)
            for group in order.fulfillment_groups:
                shop_ids.add(group.shop_id)
                for item in group.items:
                    tag_ids.update(item.product_tag_ids or [])

        return OrderReferences(
            shops=await self.shop_repository.get_many(shop_ids),
            accounts=await self.account_repository.get_many(account_ids),
            tags=await self.catalog_repository.get_tags(tag_ids),
        )

    # --- Création ---

    async def _validate_cart(self, order_data: OrderCreate, account: Optional[AccountRead]) -> None:
        if not order_data.cart_id:
            return
        cart = await self.cart_repository.get_by_id(order_data.cart_id)
        if cart is None:
            raise CartNotFoundException(order_data.cart_id)
        if cart.shop_id != order_data.shop_id:
            raise InvalidOrderInputException(f"Le panier {cart.id} n'appartient pas à la boutique {order_data.shop_id}.")
        if cart.account_id is not None and (account is None or account.id != cart.account_id):
            logger.warning(f"[OrderService] Panier {cart.id} utilisé par un autre compte que son titulaire.")
            raise OrderAccessDeniedException("Ce panier appartient à un autre compte.")

    async def _prepare_item(self, shop_id: str, item_data) -> OrderItem:
        configuration = item_data.product_configuration
        variant: Optional[CatalogVariantRead] = await self.catalog_repository.get_variant(
            configuration.product_id, configuration.product_variant_id
        )
        if variant is None or variant.shop_id != shop_id:
            raise VariantNotFoundException(configuration.product_id, configuration.product_variant_id)

        price = to_money(variant.price)
        if to_money(item_data.price) != price:
            logger.warning(
                f"[OrderService] Prix client {item_data.price} différent du prix catalogue {price} "
                f"pour la variante {variant.id}"
            )
            raise PriceMismatchException(
                f"Le prix fourni ({item_data.price}) pour la variante {variant.id} ne correspond pas au prix actuel ({price})."
            )

        now = utcnow()
        return OrderItem(
            shop_id=shop_id,
            product_id=variant.product_id,
            variant_id=variant.id,
            title=variant.title,
            variant_title=variant.variant_title,
            option_title=variant.option_title,
            product_slug=variant.slug,
            product_type=variant.product_type,
            product_vendor=variant.vendor,
            product_tag_ids=list(variant.tag_ids or []),
            image_urls=dict(variant.image_urls or {}),
            is_taxable=variant.is_taxable,
            price=price,
            quantity=item_data.quantity,
            subtotal=to_money(price * item_data.quantity),
            status=ORDER_STATUS_NEW,
            added_at=item_data.added_at or now,
            created_at=now,
            updated_at=now,
        )

    async def _prepare_group(self, shop_id: str, group_data: OrderFulfillmentGroupCreate) -> _PreparedGroup:
        if group_data.shop_id != shop_id:
            raise InvalidOrderInputException("Tous les groupes d'expédition doivent appartenir à la boutique de la commande.")
        if group_data.type not in FULFILLMENT_TYPES:
            raise InvalidOrderInputException(f"Type d'expédition inconnu: '{group_data.type}'.")
        if len(group_data.items) > MAX_ITEMS_PER_GROUP:
            raise InvalidOrderInputException(f"Un groupe d'expédition ne peut pas contenir plus de {MAX_ITEMS_PER_GROUP} articles.")
        if group_data.type == FULFILLMENT_TYPE_SHIPPING and group_data.shipping_address is None:
            raise InvalidOrderInputException("Une adresse de livraison est requise pour un groupe de type 'shipping'.")

        method = await self.fulfillment_method_repository.get_for_shop(group_data.selected_fulfillment_method_id, shop_id)
        if method is None:
            raise FulfillmentMethodNotFoundException(group_data.selected_fulfillment_method_id, shop_id)
        if not method.enabled:
            raise InvalidOrderInputException(f"La méthode d'expédition {method.id} n'est pas active.")
        if group_data.type not in method.fulfillment_types:
            raise InvalidOrderInputException(
                f"La méthode d'expédition {method.id} ne prend pas en charge le type '{group_data.type}'."
            )

        items = [await self._prepare_item(shop_id, item_data) for item_data in group_data.items]
        summary = compute_group_summary(
            ((item.subtotal, item.is_taxable) for item in items),
            fulfillment_price=to_money(method.rate),
            handling_price=to_money(method.handling),
            tax_rate=settings.TAX_RATE,
        )
        if group_data.total_price is not None and to_money(group_data.total_price) != summary.total:
            logger.warning(f"[OrderService] Total client {group_data.total_price} différent du total calculé {summary.total}")
            raise PriceMismatchException(
                f"Le total fourni ({group_data.total_price}) ne correspond pas au total calculé ({summary.total})."
            )
        return _PreparedGroup(data=group_data, method=method, items=items, summary=summary)

    async def _new_reference_id(self) -> str:
        for _ in range(REFERENCE_ID_MAX_ATTEMPTS):
            reference_id = generate_reference_id()
            if not await self.order_repository.reference_id_exists(reference_id):
                return reference_id
        logger.error(f"[OrderService] Aucune référence libre après {REFERENCE_ID_MAX_ATTEMPTS} tentatives")
        raise OrderCreationFailedException("Impossible de générer une référence de commande unique.")

    @staticmethod
    def _build_group(prepared: _PreparedGroup) -> OrderFulfillmentGroup:
        method = prepared.method
        summary = prepared.summary
        address = prepared.data.shipping_address
        return OrderFulfillmentGroup(
            shop_id=prepared.data.shop_id,
            type=prepared.data.type,
            status=ORDER_STATUS_NEW,
            shipping_address=address.model_dump() if address else None,
            selected_fulfillment_method={
                "id": method.id,
                "name": method.name,
                "label": method.label,
                "carrier": method.carrier,
                "group": method.group,
                "fulfillment_types": list(method.fulfillment_types),
            },
            fulfillment_price=to_money(method.rate),
            handling_price=to_money(method.handling),
            item_total=summary.item_total,
            fulfillment_total=summary.fulfillment_total,
            tax_total=summary.tax_total,
            taxable_amount=summary.taxable_amount,
            discount_total=summary.discount_total,
            total=summary.total,
            items=prepared.items,
        )

    @staticmethod
    def _build_payment(shop_id: str, authorization: PaymentAuthorization) -> OrderPayment:
        return OrderPayment(
            shop_id=shop_id,
            method=authorization.method,
            processor=authorization.processor,
            mode=authorization.mode,
            status=authorization.status,
            amount=to_money(authorization.amount),
            currency_code=authorization.currency_code,
            transaction_id=authorization.transaction_id,
            display_name=authorization.display_name,
            billing_address=authorization.billing_address,
            data=dict(authorization.data),
        )

    async def place_order(self, command: PlaceOrderCommand, account: Optional[AccountRead] = None) -> PlacedOrders:
        """Valide, autorise les paiements puis enregistre la commande.

        Rien n'est écrit tant que tous les paiements ne sont pas autorisés; si
        l'enregistrement échoue ensuite, les autorisations sont annulées.
        """
        order_data = command.order
        logger.info(
            f"[OrderService] Tentative création commande boutique {order_data.shop_id} "
            f"(compte: {account.id if account else 'anonyme'})"
        )

        shop = await self.shop_repository.get_by_id(order_data.shop_id)
        if shop is None:
            raise ShopNotFoundException(order_data.shop_id)
        if order_data.currency_code != shop.currency_code:
            raise InvalidOrderInputException(
                f"Devise {order_data.currency_code} non acceptée par la boutique {shop.id} ({shop.currency_code})."
            )
        if len(order_data.fulfillment_groups) > MAX_FULFILLMENT_GROUPS:
            raise InvalidOrderInputException(f"Une commande ne peut pas contenir plus de {MAX_FULFILLMENT_GROUPS} groupes.")

        await self._validate_cart(order_data, account)

        prepared_groups = [await self._prepare_group(shop.id, group_data) for group_data in order_data.fulfillment_groups]
        order_summary = combine_summaries(prepared.summary for prepared in prepared_groups)
        order_total = order_summary.total

        amounts = self.payment_service.allocate_amounts([payment.amount for payment in command.payments], order_total)
        reference_id = await self._new_reference_id()

        payment_requests = [
            PaymentRequest(
                method=payment.method,
                amount=amount,
                currency_code=order_data.currency_code,
                shop_id=shop.id,
                email=str(order_data.email),
                account_id=account.id if account else None,
                billing_address=payment.billing_address.model_dump() if payment.billing_address else None,
                data=dict(payment.data or {}),
            )
            for payment, amount in zip(command.payments, amounts)
        ]
        authorizations = await self.payment_service.authorize_payments(payment_requests)

        token = None if account else generate_access_token()
        order = Order(
            reference_id=reference_id,
            shop_id=shop.id,
            account_id=account.id if account else None,
            cart_id=order_data.cart_id,
            email=str(order_data.email),
            currency_code=order_data.currency_code,
            status=ORDER_STATUS_NEW,
            ordered_language=order_data.ordered_language,
            anonymous_access_token_hash=hash_token(token) if token else None,
            fulfillment_groups=[self._build_group(prepared) for prepared in prepared_groups],
            payments=[self._build_payment(shop.id, authorization) for authorization in authorizations],
        )

        try:
            await self.order_repository.add(order)
            if order_data.cart_id:
                await self.cart_repository.delete(order_data.cart_id)
            await self.order_repository.commit()
        except SQLAlchemyError as e:
            logger.error(f"[OrderService] Échec enregistrement commande {reference_id}: {e}", exc_info=True)
            await self.order_repository.rollback()
            await self.payment_service.void_authorizations(authorizations)
            raise OrderCreationFailedException("Erreur interne lors de l'enregistrement de la commande.")

        logger.info(
            f"[OrderService] Commande {order.id} (référence {reference_id}) créée, total {order_total} {order_data.currency_code}"
        )
        orders = await self.order_repository.reload([order.id])
        return PlacedOrders(orders=orders, token=token)


def order_summary(order: Order) -> Summary:
    """Résumé d'une commande, agrégé à partir de ses groupes."""
    return combine_summaries(summary_of_group(group) for group in order.fulfillment_groups)
