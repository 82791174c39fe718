# Standard Library
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, AsyncGenerator, Dict, Optional

# Base SQLite en mémoire avant tout import de l'application
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# Third-Party Libraries
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

# First-Party Libraries
from orders_api.accounts.models import Account
from orders_api.auth.security import create_access_token
from orders_api.carts.models import Cart, CartItem
from orders_api.catalog.models import CatalogVariant, Tag
from orders_api.core.ids import (
    NAMESPACE_CART,
    NAMESPACE_FULFILLMENT_METHOD,
    NAMESPACE_PRODUCT,
    NAMESPACE_SHOP,
    encode_opaque_id,
)
from orders_api.database import get_db_session
from orders_api.fulfillment.models import FulfillmentMethod
from orders_api.main import app
from orders_api.orders.config import ORDER_STATUS_NEW
from orders_api.orders.models import Order, OrderFulfillmentGroup, OrderItem, OrderNote
from orders_api.orders.utils import hash_token
from orders_api.shops.models import Shop

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

GRAPHQL_URL = "/graphql"

# --- Fixtures de Base ---


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Crée un engine, des tables, et fournit une session DB en mémoire pour chaque test."""
    # StaticPool : une seule connexion, sinon chaque connexion voit une base vide
    engine: AsyncEngine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    TestingSessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with TestingSessionLocal() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Fournit un AsyncClient httpx qui utilise la session DB de test isolée."""
    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_get_db_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def execute_graphql(
    client: AsyncClient,
    query: str,
    variables: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    response = await client.post(GRAPHQL_URL, json={"query": query, "variables": variables or {}}, headers=headers or {})
    assert response.status_code == 200, response.text
    return response.json()


def error_codes(result: Dict[str, Any]) -> list:
    return [error.get("extensions", {}).get("code") for error in result.get("errors") or []]


# --- Comptes et authentification ---


async def _add(session: AsyncSession, instance):
    session.add(instance)
    await session.commit()
    await session.refresh(instance)
    return instance


@pytest_asyncio.fixture(scope="function")
async def test_account(db_session: AsyncSession) -> Account:
    return await _add(db_session, Account(email="client@example.com", name="Client Test"))


@pytest_asyncio.fixture(scope="function")
async def other_account(db_session: AsyncSession) -> Account:
    return await _add(db_session, Account(email="autre@example.com", name="Autre Client"))


@pytest_asyncio.fixture(scope="function")
async def admin_account(db_session: AsyncSession) -> Account:
    return await _add(db_session, Account(email="admin@example.com", name="Admin", is_admin=True))


def _bearer(account: Account) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': account.id})}"}


@pytest.fixture
def auth_headers(test_account: Account) -> Dict[str, str]:
    return _bearer(test_account)


@pytest.fixture
def other_auth_headers(other_account: Account) -> Dict[str, str]:
    return _bearer(other_account)


@pytest.fixture
def admin_auth_headers(admin_account: Account) -> Dict[str, str]:
    return _bearer(admin_account)


# --- Boutique, catalogue, expédition ---


@pytest_asyncio.fixture(scope="function")
async def test_shop(db_session: AsyncSession) -> Shop:
    return await _add(db_session, Shop(name="LivrerJardiner", currency_code="EUR"))


@pytest_asyncio.fixture(scope="function")
async def other_shop(db_session: AsyncSession) -> Shop:
    return await _add(db_session, Shop(name="Autre boutique", currency_code="EUR"))


@pytest_asyncio.fixture(scope="function")
async def test_tags(db_session: AsyncSession, test_shop: Shop) -> list:
    tags = [
        Tag(shop_id=test_shop.id, name="Rosiers", slug="rosiers", position=2),
        Tag(shop_id=test_shop.id, name="Bio", slug="bio", position=1),
        Tag(shop_id=test_shop.id, name="Promo", slug="promo", position=3),
    ]
    for tag in tags:
        await _add(db_session, tag)
    return tags


@pytest_asyncio.fixture(scope="function")
async def rose_variant(db_session: AsyncSession, test_shop: Shop, test_tags: list) -> CatalogVariant:
    """Variante taxable à 10.00 portant les trois tags."""
    return await _add(db_session, CatalogVariant(
        product_id="prod-rosier",
        shop_id=test_shop.id,
        title="Rosier grimpant",
        variant_title="Pot 3L",
        option_title="Rouge",
        slug="rosier-grimpant",
        vendor="Pépinière du Val",
        product_type="plante",
        price=Decimal("10.00"),
        is_taxable=True,
        tag_ids=[tag.id for tag in test_tags],
        image_urls={"large": "https://cdn.example.com/rosier-l.jpg", "thumbnail": "https://cdn.example.com/rosier-t.jpg"},
    ))


@pytest_asyncio.fixture(scope="function")
async def seed_variant(db_session: AsyncSession, test_shop: Shop) -> CatalogVariant:
    """Variante non taxable à 4.50, sans tag."""
    return await _add(db_session, CatalogVariant(
        product_id="prod-graines",
        shop_id=test_shop.id,
        title="Graines de tomate",
        price=Decimal("4.50"),
        is_taxable=False,
    ))


@pytest_asyncio.fixture(scope="function")
async def shipping_method(db_session: AsyncSession, test_shop: Shop) -> FulfillmentMethod:
    return await _add(db_session, FulfillmentMethod(
        shop_id=test_shop.id,
        name="colissimo",
        label="Colissimo 48h",
        carrier="La Poste",
        rate=Decimal("5.00"),
        handling=Decimal("1.00"),
    ))


@pytest_asyncio.fixture(scope="function")
async def test_cart(db_session: AsyncSession, test_shop: Shop, test_account: Account, rose_variant: CatalogVariant) -> Cart:
    cart = Cart(shop_id=test_shop.id, account_id=test_account.id)
    cart.items = [
        CartItem(product_id=rose_variant.product_id, variant_id=rose_variant.id, quantity=2, price=rose_variant.price)
    ]
    return await _add(db_session, cart)


# --- Entrées placeOrder ---


SHIPPING_ADDRESS = {
    "address1": "12 rue des Lilas",
    "city": "Nantes",
    "country": "FR",
    "fullName": "Jeanne Martin",
    "phone": "0600000000",
    "postal": "44000",
    "region": "Pays de la Loire",
}


@pytest.fixture
def place_order_input(test_shop: Shop, rose_variant: CatalogVariant, seed_variant: CatalogVariant, shipping_method: FulfillmentMethod):
    """Entrée valide : 2 x 10.00 + 1 x 4.50 + 6.00 d'expédition = 30.50."""
    def _build(cart: Optional[Cart] = None, payments: Optional[list] = None, **order_overrides) -> Dict[str, Any]:
        order = {
            "shopId": encode_opaque_id(NAMESPACE_SHOP, test_shop.id),
            "currencyCode": "EUR",
            "email": "client@example.com",
            "fulfillmentGroups": [
                {
                    "shopId": encode_opaque_id(NAMESPACE_SHOP, test_shop.id),
                    "type": "shipping",
                    "selectedFulfillmentMethodId": encode_opaque_id(NAMESPACE_FULFILLMENT_METHOD, shipping_method.id),
                    "data": {"shippingAddress": SHIPPING_ADDRESS},
                    "totalPrice": 30.50,
                    "items": [
                        {
                            "productConfiguration": {
                                "productId": encode_opaque_id(NAMESPACE_PRODUCT, rose_variant.product_id),
                                "productVariantId": encode_opaque_id(NAMESPACE_PRODUCT, rose_variant.id),
                            },
                            "quantity": 2,
                            "price": 10.00,
                        },
                        {
                            "productConfiguration": {
                                "productId": encode_opaque_id(NAMESPACE_PRODUCT, seed_variant.product_id),
                                "productVariantId": encode_opaque_id(NAMESPACE_PRODUCT, seed_variant.id),
                            },
                            "quantity": 1,
                            "price": 4.50,
                        },
                    ],
                }
            ],
        }
        if cart is not None:
            order["cartId"] = encode_opaque_id(NAMESPACE_CART, cart.id)
        order.update(order_overrides)
        return {
            "order": order,
            "payments": payments if payments is not None else [{"method": "iou_example", "data": {"fullName": "Jeanne Martin"}}],
            "clientMutationId": "mutation-1",
        }
    return _build


# --- Commandes existantes ---


@pytest.fixture
def order_factory(db_session: AsyncSession, test_shop: Shop, rose_variant: CatalogVariant, test_tags: list):
    """Crée directement en base une commande d'une ligne (2 x 10.00, expédition 6.00)."""
    counter = {"value": 0}

    async def _create(
        account: Optional[Account] = None,
        created_at: Optional[datetime] = None,
        status: str = ORDER_STATUS_NEW,
        shop: Optional[Shop] = None,
        token: Optional[str] = None,
        items: int = 1,
    ) -> Order:
        counter["value"] += 1
        shop = shop or test_shop
        created_at = created_at or datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(days=counter["value"])
        group = OrderFulfillmentGroup(
            shop_id=shop.id,
            type="shipping",
            status=status,
            shipping_address={
                "address1": "12 rue des Lilas", "city": "Nantes", "country": "FR", "full_name": "Jeanne Martin",
                "phone": "0600000000", "postal": "44000", "region": "Pays de la Loire",
            },
            selected_fulfillment_method={
                "id": "method-1", "name": "colissimo", "label": "Colissimo 48h", "carrier": "La Poste",
                "group": "Ground", "fulfillment_types": ["shipping"],
            },
            fulfillment_price=Decimal("5.00"),
            handling_price=Decimal("1.00"),
            item_total=Decimal("20.00") * items,
            fulfillment_total=Decimal("6.00"),
            taxable_amount=Decimal("20.00") * items,
            total=Decimal("20.00") * items + Decimal("6.00"),
            items=[
                OrderItem(
                    shop_id=shop.id,
                    product_id=rose_variant.product_id,
                    variant_id=rose_variant.id,
                    title=f"Rosier {index}",
                    product_tag_ids=[tag.id for tag in test_tags],
                    price=Decimal("10.00"),
                    quantity=2,
                    subtotal=Decimal("20.00"),
                    added_at=created_at + timedelta(minutes=items - index),
                )
                for index in range(items)
            ],
        )
        order = Order(
            reference_id=f"REF{counter['value']:05d}",
            shop_id=shop.id,
            account_id=account.id if account else None,
            email=account.email if account else "invite@example.com",
            currency_code="EUR",
            status=status,
            anonymous_access_token_hash=hash_token(token) if token else None,
            created_at=created_at,
            updated_at=created_at,
            fulfillment_groups=[group],
            notes=[OrderNote(account_id=account.id, content="Laisser devant la porte")] if account else [],
        )
        return await _add(db_session, order)

    return _create
