"""
Génération des identifiants internes et encodage des identifiants opaques.

Un identifiant opaque est la chaîne `"<prefix>/<namespace>:<id>"` encodée en
base64. Les clients ne voient jamais les identifiants internes.
"""
import base64
import binascii
import secrets
import string

from orders_api.config import settings
from orders_api.core.exceptions import InvalidIdentifierException

ID_ALPHABET = string.ascii_letters + string.digits
ID_LENGTH = 17

NAMESPACE_ACCOUNT = "account"
NAMESPACE_CART = "cart"
NAMESPACE_FULFILLMENT_GROUP = "fulfillmentGroup"
NAMESPACE_FULFILLMENT_METHOD = "fulfillmentMethod"
NAMESPACE_ORDER = "order"
NAMESPACE_ORDER_ITEM = "orderItem"
NAMESPACE_PAYMENT = "payment"
NAMESPACE_PRODUCT = "product"
NAMESPACE_SHOP = "shop"
NAMESPACE_TAG = "tag"


def generate_id(length: int = ID_LENGTH) -> str:
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


def encode_opaque_id(namespace: str, internal_id: str) -> str:
    raw = f"{settings.OPAQUE_ID_PREFIX}/{namespace}:{internal_id}"
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_opaque_id(namespace: str, opaque_id: str) -> str:
    """Retourne l'identifiant interne, ou lève InvalidIdentifierException."""
    try:
        raw = base64.b64decode(opaque_id.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        raise InvalidIdentifierException(opaque_id, namespace)

    expected = f"{settings.OPAQUE_ID_PREFIX}/{namespace}:"
    if not raw.startswith(expected) or len(raw) == len(expected):
        raise InvalidIdentifierException(opaque_id, namespace)
    return raw[len(expected):]
