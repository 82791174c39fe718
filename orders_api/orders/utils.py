"""
Utilitaires pour le module de gestion des commandes.
"""
import base64
import hashlib
import secrets
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Union

from orders_api.orders.config import (
    CURRENCY_FORMATS,
    DEFAULT_LANGUAGE,
    ORDER_STATUS_DISPLAY,
    REFERENCE_ID_ALPHABET,
    REFERENCE_ID_LENGTH,
)

CENT = Decimal("0.01")


def to_money(value: Union[Decimal, float, int, str]) -> Decimal:
    """Convertit en Decimal arrondi au centime (les floats passent par str)."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(amount: Decimal, currency_code: str) -> str:
    """Montant formaté pour l'affichage, ex: '12.50 €' ou '$12.50'."""
    currency = CURRENCY_FORMATS.get(currency_code)
    value = f"{to_money(amount):.2f}"
    if currency is None:
        return f"{value} {currency_code}"
    return currency["format"].replace("%s", currency["symbol"]).replace("%v", value)


def display_status(status: str, language: Optional[str]) -> str:
    labels = ORDER_STATUS_DISPLAY.get(language or DEFAULT_LANGUAGE) or ORDER_STATUS_DISPLAY[DEFAULT_LANGUAGE]
    return labels.get(status, status)


def generate_reference_id(length: int = REFERENCE_ID_LENGTH) -> str:
    """Génère une référence courte, lisible par le client."""
    return "".join(secrets.choice(REFERENCE_ID_ALPHABET) for _ in range(length))


def generate_access_token() -> str:
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """SHA-256 encodé en base64 : seul le hash d'un token anonyme est stocké."""
    return base64.b64encode(hashlib.sha256(token.encode("utf-8")).digest()).decode("ascii")


def tokens_match(token: str, token_hash: Optional[str]) -> bool:
    if not token or not token_hash:
        return False
    return secrets.compare_digest(hash_token(token), token_hash)


@dataclass
class Summary:
    """Agrégats monétaires d'un groupe ou d'une commande."""
    item_total: Decimal = Decimal("0.00")
    fulfillment_total: Decimal = Decimal("0.00")
    tax_total: Decimal = Decimal("0.00")
    taxable_amount: Decimal = Decimal("0.00")
    discount_total: Decimal = Decimal("0.00")

    @property
    def total(self) -> Decimal:
        return to_money(self.item_total + self.fulfillment_total + self.tax_total - self.discount_total)


def compute_group_summary(
    items: Iterable[tuple],
    fulfillment_price: Decimal,
    handling_price: Decimal,
    tax_rate: Decimal,
) -> Summary:
    """Calcule le résumé d'un groupe.

    `items` : tuples (subtotal, is_taxable). La taxe est un taux unique
    appliqué au montant taxable; aucune remise n'est gérée.
    """
    item_total = Decimal("0")
    taxable_amount = Decimal("0")
    for subtotal, is_taxable in items:
        item_total += subtotal
        if is_taxable:
            taxable_amount += subtotal
    return Summary(
        item_total=to_money(item_total),
        fulfillment_total=to_money(fulfillment_price + handling_price),
        tax_total=to_money(taxable_amount * tax_rate),
        taxable_amount=to_money(taxable_amount),
    )


def combine_summaries(summaries: Iterable[Summary]) -> Summary:
    combined = Summary()
    for summary in summaries:
        combined.item_total += summary.item_total
        combined.fulfillment_total += summary.fulfillment_total
        combined.tax_total += summary.tax_total
        combined.taxable_amount += summary.taxable_amount
        combined.discount_total += summary.discount_total
    return combined


def summary_of_group(group) -> Summary:
    """Résumé stocké sur un OrderFulfillmentGroup."""
    return Summary(
        item_total=group.item_total,
        fulfillment_total=group.fulfillment_total,
        tax_total=group.tax_total,
        taxable_amount=group.taxable_amount,
        discount_total=group.discount_total,
    )
