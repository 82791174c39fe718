"""
Méthodes de paiement et registre.

Chaque méthode implémente AbstractPaymentMethod. Le registre n'expose que les
méthodes activées dans la configuration (ENABLED_PAYMENT_METHODS).
"""
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from orders_api.core.ids import generate_id
from orders_api.payments.exceptions import PaymentDeclinedException, PaymentMethodNotFoundException

logger = logging.getLogger(__name__)

PAYMENT_STATUS_CREATED = "created"
PAYMENT_MODE_AUTHORIZE = "authorize"


class PaymentRequest(BaseModel):
    """Données transmises à une méthode de paiement pour autorisation."""
    method: str
    amount: Decimal
    currency_code: str
    shop_id: str
    email: str
    account_id: Optional[str] = None
    billing_address: Optional[Dict[str, Any]] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class PaymentAuthorization(BaseModel):
    """Résultat d'une autorisation réussie."""
    method: str
    amount: Decimal
    currency_code: str
    processor: str
    mode: str = PAYMENT_MODE_AUTHORIZE
    status: str = PAYMENT_STATUS_CREATED
    transaction_id: str
    display_name: str
    billing_address: Optional[Dict[str, Any]] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class AbstractPaymentMethod(ABC):
    """Interface d'une méthode de paiement."""
    name: str
    display_name: str

    @abstractmethod
    async def authorize(self, request: PaymentRequest) -> PaymentAuthorization:
        """Autorise le montant ou lève PaymentDeclinedException."""
        raise NotImplementedError

    @abstractmethod
    async def void(self, authorization: PaymentAuthorization) -> None:
        """Annule une autorisation obtenue précédemment."""
        raise NotImplementedError


class IOUPaymentMethod(AbstractPaymentMethod):
    """Reconnaissance de dette : accepte tout montant si un nom complet est fourni."""
    name = "iou_example"
    display_name = "IOU"
    processor = "Example"

    async def authorize(self, request: PaymentRequest) -> PaymentAuthorization:
        full_name = (request.data or {}).get("fullName")
        if not full_name:
            raise PaymentDeclinedException("Le champ 'fullName' est requis pour un paiement IOU.")
        transaction_id = generate_id()
        logger.info(f"[IOUPaymentMethod] Autorisation {transaction_id} de {request.amount} {request.currency_code} pour '{full_name}'")
        return PaymentAuthorization(
            method=self.name,
            amount=request.amount,
            currency_code=request.currency_code,
            processor=self.processor,
            transaction_id=transaction_id,
            display_name=f"IOU from {full_name}",
            billing_address=request.billing_address,
            data={"fullName": full_name},
        )

    async def void(self, authorization: PaymentAuthorization) -> None:
        logger.info(f"[IOUPaymentMethod] Autorisation {authorization.transaction_id} annulée")


class PaymentMethodRegistry:
    """Registre des méthodes de paiement actives, indexées par nom."""

    def __init__(self, methods: Iterable[AbstractPaymentMethod] = ()):
        self._methods: Dict[str, AbstractPaymentMethod] = {}
        for method in methods:
            self.register(method)

    def register(self, method: AbstractPaymentMethod) -> None:
        if method.name in self._methods:
            logger.warning(f"[PaymentMethodRegistry] Remplacement de la méthode '{method.name}'")
        self._methods[method.name] = method

    def get(self, name: str) -> AbstractPaymentMethod:
        method = self._methods.get(name)
        if method is None:
            raise PaymentMethodNotFoundException(name)
        return method

    @property
    def names(self) -> List[str]:
        return sorted(self._methods)


# Méthodes connues du système, activées ou non selon la configuration
AVAILABLE_PAYMENT_METHODS: Dict[str, type] = {
    IOUPaymentMethod.name: IOUPaymentMethod,
}


def build_registry(enabled: Iterable[str]) -> PaymentMethodRegistry:
    registry = PaymentMethodRegistry()
    for name in enabled:
        method_cls = AVAILABLE_PAYMENT_METHODS.get(name)
        if method_cls is None:
            logger.error(f"[PaymentMethodRegistry] Méthode '{name}' activée mais inconnue, ignorée.")
            continue
        registry.register(method_cls())
    return registry
