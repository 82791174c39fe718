from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from orders_api.config import settings
from orders_api.payments.methods import PaymentMethodRegistry, build_registry
from orders_api.payments.service import PaymentService


@lru_cache
def get_payment_method_registry() -> PaymentMethodRegistry:
    """Registre partagé par toutes les requêtes (construit une seule fois)."""
    return build_registry(settings.ENABLED_PAYMENT_METHODS)


PaymentMethodRegistryDep = Annotated[PaymentMethodRegistry, Depends(get_payment_method_registry)]


def get_payment_service(registry: PaymentMethodRegistryDep) -> PaymentService:
    return PaymentService(registry=registry)


PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]
