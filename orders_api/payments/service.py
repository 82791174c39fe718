import logging
from decimal import Decimal
from typing import List, Optional, Sequence

from orders_api.payments.exceptions import (
    InvalidPaymentAmountException,
    PaymentAuthorizationFailedException,
    PaymentException,
)
from orders_api.payments.methods import PaymentAuthorization, PaymentMethodRegistry, PaymentRequest

logger = logging.getLogger(__name__)


class PaymentService:
    """Répartition des montants et autorisation atomique des paiements d'une commande."""

    def __init__(self, registry: PaymentMethodRegistry):
        self.registry = registry

    def allocate_amounts(self, amounts: Sequence[Optional[Decimal]], total: Decimal) -> List[Decimal]:
        """Retourne le montant effectif de chaque paiement.

        Au plus un paiement peut avoir un montant nul (None) : il reçoit le
        reste du total. La somme doit être exactement égale au total.
        """
        if not amounts:
            if total > 0:
                raise InvalidPaymentAmountException(f"Un paiement est requis pour régler le total de {total}.")
            return []

        remainder_slots = [index for index, amount in enumerate(amounts) if amount is None]
        if len(remainder_slots) > 1:
            raise InvalidPaymentAmountException("Au plus un paiement peut omettre son montant.")

        explicit = [amount for amount in amounts if amount is not None]
        if any(amount <= 0 for amount in explicit):
            raise InvalidPaymentAmountException("Le montant d'un paiement doit être strictement positif.")

        explicit_total = sum(explicit, Decimal("0"))
        allocated = [amount for amount in amounts]
        if remainder_slots:
            remainder = total - explicit_total
            if remainder <= 0:
                raise InvalidPaymentAmountException(
                    f"Aucun reste à payer pour le paiement sans montant (total {total}, déjà couvert {explicit_total})."
                )
            allocated[remainder_slots[0]] = remainder
        elif explicit_total != total:
            raise InvalidPaymentAmountException(
                f"La somme des paiements ({explicit_total}) ne correspond pas au total de la commande ({total})."
            )
        return allocated

    async def authorize_payments(self, requests: Sequence[PaymentRequest]) -> List[PaymentAuthorization]:
        """Autorise chaque paiement dans l'ordre; tout ou rien."""
        # Résoudre toutes les méthodes avant la première autorisation
        methods = [self.registry.get(request.method) for request in requests]

        authorizations: List[PaymentAuthorization] = []
        for method, request in zip(methods, requests):
            try:
                authorization = await method.authorize(request)
            except PaymentException as e:
                logger.warning(f"[PaymentService] Refus du paiement '{request.method}' ({request.amount}): {e}")
                await self.void_authorizations(authorizations)
                raise PaymentAuthorizationFailedException(request.method, e.message)
            except Exception as e:
                logger.error(f"[PaymentService] Erreur inattendue lors de l'autorisation '{request.method}': {e}", exc_info=True)
                await self.void_authorizations(authorizations)
                raise PaymentAuthorizationFailedException(request.method, "erreur du prestataire de paiement")
            authorizations.append(authorization)

        logger.info(f"[PaymentService] {len(authorizations)} paiement(s) autorisé(s).")
        return authorizations

    async def void_authorizations(self, authorizations: Sequence[PaymentAuthorization]) -> None:
        for authorization in reversed(authorizations):
            try:
                await self.registry.get(authorization.method).void(authorization)
            except Exception as e:
                # L'annulation des autres autorisations doit continuer
                logger.error(
                    f"[PaymentService] Échec annulation autorisation {authorization.transaction_id} ({authorization.method}): {e}",
                    exc_info=True,
                )
