"""Exceptions spécifiques au domaine des paiements."""
from orders_api.core.exceptions import DomainException


class PaymentException(DomainException):
    code = "invalid-payment"


class PaymentMethodNotFoundException(PaymentException):
    """Levée lorsqu'aucune méthode de paiement active ne porte ce nom."""
    def __init__(self, method_name: str):
        super().__init__(f"Méthode de paiement '{method_name}' inconnue ou désactivée.")
        self.method_name = method_name


class InvalidPaymentAmountException(PaymentException):
    """Montants incohérents avec le total de la commande."""
    pass


class PaymentDeclinedException(PaymentException):
    """Levée par une méthode de paiement qui refuse l'autorisation."""
    code = "payment-failed"


class PaymentAuthorizationFailedException(PaymentException):
    """Une autorisation a échoué; les autorisations précédentes ont été annulées."""
    code = "payment-failed"

    def __init__(self, method_name: str, reason: str):
        super().__init__(f"Le paiement '{method_name}' n'a pas pu être autorisé: {reason}")
        self.method_name = method_name
        self.reason = reason
