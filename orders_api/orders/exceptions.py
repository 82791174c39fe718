"""Exceptions spécifiques au domaine Order."""
from orders_api.core.exceptions import (
    AccessDeniedException,
    DomainException,
    InvalidParameterException,
    NotFoundException,
)


class OrderAccessDeniedException(AccessDeniedException):
    """Levée lorsque l'appelant n'a pas le droit de lire la ou les commandes."""
    pass


class ShopNotFoundException(NotFoundException):
    def __init__(self, shop_id: str):
        super().__init__(f"Boutique avec ID {shop_id} non trouvée.")
        self.shop_id = shop_id


class CartNotFoundException(NotFoundException):
    def __init__(self, cart_id: str):
        super().__init__(f"Panier avec ID {cart_id} non trouvé.")
        self.cart_id = cart_id


class VariantNotFoundException(NotFoundException):
    def __init__(self, product_id: str, variant_id: str):
        super().__init__(f"Variante {variant_id} du produit {product_id} non trouvée dans le catalogue.")
        self.product_id = product_id
        self.variant_id = variant_id


class FulfillmentMethodNotFoundException(NotFoundException):
    def __init__(self, method_id: str, shop_id: str):
        super().__init__(f"Méthode d'expédition {method_id} non trouvée pour la boutique {shop_id}.")
        self.method_id = method_id
        self.shop_id = shop_id


class InvalidOrderInputException(InvalidParameterException):
    """Données de commande invalides (quantité, adresse, devise, groupes...)."""
    pass


class PriceMismatchException(DomainException):
    """Le prix fourni par le client ne correspond pas au prix calculé par le serveur."""
    code = "invalid-price"


class OrderCreationFailedException(DomainException):
    """Levée lorsque l'enregistrement de la commande échoue après autorisation des paiements."""
    code = "server-error"
