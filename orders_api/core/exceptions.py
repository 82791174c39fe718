"""Exceptions de base partagées par tous les modules."""


class DomainException(Exception):
    """Classe de base des exceptions métier.

    `code` est repris tel quel dans `extensions.code` des erreurs GraphQL.
    """
    code: str = "server-error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class NotFoundException(DomainException):
    code = "not-found"


class AccessDeniedException(DomainException):
    code = "access-denied"

    def __init__(self, message: str = "Accès refusé."):
        super().__init__(message)


class InvalidParameterException(DomainException):
    code = "invalid-parameter"


class InvalidIdentifierException(InvalidParameterException):
    """Levée lorsqu'un identifiant opaque ne peut pas être décodé."""
    def __init__(self, value: str, namespace: str):
        super().__init__(f"L'identifiant '{value}' n'est pas un identifiant '{namespace}' valide.")
        self.value = value
        self.namespace = namespace


class InvalidPaginationException(InvalidParameterException):
    pass
