"""Conversion des exceptions du domaine en erreurs GraphQL."""
import logging

from graphql import GraphQLError

from orders_api.core.exceptions import DomainException

logger = logging.getLogger(__name__)

SERVER_ERROR_MESSAGE = "Erreur interne du serveur."


def to_graphql_error(exc: Exception) -> GraphQLError:
    """Erreur GraphQL portant le code de l'exception dans `extensions.code`."""
    if isinstance(exc, DomainException):
        logger.warning(f"Erreur métier ({exc.code}): {exc.message}")
        return GraphQLError(exc.message, extensions={"code": exc.code})
    logger.exception(f"Erreur inattendue: {exc}")
    return GraphQLError(SERVER_ERROR_MESSAGE, extensions={"code": DomainException.code})
