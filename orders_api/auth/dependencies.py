"""
Dépendances FastAPI d'authentification.

L'API GraphQL accepte les appelants anonymes : un token absent ou invalide
donne simplement `None` comme compte courant.
"""
import logging
from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from orders_api.accounts.models import AccountRead
from orders_api.accounts.repositories import SQLAlchemyAccountRepository
from orders_api.auth.security import decode_access_token
from orders_api.database import get_db_session

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)

DbSessionDep = Annotated[AsyncSession, Depends(get_db_session)]


def get_account_repository(session: DbSessionDep) -> SQLAlchemyAccountRepository:
    return SQLAlchemyAccountRepository(db_session=session)


AccountRepositoryDep = Annotated[SQLAlchemyAccountRepository, Depends(get_account_repository)]


async def get_optional_current_account(
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
    account_repository: AccountRepositoryDep,
) -> Optional[AccountRead]:
    """Récupère le compte correspondant au token Bearer, ou None si non connecté/invalide."""
    if token is None:
        return None

    account_id = decode_access_token(token)
    if account_id is None:
        return None

    account = await account_repository.get_by_id(account_id)
    if account is None:
        logger.warning(f"Token valide pour un compte inexistant: {account_id}")
        return None

    logger.debug(f"Compte authentifié: ID {account.id} (admin: {account.is_admin})")
    return account


OptionalCurrentAccount = Annotated[Optional[AccountRead], Depends(get_optional_current_account)]
