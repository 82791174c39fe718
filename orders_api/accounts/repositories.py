import logging
from typing import Dict, Iterable, Optional

from fastcrud import FastCRUD
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from orders_api.accounts.models import Account, AccountRead

logger = logging.getLogger(__name__)


class SQLAlchemyAccountRepository:
    """Lecture des comptes clients."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.crud_account = FastCRUD(Account)

    async def get_by_id(self, account_id: str) -> Optional[AccountRead]:
        logger.debug(f"[AccountRepository] Getting account by ID: {account_id}")
        row = await self.crud_account.get(db=self.db, id=account_id)
        if not row:
            logger.warning(f"[AccountRepository] Account not found by ID: {account_id}")
            return None
        return AccountRead.model_validate(row)

    async def get_many(self, account_ids: Iterable[str]) -> Dict[str, AccountRead]:
        ids = set(account_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Account).where(Account.id.in_(ids)))
        return {account.id: AccountRead.model_validate(account) for account in result.scalars().all()}
