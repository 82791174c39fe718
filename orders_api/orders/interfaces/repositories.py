from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from orders_api.core.pagination import ConnectionArgs, Page
from orders_api.orders.models import Order


class AbstractOrderRepository(ABC):
    """Interface abstraite pour le repository des Commandes."""

    @abstractmethod
    async def get_by_id(self, order_id: str, shop_id: str) -> Optional[Order]:
        """Récupère une commande d'une boutique par son ID, avec groupes, lignes, notes et paiements."""
        raise NotImplementedError

    @abstractmethod
    async def get_by_reference_id(self, reference_id: str, shop_id: str) -> Optional[Order]:
        """Récupère une commande d'une boutique par sa référence client."""
        raise NotImplementedError

    @abstractmethod
    async def list_by_account(
        self,
        account_id: str,
        statuses: Optional[Sequence[str]],
        shop_ids: Optional[Sequence[str]],
        args: ConnectionArgs,
    ) -> Page[Order]:
        """Liste paginée (curseur) des commandes d'un compte."""
        raise NotImplementedError

    @abstractmethod
    async def reference_id_exists(self, reference_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def add(self, order: Order) -> Order:
        """Ajoute la commande et tout son graphe (flush, sans commit)."""
        raise NotImplementedError

    @abstractmethod
    async def commit(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def rollback(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def reload(self, order_ids: List[str]) -> List[Order]:
        """Recharge des commandes avec toutes leurs relations."""
        raise NotImplementedError
