"""Types GraphQL partagés (pagination, tri, adresses)."""
from enum import Enum
from typing import Any, Dict, Optional

import strawberry

from orders_api.core.pagination import SORT_ASC, SORT_DESC, Page


@strawberry.enum(description="Direction de tri d'une connexion.")
class SortOrder(Enum):
    asc = SORT_ASC
    desc = SORT_DESC


@strawberry.type(description="Informations de pagination d'une connexion.")
class PageInfo:
    has_next_page: bool
    has_previous_page: bool
    start_cursor: Optional[str] = None
    end_cursor: Optional[str] = None

    @classmethod
    def from_page(cls, page: Page) -> "PageInfo":
        return cls(
            has_next_page=page.has_next_page,
            has_previous_page=page.has_previous_page,
            start_cursor=page.start_cursor,
            end_cursor=page.end_cursor,
        )


@strawberry.type
class Address:
    address1: str
    city: str
    country: str
    full_name: str
    phone: str
    postal: str
    region: str
    is_commercial: bool = False
    address2: Optional[str] = None
    company: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Address"]:
        if not data:
            return None
        return cls(
            address1=data["address1"],
            city=data["city"],
            country=data["country"],
            full_name=data["full_name"],
            phone=data["phone"],
            postal=data["postal"],
            region=data["region"],
            is_commercial=data.get("is_commercial", False),
            address2=data.get("address2"),
            company=data.get("company"),
        )


@strawberry.input
class AddressInput:
    address1: str
    city: str
    country: str
    full_name: str
    phone: str
    postal: str
    region: str
    is_commercial: bool = False
    address2: Optional[str] = None
    company: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address1": self.address1,
            "address2": self.address2,
            "city": self.city,
            "company": self.company,
            "country": self.country,
            "full_name": self.full_name,
            "is_commercial": self.is_commercial,
            "phone": self.phone,
            "postal": self.postal,
            "region": self.region,
        }
