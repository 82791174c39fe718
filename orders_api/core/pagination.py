"""
Pagination par curseur (connexions de style Relay).

Les résultats sont toujours triés par `(champ de tri, id)` dans la direction
demandée avant découpage, ce qui rend l'ordre déterministe même lorsque
plusieurs noeuds partagent la même valeur de tri. Un curseur est l'identifiant
interne du noeud encodé en base64.
"""
import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import and_, func, not_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from orders_api.config import settings
from orders_api.core.exceptions import InvalidPaginationException

logger = logging.getLogger(__name__)

T = TypeVar("T")

SORT_ASC = "asc"
SORT_DESC = "desc"


def encode_cursor(internal_id: str) -> str:
    return base64.b64encode(internal_id.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> str:
    try:
        return base64.b64decode(cursor.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        raise InvalidPaginationException(f"Curseur invalide: '{cursor}'.")


@dataclass
class ConnectionArgs:
    """Arguments d'une connexion. `sort_by` est le nom d'attribut du modèle."""
    first: Optional[int] = None
    last: Optional[int] = None
    after: Optional[str] = None
    before: Optional[str] = None
    sort_by: str = "id"
    sort_order: str = SORT_ASC

    def validate(self) -> None:
        if self.first is not None and self.last is not None:
            raise InvalidPaginationException("Utilisez soit `first`, soit `last`, mais pas les deux.")
        for name in ("first", "last"):
            value = getattr(self, name)
            if value is not None and not 1 <= value <= settings.MAX_PAGE_SIZE:
                raise InvalidPaginationException(
                    f"`{name}` doit être compris entre 1 et {settings.MAX_PAGE_SIZE} (reçu: {value})."
                )
        if self.sort_order not in (SORT_ASC, SORT_DESC):
            raise InvalidPaginationException(f"Ordre de tri inconnu: '{self.sort_order}'.")

    @property
    def descending(self) -> bool:
        return self.sort_order == SORT_DESC

    @property
    def page_size(self) -> int:
        if self.last is not None:
            return self.last
        return self.first if self.first is not None else settings.DEFAULT_PAGE_SIZE


@dataclass
class Page(Generic[T]):
    nodes: List[T]
    total_count: int
    has_next_page: bool
    has_previous_page: bool
    cursors: List[str] = field(default_factory=list)

    @property
    def start_cursor(self) -> Optional[str]:
        return self.cursors[0] if self.cursors else None

    @property
    def end_cursor(self) -> Optional[str]:
        return self.cursors[-1] if self.cursors else None


def _sort_key(value: Any) -> Tuple[bool, Any]:
    # Les valeurs nulles sont placées en tête en ordre croissant
    return (value is not None, value)


def paginate_sequence(
    items: Sequence[T],
    args: ConnectionArgs,
    id_getter: Callable[[T], str] = lambda item: item.id,
) -> Page[T]:
    """Pagine une liste déjà chargée en mémoire (connexions imbriquées)."""
    args.validate()
    ordered = sorted(
        items,
        key=lambda item: (_sort_key(getattr(item, args.sort_by)), id_getter(item)),
        reverse=args.descending,
    )
    ids = [id_getter(item) for item in ordered]

    def _index_of(cursor: str) -> int:
        internal_id = decode_cursor(cursor)
        try:
            return ids.index(internal_id)
        except ValueError:
            raise InvalidPaginationException(f"Curseur inconnu: '{cursor}'.")

    start, end = 0, len(ordered)
    if args.after:
        start = _index_of(args.after) + 1
    if args.before:
        end = max(start, _index_of(args.before))

    if args.last is not None:
        page_start, page_end = max(start, end - args.last), end
    else:
        page_start, page_end = start, min(end, start + args.page_size)

    nodes = ordered[page_start:page_end]
    return Page(
        nodes=nodes,
        total_count=len(ordered),
        has_next_page=page_end < len(ordered),
        has_previous_page=page_start > 0,
        cursors=[encode_cursor(id_getter(node)) for node in nodes],
    )


async def paginate_statement(
    session: AsyncSession,
    model: Any,
    filters: Sequence[Any],
    args: ConnectionArgs,
    options: Sequence[Any] = (),
) -> Page:
    """Pagination par jeu de clés (keyset) exécutée en SQL."""
    args.validate()
    sort_column = getattr(model, args.sort_by)
    id_column = model.id
    sort_by_id = args.sort_by == "id"

    base = select(model).where(*filters)
    total_count = await session.scalar(
        select(func.count()).select_from(base.subquery())
    )

    def _after(value: Any, internal_id: str):
        """Condition « strictement après (value, id) » dans l'ordre demandé."""
        if args.descending:
            if sort_by_id:
                return id_column < internal_id
            return or_(sort_column < value, and_(sort_column == value, id_column < internal_id))
        if sort_by_id:
            return id_column > internal_id
        return or_(sort_column > value, and_(sort_column == value, id_column > internal_id))

    def _before(value: Any, internal_id: str):
        if args.descending:
            if sort_by_id:
                return id_column > internal_id
            return or_(sort_column > value, and_(sort_column == value, id_column > internal_id))
        if sort_by_id:
            return id_column < internal_id
        return or_(sort_column < value, and_(sort_column == value, id_column < internal_id))

    async def _boundary(cursor: str) -> Tuple[Any, str]:
        internal_id = decode_cursor(cursor)
        result = await session.execute(select(sort_column).where(id_column == internal_id))
        row = result.first()
        if row is None:
            raise InvalidPaginationException(f"Curseur inconnu: '{cursor}'.")
        return row[0], internal_id

    async def _exists(condition) -> bool:
        return bool(await session.scalar(select(base.where(condition).exists())))

    after_key = await _boundary(args.after) if args.after else None
    before_key = await _boundary(args.before) if args.before else None

    windowed = base
    if after_key:
        windowed = windowed.where(_after(*after_key))
    if before_key:
        windowed = windowed.where(_before(*before_key))

    forward = args.last is None
    # Pour `last`, on lit la fenêtre à l'envers puis on remet dans l'ordre
    descending = args.descending if forward else not args.descending
    direction = (lambda col: col.desc()) if descending else (lambda col: col.asc())
    ordering = [direction(id_column)] if sort_by_id else [direction(sort_column), direction(id_column)]

    stmt = windowed.order_by(*ordering).limit(args.page_size)
    if options:
        stmt = stmt.options(*options)
    result = await session.execute(stmt)
    nodes = list(result.scalars().unique().all())
    if not forward:
        nodes.reverse()

    if nodes:
        first_key = (getattr(nodes[0], args.sort_by), nodes[0].id)
        last_key = (getattr(nodes[-1], args.sort_by), nodes[-1].id)
        has_previous_page = await _exists(_before(*first_key))
        has_next_page = await _exists(_after(*last_key))
    else:
        has_previous_page = await _exists(not_(_after(*after_key))) if after_key else False
        has_next_page = await _exists(not_(_before(*before_key))) if before_key else False

    logger.debug(
        f"Page {model.__name__}: {len(nodes)}/{total_count} noeuds "
        f"(tri {args.sort_by} {args.sort_order}, suivant={has_next_page}, précédent={has_previous_page})"
    )
    return Page(
        nodes=nodes,
        total_count=total_count or 0,
        has_next_page=has_next_page,
        has_previous_page=has_previous_page,
        cursors=[encode_cursor(node.id) for node in nodes],
    )
