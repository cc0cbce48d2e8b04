from __future__ import annotations

import logging

from sqlalchemy import Select, distinct, func, or_, select
from sqlalchemy.orm import Session, selectinload

from ..catalog.models import MeatCutOut
from ..catalog.repository import list_parts
from ..db.models import CookingMethod, MeatCut, meat_cut_cooking_methods
from .models import FacetsResponse, GlobalPriceRange, SearchFilters, SearchResponse

logger = logging.getLogger(__name__)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _apply_filters(stmt: Select, filters: SearchFilters) -> Select:
    """Add one predicate per present filter; all values are bound parameters."""
    q = _clean(filters.q)
    if q:
        term = q.lower()
        stmt = stmt.where(
            or_(
                func.lower(MeatCut.name).contains(term, autoescape=True),
                func.lower(MeatCut.chinese_name).contains(term, autoescape=True),
                func.lower(MeatCut.part).contains(term, autoescape=True),
            )
        )

    # Overlap: the item's range touches the requested one
    if filters.price_min is not None:
        stmt = stmt.where(MeatCut.price_max >= filters.price_min)
    if filters.price_max is not None:
        stmt = stmt.where(MeatCut.price_min <= filters.price_max)

    part = _clean(filters.part)
    if part:
        stmt = stmt.where(MeatCut.part == part)
    if filters.lean is not None:
        stmt = stmt.where(MeatCut.lean == filters.lean)

    cooking_method = _clean(filters.cooking_method)
    if cooking_method:
        stmt = stmt.join(MeatCut.cooking_methods).where(CookingMethod.name == cooking_method)
    return stmt


def global_price_range(session: Session) -> GlobalPriceRange:
    low, high = session.execute(select(func.min(MeatCut.price_min), func.max(MeatCut.price_max))).one()
    return GlobalPriceRange(min=low or 0, max=high or 0)


def search(session: Session, filters: SearchFilters | None = None) -> SearchResponse:
    filters = filters or SearchFilters()

    count_stmt = _apply_filters(select(func.count(distinct(MeatCut.id))).select_from(MeatCut), filters)
    total = session.scalar(count_stmt) or 0

    stmt = _apply_filters(
        select(MeatCut).options(
            selectinload(MeatCut.cooking_methods), selectinload(MeatCut.recommended_dishes)
        ),
        filters,
    ).order_by(MeatCut.name, MeatCut.id)
    if filters.limit is not None:
        stmt = stmt.limit(filters.limit).offset(filters.offset)
    elif filters.offset:
        stmt = stmt.offset(filters.offset)

    items = session.scalars(stmt).unique().all()
    logger.debug("Search %s matched %d meat cuts", filters.model_dump(exclude_none=True), total)
    return SearchResponse(
        results=[MeatCutOut.from_item(item) for item in items],
        total=total,
        price_range=global_price_range(session),
    )


def list_facets(session: Session) -> FacetsResponse:
    cooking_methods = session.scalars(
        select(CookingMethod.name)
        .join(meat_cut_cooking_methods, meat_cut_cooking_methods.c.cooking_method_id == CookingMethod.id)
        .distinct()
        .order_by(CookingMethod.name)
    ).all()
    return FacetsResponse(
        parts=list_parts(session),
        cooking_methods=list(cooking_methods),
        price_range=global_price_range(session),
    )
