from __future__ import annotations

import logging
from typing import Iterable, TypeVar, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db.models import CookingMethod, MeatCut, RecommendedDish

logger = logging.getLogger(__name__)

Tag = Union[CookingMethod, RecommendedDish]
TagT = TypeVar("TagT", CookingMethod, RecommendedDish)


def split_tags(raw: str | Iterable[str] | None) -> list[str]:
    """
    Split comma-separated free text into trimmed, non-empty, de-duplicated
    names, keeping first-seen order. Duplicates are case-sensitive.

    An iterable of strings is accepted as already split (form fields).
    """
    if raw is None:
        return []
    parts = raw.split(",") if isinstance(raw, str) else list(raw)

    seen: dict[str, None] = {}
    for part in parts:
        if not isinstance(part, str):
            continue
        name = part.strip()
        if name and name not in seen:
            seen[name] = None
    return list(seen)


def find_or_create(session: Session, tag_model: type[TagT], name: str) -> TagT:
    """Return the tag named ``name``, inserting it if missing.

    A concurrent insert of the same name surfaces as a uniqueness conflict,
    which is resolved by reading the winner's row.
    """
    stmt = select(tag_model).where(tag_model.name == name)
    tag = session.scalars(stmt).first()
    if tag is not None:
        return tag

    try:
        with session.begin_nested():
            tag = tag_model(name=name)
            session.add(tag)
    except IntegrityError:
        logger.debug("%s %r created concurrently, re-reading", tag_model.__name__, name)
        tag = session.scalars(stmt).one()
    return tag


def _collection(item: MeatCut, tag_model: type[Tag]) -> list:
    if tag_model is CookingMethod:
        return item.cooking_methods
    if tag_model is RecommendedDish:
        return item.recommended_dishes
    raise TypeError(f"Unsupported tag model {tag_model!r}")


def associate_tags(
    session: Session,
    item: MeatCut,
    tag_model: type[Tag],
    names: Iterable[str],
) -> list[Tag]:
    """Link ``item`` to each named tag. Linking an existing edge is a no-op."""
    collection = _collection(item, tag_model)
    linked: list[Tag] = []
    for name in split_tags(names):
        tag = find_or_create(session, tag_model, name)
        if tag not in collection:
            collection.append(tag)
            item.touch()
        linked.append(tag)
    return linked


def replace_tags(
    session: Session,
    item: MeatCut,
    tag_model: type[Tag],
    names: Iterable[str],
) -> list[Tag]:
    """Drop the item's edges of one flavor, then re-link ``names``."""
    collection = _collection(item, tag_model)
    collection.clear()
    item.touch()
    return associate_tags(session, item, tag_model, names)
