from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..assets.client import DEFAULT_MIME_TYPE, AssetStore
from ..db import metadata
from ..db.models import CookingMethod, MeatCut, RecommendedDish
from ..errors import AssetStoreError, ConsistencyError, InvalidInputError, NotFoundError
from .models import DeleteSummary, MeatCutIn, MeatCutUpdate
from .pricing import format_price_range, parse_price_range, validate_price_range
from .slugs import assign_slug
from .tags import associate_tags, replace_tags

logger = logging.getLogger(__name__)

_WITH_TAGS = (selectinload(MeatCut.cooking_methods), selectinload(MeatCut.recommended_dishes))


# ── reads ───────────────────────────────────────────────────────────────


def slug_exists(session: Session, slug: str, exclude_id: int | None = None) -> bool:
    stmt = select(MeatCut.id).where(MeatCut.slug == slug)
    if exclude_id is not None:
        stmt = stmt.where(MeatCut.id != exclude_id)
    return session.scalars(stmt).first() is not None


def get_item(session: Session, item_id: int) -> MeatCut:
    item = session.get(MeatCut, item_id, options=_WITH_TAGS)
    if item is None:
        raise NotFoundError(f"Meat cut {item_id} not found")
    return item


def get_item_by_slug(session: Session, slug: str) -> MeatCut:
    stmt = select(MeatCut).options(*_WITH_TAGS).where(MeatCut.slug == slug)
    item = session.scalars(stmt).first()
    if item is None:
        raise NotFoundError(f"Meat cut '{slug}' not found")
    return item


def count_items(session: Session) -> int:
    return session.scalar(select(func.count(MeatCut.id))) or 0


def list_items(session: Session, *, limit: int | None = None, offset: int = 0) -> Sequence[MeatCut]:
    """Return meat cuts in name order, optionally one page of them."""
    stmt = select(MeatCut).options(*_WITH_TAGS).order_by(MeatCut.name, MeatCut.id)
    if limit is not None:
        stmt = stmt.limit(limit).offset(offset)
    return session.scalars(stmt).all()


def list_all_by_id(session: Session) -> Sequence[MeatCut]:
    stmt = select(MeatCut).options(*_WITH_TAGS).order_by(MeatCut.id)
    return session.scalars(stmt).all()


def list_tag_names(session: Session, tag_model: type[CookingMethod] | type[RecommendedDish]) -> list[str]:
    return list(session.scalars(select(tag_model.name).order_by(tag_model.name)))


def list_parts(session: Session) -> list[str]:
    stmt = (
        select(MeatCut.part)
        .where(MeatCut.part.is_not(None), MeatCut.part != "")
        .distinct()
        .order_by(MeatCut.part)
    )
    return list(session.scalars(stmt))


# ── writes ──────────────────────────────────────────────────────────────


def _resolve_price(
    price_min: float | None, price_max: float | None, price_display: str | None
) -> tuple[float, float, str]:
    """Return ``(min, max, display)`` with the display always describing the stored pair."""
    if price_min is None or price_max is None:
        parsed = parse_price_range(price_display)
        if parsed is None:
            raise InvalidInputError(f"Invalid price format: {price_display!r}")
        price_min, price_max = parsed.min, parsed.max
    elif price_display:
        parsed = parse_price_range(price_display)
        if parsed is None or (parsed.min, parsed.max) != (price_min, price_max):
            raise InvalidInputError(
                f"Price display {price_display!r} does not match price range {price_min} – {price_max}"
            )
    validate_price_range(price_min, price_max)
    return price_min, price_max, price_display or format_price_range(price_min, price_max)


def _flush(session: Session) -> None:
    try:
        session.flush()
    except IntegrityError as e:
        # Slug collisions and pointer pairing are handled before we get here
        logger.error("Constraint violation reaching the store: %s", e)
        raise ConsistencyError(str(e.orig)) from e


def build_item(session: Session, data: MeatCutIn, *, image_url: str | None = None) -> MeatCut:
    """Validate ``data`` and stage a new meat cut (no commit)."""
    low, high, display = _resolve_price(data.price_min, data.price_max, data.price_display)
    name = data.name.strip()
    image_reference = data.image_reference.strip()
    if not name or not data.chinese_name.strip() or not data.part.strip() or not image_reference:
        raise InvalidInputError("Missing required fields (name, chineseName, part, or imageReference)")

    item = MeatCut(
        name=name,
        chinese_name=data.chinese_name.strip(),
        part=data.part.strip(),
        lean=data.lean,
        price_min=low,
        price_max=high,
        price_mean=(low + high) / 2,
        price_display=display,
        texture_notes=data.texture_notes or None,
        image_reference=image_reference,
        slug=assign_slug(name, lambda s: slug_exists(session, s)),
    )
    if data.image_asset_id:
        if not image_url:
            raise InvalidInputError("An image asset id needs its image URL")
        item.link_image(data.image_asset_id, image_url)

    session.add(item)
    _flush(session)
    associate_tags(session, item, CookingMethod, data.cooking_methods)
    associate_tags(session, item, RecommendedDish, data.recommended_dishes)
    return item


def create_item(session: Session, data: MeatCutIn, store: AssetStore | None = None) -> MeatCut:
    image_url = store.url_for(data.image_asset_id) if (store and data.image_asset_id) else None
    item = build_item(session, data, image_url=image_url)
    metadata.touch(session, metadata.LAST_CATALOG_UPDATE)
    session.commit()
    logger.info("Created meat cut %s (%s)", item.id, item.slug)
    return item


def update_item(
    session: Session,
    item_id: int,
    data: MeatCutUpdate,
    store: AssetStore | None = None,
) -> MeatCut:
    item = get_item(session, item_id)
    fields = data.model_dump(exclude_unset=True)

    new_name = fields.get("name")
    if new_name is not None and new_name.strip() != item.name:
        item.name = new_name.strip()
        # Renaming is the only thing that moves a slug
        item.slug = assign_slug(item.name, lambda s: slug_exists(session, s, exclude_id=item.id))

    for attr in ("chinese_name", "part", "image_reference"):
        if fields.get(attr) is not None:
            setattr(item, attr, fields[attr].strip())
    if fields.get("lean") is not None:
        item.lean = fields["lean"]
    if "texture_notes" in fields:
        item.texture_notes = fields["texture_notes"] or None

    if {"price_min", "price_max", "price_display"} & fields.keys():
        if "price_display" in fields and not ({"price_min", "price_max"} & fields.keys()):
            low, high, display = _resolve_price(None, None, fields["price_display"])
        else:
            low = fields.get("price_min", item.price_min)
            high = fields.get("price_max", item.price_max)
            low, high, display = _resolve_price(low, high, fields.get("price_display"))
        item.price_min, item.price_max = low, high
        item.price_mean = (low + high) / 2
        item.price_display = display

    if "image_asset_id" in fields and fields["image_asset_id"] != item.image_asset_id:
        asset_id = fields["image_asset_id"]
        if asset_id:
            if store is None:
                raise InvalidInputError("Cannot link an image without the asset store")
            item.link_image(asset_id, store.url_for(asset_id))
        else:
            item.unlink_image()

    if data.cooking_methods is not None:
        replace_tags(session, item, CookingMethod, data.cooking_methods)
    if data.recommended_dishes is not None:
        replace_tags(session, item, RecommendedDish, data.recommended_dishes)

    item.touch()
    _flush(session)
    metadata.touch(session, metadata.LAST_CATALOG_UPDATE)
    session.commit()
    return item


def attach_image(
    session: Session,
    store: AssetStore,
    item_id: int,
    data: bytes,
    mime_type: str = DEFAULT_MIME_TYPE,
    filename: str | None = None,
) -> MeatCut:
    """Upload a new image for ``item_id``, or overwrite its current one in place."""
    item = get_item(session, item_id)
    if item.image_asset_id:
        stored = store.update(item.image_asset_id, data, mime_type)
    else:
        name = filename or f"{item.image_reference or item.slug}.jpg"
        stored = store.upload(data, name, mime_type)
    item.link_image(stored.id, stored.url)
    metadata.touch(session, metadata.LAST_CATALOG_UPDATE)
    session.commit()
    return item


def _delete_remote_image(store: AssetStore | None, item: MeatCut) -> None:
    if not store or not item.image_asset_id:
        return
    try:
        store.delete(item.image_asset_id)
    except AssetStoreError:
        # The row goes anyway; the orphaned object shows up in the sync status
        logger.warning("Failed to delete remote image %s for meat cut %s", item.image_asset_id, item.id, exc_info=True)


def delete_item(session: Session, item_id: int, store: AssetStore | None = None) -> None:
    item = get_item(session, item_id)
    _delete_remote_image(store, item)
    session.delete(item)
    metadata.touch(session, metadata.LAST_CATALOG_UPDATE)
    session.commit()
    logger.info("Deleted meat cut %s", item_id)


def bulk_delete(session: Session, ids: Sequence[int], store: AssetStore | None = None) -> DeleteSummary:
    summary = DeleteSummary()
    for item_id in ids:
        item = session.get(MeatCut, item_id)
        if item is None:
            summary.fail("Not found", id=item_id)
            continue
        _delete_remote_image(store, item)
        session.delete(item)
        summary.succeeded += 1
        summary.deleted_ids.append(item_id)

    if summary.deleted_ids:
        metadata.touch(session, metadata.LAST_CATALOG_UPDATE)
    session.commit()
    return summary
