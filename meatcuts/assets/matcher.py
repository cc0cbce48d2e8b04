"""
Link remote images to meat cuts that have no image yet, by name heuristics.

For each unlinked meat cut the remote listing is scanned in order and the
first image satisfying any of these rules is taken:

1. image name equals the image reference
2. image name contains the image reference
3. image reference contains the image name
4. image name contains the meat cut name
5. meat cut name contains the image name

Names are compared after :func:`normalize_name`. A claimed image is not
offered to later meat cuts, and images already linked somewhere are never
offered at all.
"""
from __future__ import annotations

import argparse
import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import metadata
from ..db.models import MeatCut
from ..errors import CatalogError
from .client import AssetStore, RemoteAsset
from .models import MatchedImage, MatchReport, UnmatchedItem

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_IMAGE_EXTENSION = re.compile(r"\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)


def normalize_name(name: str | None) -> str:
    """Lowercase, drop all whitespace, drop one trailing image extension."""
    if not name:
        return ""
    return _IMAGE_EXTENSION.sub("", _WHITESPACE.sub("", name.lower()))


def match_rule(asset_name: str, reference: str, item_name: str) -> int | None:
    """Return the first rule (1-5) linking normalized names, or None."""
    if not asset_name:
        return None
    if reference:
        if asset_name == reference:
            return 1
        if reference in asset_name:
            return 2
        if asset_name in reference:
            return 3
    if item_name:
        if item_name in asset_name:
            return 4
        if asset_name in item_name:
            return 5
    return None


@dataclass
class PlannedLink:
    item: MeatCut
    asset: RemoteAsset
    url: str
    rule: int


@dataclass
class MatchPlan:
    links: List[PlannedLink] = field(default_factory=list)
    unmatched: List[MeatCut] = field(default_factory=list)
    skipped_already_linked: int = 0


def match_assets(
    listing: Iterable[RemoteAsset],
    items: Sequence[MeatCut],
    url_for: Callable[[str], str],
) -> MatchPlan:
    """Plan links between unlinked ``items`` and remote images; touches nothing."""
    linked_ids = {item.image_asset_id for item in items if item.image_asset_id}
    available = [
        (asset, normalize_name(asset.name))
        for asset in listing
        if asset.is_image and asset.id not in linked_ids
    ]

    plan = MatchPlan()
    for item in items:
        if item.image_asset_id:
            plan.skipped_already_linked += 1
            continue

        reference = normalize_name(item.image_reference)
        item_name = normalize_name(item.name)
        for idx, (asset, asset_name) in enumerate(available):
            rule = match_rule(asset_name, reference, item_name)
            if rule is not None:
                plan.links.append(PlannedLink(item=item, asset=asset, url=url_for(asset.id), rule=rule))
                del available[idx]
                break
        else:
            plan.unmatched.append(item)
    return plan


def link_unmatched_images(
    session: Session,
    store: AssetStore,
    cancel_event: Optional[threading.Event] = None,
) -> MatchReport:
    """Apply :func:`match_assets` to the catalog; existing links are never changed."""
    listing = store.list()
    items = session.scalars(select(MeatCut).order_by(MeatCut.id)).all()
    plan = match_assets(listing, items, store.url_for)

    report = MatchReport(
        skipped_already_linked=plan.skipped_already_linked,
        remote_image_count=sum(1 for asset in listing if asset.is_image),
    )
    for link in plan.links:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Image matching cancelled after %d links", len(report.matched))
            report.cancelled = True
            break
        link.item.link_image(link.asset.id, link.url)
        report.matched.append(
            MatchedImage(
                id=link.item.id,
                name=link.item.name,
                asset_id=link.asset.id,
                asset_name=link.asset.name,
                rule=link.rule,
            )
        )

    report.unmatched = [
        UnmatchedItem(id=item.id, name=item.name, image_reference=item.image_reference)
        for item in plan.unmatched
    ]
    if report.matched:
        metadata.touch(session, metadata.LAST_CATALOG_UPDATE)
    session.commit()
    logger.info(
        "Image matching: %d linked, %d unmatched, %d already linked",
        len(report.matched),
        len(report.unmatched),
        report.skipped_already_linked,
    )
    return report


def main(argv: Optional[List[str]] = None) -> int:
    from ..db.session import get_session_factory
    from ..logger import setup_logging
    from .client import HttpAssetStore

    parser = argparse.ArgumentParser(description="Link remote images to meat cuts without one.")
    parser.parse_args(argv)

    setup_logging()
    try:
        with get_session_factory()() as session:
            report = link_unmatched_images(session, HttpAssetStore())
    except CatalogError as e:
        logger.error("Image matching failed: %s", e)
        return 1

    print(f"Linked {len(report.matched)} images; {len(report.unmatched)} meat cuts still without one.")
    for item in report.unmatched:
        print(f"  #{item.id} {item.name} (reference: {item.image_reference})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
