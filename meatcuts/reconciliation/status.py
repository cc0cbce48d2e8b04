from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..assets.client import AssetStore
from ..db import metadata
from ..db.models import MeatCut
from ..errors import AssetStoreError
from .models import DanglingReference, SyncStatus

logger = logging.getLogger(__name__)


def compute_status(session: Session, store: AssetStore) -> SyncStatus:
    """
    Compare asset links in the catalog with what the remote store holds.

    Read-only. A dangling reference is a stored asset id missing from the
    remote image listing; an orphaned asset is a remote image no row points
    at. If the remote listing fails the report is still returned, flagged as
    unreachable and not synced.
    """
    rows = session.execute(
        select(MeatCut.id, MeatCut.name, MeatCut.image_asset_id).order_by(MeatCut.id)
    ).all()
    linked = [(row.id, row.name, row.image_asset_id) for row in rows if row.image_asset_id]

    status = SyncStatus(
        catalog_count=len(rows),
        with_remote_asset=len(linked),
        remote_asset_count=0,
        images_synced=False,
        last_catalog_update=metadata.read(session, metadata.LAST_CATALOG_UPDATE),
        last_csv_export=metadata.read(session, metadata.LAST_CSV_EXPORT),
    )

    try:
        listing = store.list()
    except AssetStoreError as e:
        logger.warning("Remote asset listing failed: %s", e)
        status.remote_reachable = False
        status.warnings.append(f"Could not list remote assets: {e}")
        return status

    remote_ids = {asset.id for asset in listing if asset.is_image}
    status.remote_asset_count = len(remote_ids)
    status.dangling_references = [
        DanglingReference(id=item_id, name=name, asset_id=asset_id)
        for item_id, name, asset_id in linked
        if asset_id not in remote_ids
    ]
    status.orphaned_asset_count = len(remote_ids - {asset_id for _, _, asset_id in linked})
    status.images_synced = not status.dangling_references

    if status.dangling_references:
        status.warnings.append(
            f"{len(status.dangling_references)} meat cut(s) reference images missing from the asset store"
        )
    if status.orphaned_asset_count:
        status.warnings.append(
            f"{status.orphaned_asset_count} remote image(s) are not linked to any meat cut"
        )
    return status


def main(argv: Optional[List[str]] = None) -> int:
    from ..assets.client import HttpAssetStore
    from ..db.session import get_session_factory
    from ..logger import setup_logging

    parser = argparse.ArgumentParser(description="Report drift between the catalog and the asset store.")
    parser.parse_args(argv)

    setup_logging()
    with get_session_factory()() as session:
        status = compute_status(session, HttpAssetStore())

    print(status.model_dump_json(by_alias=True, indent=2))
    return 0 if status.images_synced else 1


if __name__ == "__main__":
    raise SystemExit(main())
