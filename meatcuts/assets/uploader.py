from __future__ import annotations

import argparse
import logging
import mimetypes
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import metadata
from ..db.models import MeatCut
from ..errors import CatalogError
from .client import DEFAULT_MIME_TYPE, AssetStore, StoredAsset
from .config import DEFAULT_ASSET_STORE_CONFIG, AssetStoreConfig
from .models import UploadedImage, UploadReport

logger = logging.getLogger(__name__)


def find_local_images(images_dir: Path, config: AssetStoreConfig = DEFAULT_ASSET_STORE_CONFIG) -> List[Path]:
    if not images_dir.is_dir():
        raise CatalogError(f"Images directory not found: {images_dir}")
    return sorted(
        p for p in images_dir.iterdir() if p.is_file() and p.suffix.lower() in config.image_extensions
    )


def _upload_one(
    store: AssetStore,
    path: Path,
    delay: float,
    cancel_event: Optional[threading.Event],
) -> Optional[StoredAsset]:
    if cancel_event is not None and cancel_event.is_set():
        return None
    mime_type = mimetypes.guess_type(path.name)[0] or DEFAULT_MIME_TYPE
    try:
        return store.upload(path.read_bytes(), path.name, mime_type)
    finally:
        # Per-call throttle against the remote store
        time.sleep(delay)


def upload_local_images(
    session: Session,
    store: AssetStore,
    images_dir: Path,
    config: AssetStoreConfig = DEFAULT_ASSET_STORE_CONFIG,
    cancel_event: Optional[threading.Event] = None,
) -> UploadReport:
    """
    Upload local image files and link each to the meat cut whose
    ``image_reference`` equals the file stem.

    Uploads run on a bounded thread pool; database writes happen on the
    calling thread as uploads complete. A failed upload is recorded and the
    rest carry on; completed uploads are kept.
    """
    report = UploadReport()
    items_by_reference: Dict[str, List[MeatCut]] = {}
    for item in session.scalars(select(MeatCut).order_by(MeatCut.id)):
        items_by_reference.setdefault(item.image_reference, []).append(item)

    jobs: List[tuple[MeatCut, Path]] = []
    claimed: set[int] = set()
    for path in find_local_images(images_dir, config):
        candidates = items_by_reference.get(path.stem)
        if not candidates:
            logger.warning("No meat cut with image reference %s", path.stem)
            report.no_matching_item.append(path.name)
            continue
        if len(candidates) > 1:
            ids = ", ".join(str(c.id) for c in candidates)
            logger.warning("Skipping %s: image reference shared by meat cuts %s", path.name, ids)
            report.fail(f"Image reference {path.stem} is shared by meat cuts {ids}")
            continue
        item = candidates[0]
        if item.image_asset_id or item.id in claimed:
            report.skipped_already_linked += 1
            continue
        claimed.add(item.id)
        jobs.append((item, path))

    with ThreadPoolExecutor(max_workers=max(1, config.max_workers)) as pool:
        futures = {}
        for item, path in jobs:
            if cancel_event is not None and cancel_event.is_set():
                report.cancelled = True
                break
            futures[pool.submit(_upload_one, store, path, config.request_delay, cancel_event)] = (item, path)

        for future in as_completed(futures):
            item, path = futures[future]
            try:
                stored = future.result()
            except Exception as e:
                logger.warning("Upload of %s failed: %s", path.name, e, exc_info=True)
                report.fail(str(e), id=item.id)
                continue
            if stored is None:
                report.cancelled = True
                continue
            item.link_image(stored.id, stored.url)
            report.succeeded += 1
            report.uploaded.append(UploadedImage(id=item.id, file=path.name, asset_id=stored.id))

    report.uploaded.sort(key=lambda u: u.id)
    if report.succeeded:
        metadata.touch(session, metadata.LAST_CATALOG_UPDATE)
    session.commit()
    logger.info(
        "Image upload: %d uploaded, %d failed, %d skipped, %d without a meat cut",
        report.succeeded,
        report.failed,
        report.skipped_already_linked,
        len(report.no_matching_item),
    )
    return report


def main(argv: Optional[List[str]] = None) -> int:
    from ..db.session import get_session_factory
    from ..logger import setup_logging
    from .client import HttpAssetStore

    parser = argparse.ArgumentParser(description="Upload local meat cut images to the asset store.")
    parser.add_argument("images_dir", type=Path)
    parser.add_argument("--workers", type=int, default=DEFAULT_ASSET_STORE_CONFIG.max_workers)
    args = parser.parse_args(argv)

    setup_logging()
    config = DEFAULT_ASSET_STORE_CONFIG
    if args.workers != config.max_workers:
        config = replace(config, max_workers=args.workers)

    with get_session_factory()() as session:
        report = upload_local_images(session, HttpAssetStore(config), args.images_dir, config)

    print(
        f"Uploaded: {report.succeeded}, failed: {report.failed}, "
        f"skipped: {report.skipped_already_linked}, unmatched files: {len(report.no_matching_item)}"
    )
    return 0 if not report.failed else 1


if __name__ == "__main__":
    raise SystemExit(main())
