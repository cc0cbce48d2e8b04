from __future__ import annotations

import argparse
import io
import logging
import threading
from pathlib import Path
from typing import IO, Dict, List, Optional, Union

import pandas as pd
from pydantic import Field, ValidationError
from sqlalchemy.orm import Session

from ..assets.client import AssetStore
from ..catalog.models import BatchSummary, MeatCutIn
from ..catalog.pricing import parse_price_range, to_number, validate_price_range
from ..catalog.repository import build_item
from ..catalog.tags import split_tags
from ..db import metadata
from ..errors import CatalogError, InvalidInputError
from .config import DEFAULT_INGESTION_CONFIG

logger = logging.getLogger(__name__)

CsvSource = Union[str, Path, bytes, IO]

# Accepted header spellings per logical field, first match wins.
HEADER_ALIASES: Dict[str, List[str]] = {
    "name": ["Name", "name"],
    "chinese_name": ["Chinese Name", "chineseName", "chinese_name"],
    "part": ["Part", "part"],
    "lean": ["Lean", "lean"],
    "price_min": ["Price Min", "priceMin", "price_min"],
    "price_max": ["Price Max", "priceMax", "price_max"],
    "price_display": ["Approx. Price", "Approx Price", "Price Display", "priceDisplay", "price_display"],
    "texture_notes": ["Texture & Notes", "textureNotes", "texture_notes"],
    "image_reference": ["image reference", "Image Reference", "imageReference", "image_reference"],
    "image_asset_id": [
        "Image Asset ID",
        "imageAssetId",
        "image_asset_id",
        "Google Drive Image ID",
        "googleDriveImageId",
        "google_drive_image_id",
    ],
    "image_url": [
        "Image Asset URL",
        "imageUrl",
        "image_url",
        "Google Drive Image URL",
        "googleDriveImageUrl",
        "google_drive_image_url",
    ],
    "cooking_methods": ["Rec. Cooking Methods", "Cooking Methods", "cookingMethods", "cooking_methods"],
    "recommended_dishes": ["Recommended Dishes", "recommendedDishes", "recommended_dishes"],
}

_TRUTHY = {"yes", "true", "1"}


class ImportSummary(BatchSummary):
    imported_ids: List[int] = Field(default_factory=list)


def _first_present(columns: List[str], candidates: List[str]) -> str | None:
    for col in candidates:
        if col in columns:
            return col
    return None


def normalize_lean(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def _parse_amount(value: str) -> float:
    amount = to_number(value.lstrip("$"))
    if amount is None:
        raise InvalidInputError(f"Invalid price amount: {value}")
    return amount


def read_catalog_frame(source: CsvSource) -> pd.DataFrame:
    """Load a CSV as strings only; a file that cannot be parsed at all is an input error."""
    if isinstance(source, bytes):
        source = io.BytesIO(source)
    try:
        frame = pd.read_csv(source, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise InvalidInputError(f"Could not parse CSV: {e}") from e
    frame.columns = [str(c).lstrip("\ufeff").strip() for c in frame.columns]
    return frame


def _row_to_input(
    values: Dict[str, str], asset_store: Optional[AssetStore]
) -> tuple[MeatCutIn, Optional[str]]:
    """Validate one row; returns the input model and the image URL to pair with it."""
    price_display = values["price_display"] or None
    if values["price_min"] and values["price_max"]:
        low = _parse_amount(values["price_min"])
        high = _parse_amount(values["price_max"])
    else:
        prices = parse_price_range(price_display)
        if prices is None:
            raise InvalidInputError(f"Invalid price format: {price_display}")
        low, high = prices.min, prices.max
    validate_price_range(low, high)

    if not all(values[f] for f in ("name", "chinese_name", "part", "image_reference")):
        raise InvalidInputError("Missing required fields (name, chineseName, part, or imageReference)")

    asset_id = values["image_asset_id"] or None
    image_url = values["image_url"] or None
    if image_url and not asset_id:
        raise InvalidInputError("Image URL given without an image asset id")
    if asset_id and not image_url:
        if asset_store is None:
            raise InvalidInputError("Image asset id given without an image URL")
        image_url = asset_store.url_for(asset_id)

    data = MeatCutIn(
        name=values["name"],
        chinese_name=values["chinese_name"],
        part=values["part"],
        lean=normalize_lean(values["lean"]),
        price_min=low,
        price_max=high,
        price_display=price_display,
        texture_notes=values["texture_notes"] or None,
        image_reference=values["image_reference"],
        image_asset_id=asset_id,
        cooking_methods=split_tags(values["cooking_methods"]),
        recommended_dishes=split_tags(values["recommended_dishes"]),
    )
    return data, image_url


def import_catalog_csv(
    session: Session,
    source: CsvSource,
    *,
    asset_store: Optional[AssetStore] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ImportSummary:
    """
    Insert one meat cut per valid CSV row.

    Steps:
    - Resolve each logical field against the accepted header spellings.
    - Validate each row independently; failures are collected with their
      1-based source row number (the header is row 1).
    - Insert valid rows inside a per-row savepoint so a storage failure on one
      row leaves the others intact.
    - Refresh ``last_catalog_update`` once if anything was inserted, then commit.
    """
    frame = read_catalog_frame(source)
    columns = list(frame.columns)
    resolved = {field: _first_present(columns, names) for field, names in HEADER_ALIASES.items()}
    summary = ImportSummary()

    for i, record in enumerate(frame.to_dict(orient="records")):
        row_number = i + 2
        if cancel_event is not None and cancel_event.is_set():
            logger.info("CSV import cancelled before row %d", row_number)
            summary.cancelled = True
            break

        values = {
            field: (str(record.get(col, "")).strip() if col else "")
            for field, col in resolved.items()
        }
        try:
            data, image_url = _row_to_input(values, asset_store)
            with session.begin_nested():
                item = build_item(session, data, image_url=image_url)
        except ValidationError as e:
            summary.fail(f"Invalid row: {e.errors()[0]['msg']}", row=row_number)
            continue
        except CatalogError as e:
            logger.warning("CSV row %d rejected: %s", row_number, e)
            summary.fail(str(e), row=row_number)
            continue

        summary.succeeded += 1
        summary.imported_ids.append(item.id)

    if summary.succeeded:
        metadata.touch(session, metadata.LAST_CATALOG_UPDATE)
    session.commit()
    logger.info(
        "CSV import finished: %d imported, %d failed%s",
        summary.succeeded,
        summary.failed,
        " (cancelled)" if summary.cancelled else "",
    )
    return summary


def main(argv: Optional[List[str]] = None) -> int:
    from ..assets.client import HttpAssetStore
    from ..db.session import get_session_factory
    from ..logger import setup_logging

    parser = argparse.ArgumentParser(description="Import meat cuts from a CSV file.")
    parser.add_argument("csv_path", nargs="?", type=Path, default=DEFAULT_INGESTION_CONFIG.seed_path)
    parser.add_argument(
        "--resolve-asset-urls",
        action="store_true",
        help="Derive missing image URLs from asset ids using the asset store settings",
    )
    args = parser.parse_args(argv)

    setup_logging()
    store = HttpAssetStore() if args.resolve_asset_urls else None
    with get_session_factory()() as session:
        summary = import_catalog_csv(session, args.csv_path, asset_store=store)

    print(f"Import complete. Imported: {summary.succeeded}, failed: {summary.failed}")
    for err in summary.errors:
        print(f"  row {err.row}: {err.error}")
    return 0 if not summary.failed else 1


if __name__ == "__main__":
    raise SystemExit(main())
