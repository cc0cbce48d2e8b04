from __future__ import annotations

import logging
from datetime import date
from typing import List

import pandas as pd
from sqlalchemy.orm import Session

from ..catalog.pricing import format_amount
from ..catalog.repository import list_all_by_id
from ..db import metadata
from ..db.models import MeatCut
from .config import DEFAULT_INGESTION_CONFIG, IngestionConfig

logger = logging.getLogger(__name__)


EXPORT_COLUMNS: List[str] = [
    "ID",
    "Name",
    "Chinese Name",
    "Part",
    "Lean",
    "Price Min",
    "Price Max",
    "Price Mean",
    "Price Display",
    "Texture & Notes",
    "image reference",
    "Image Asset ID",
    "Image Asset URL",
    "Slug",
    "Rec. Cooking Methods",
    "Recommended Dishes",
]


def _to_row(item: MeatCut) -> dict:
    return {
        "ID": item.id,
        "Name": item.name,
        "Chinese Name": item.chinese_name,
        "Part": item.part,
        "Lean": "Yes" if item.lean else "No",
        "Price Min": format_amount(item.price_min),
        "Price Max": format_amount(item.price_max),
        "Price Mean": format_amount(item.price_mean),
        "Price Display": item.price_display,
        "Texture & Notes": item.texture_notes or "",
        "image reference": item.image_reference,
        "Image Asset ID": item.image_asset_id or "",
        "Image Asset URL": item.image_url or "",
        "Slug": item.slug,
        "Rec. Cooking Methods": ", ".join(sorted(m.name for m in item.cooking_methods)),
        "Recommended Dishes": ", ".join(sorted(d.name for d in item.recommended_dishes)),
    }


def export_catalog_csv(session: Session) -> str:
    """
    Render every meat cut as CSV, ordered by id.

    The header row is always present, even for an empty catalog. Records the
    export time under ``last_csv_export``.
    """
    items = list_all_by_id(session)
    frame = pd.DataFrame([_to_row(item) for item in items], columns=EXPORT_COLUMNS)
    content = frame.to_csv(index=False, lineterminator="\n")

    metadata.touch(session, metadata.LAST_CSV_EXPORT)
    session.commit()
    logger.info("Exported %d meat cuts to CSV", len(items))
    return content


def export_filename(config: IngestionConfig = DEFAULT_INGESTION_CONFIG, today: date | None = None) -> str:
    return f"{config.export_prefix}_{(today or date.today()).isoformat()}.csv"


def export_catalog_csv_with_filename(
    session: Session, config: IngestionConfig = DEFAULT_INGESTION_CONFIG
) -> tuple[str, str]:
    """Return ``(filename, content)`` for a download response."""
    return export_filename(config), export_catalog_csv(session)
