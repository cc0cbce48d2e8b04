from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from ..catalog.models import CamelModel


class DanglingReference(CamelModel):
    id: int
    name: str
    asset_id: str


class SyncStatus(CamelModel):
    catalog_count: int
    with_remote_asset: int
    remote_asset_count: int
    orphaned_asset_count: int = 0
    dangling_references: List[DanglingReference] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    images_synced: bool
    remote_reachable: bool = True
    last_catalog_update: Optional[str] = None
    last_csv_export: Optional[str] = None
