from __future__ import annotations

from typing import List

from pydantic import Field

from ..catalog.models import BatchSummary, CamelModel


class MatchedImage(CamelModel):
    id: int
    name: str
    asset_id: str
    asset_name: str
    rule: int = Field(..., ge=1, le=5, description="Which name heuristic matched (1-5)")


class UnmatchedItem(CamelModel):
    id: int
    name: str
    image_reference: str


class MatchReport(CamelModel):
    matched: List[MatchedImage] = Field(default_factory=list)
    unmatched: List[UnmatchedItem] = Field(default_factory=list)
    skipped_already_linked: int = 0
    remote_image_count: int = 0
    cancelled: bool = False


class UploadedImage(CamelModel):
    id: int
    file: str
    asset_id: str


class UploadReport(BatchSummary):
    uploaded: List[UploadedImage] = Field(default_factory=list)
    skipped_already_linked: int = 0
    no_matching_item: List[str] = Field(default_factory=list)
